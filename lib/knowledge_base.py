"""Known ingredients, units and modifiers, and the stores that serve them.

The parser only reads from a knowledge base. Curation (adding entries,
merging aliases) happens elsewhere.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Self

DEFAULT_KNOWLEDGE_BASE_PATH = Path(__file__).parent.parent / "config" / "knowledge_base.json"


class IngredientCategory(str, Enum):
    PROTEIN = "protein"
    PRODUCE = "produce"
    DAIRY = "dairy"
    PANTRY = "pantry"
    SPICES = "spices"
    GRAINS = "grains"
    CONDIMENTS = "condiments"
    BAKING = "baking"
    FROZEN = "frozen"
    BEVERAGES = "beverages"
    OTHER = "other"


class UnitType(str, Enum):
    VOLUME = "volume"
    WEIGHT = "weight"
    COUNT = "count"
    LENGTH = "length"
    OTHER = "other"


class ModifierType(str, Enum):
    PREPARATION = "preparation"  # chopped, diced, minced
    STATE = "state"              # fresh, frozen, canned
    QUALITY = "quality"          # boneless, organic
    SIZE = "size"                # large, small
    COOKING = "cooking"          # roasted, toasted
    OTHER = "other"


def _make_id(kind: str, name: str) -> str:
    return f"{kind}:{name.strip().lower()}"


@dataclass(frozen=True)
class KnownIngredient:
    """A canonical ingredient with its alternate names."""
    id: str
    name: str
    category: IngredientCategory = IngredientCategory.OTHER
    aliases: tuple[str, ...] = ()
    default_unit: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "aliases": list(self.aliases),
            "default_unit": self.default_unit,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Self:
        return cls(
            id=d.get("id") or _make_id("ingredient", d["name"]),
            name=d["name"],
            category=IngredientCategory(d.get("category", "other")),
            aliases=tuple(d.get("aliases") or ()),
            default_unit=d.get("default_unit"),
        )


@dataclass(frozen=True)
class KnownUnit:
    """A measurement unit. Conversion fields are carried for aggregation only."""
    id: str
    name: str
    abbreviation: Optional[str] = None
    aliases: tuple[str, ...] = ()
    type: UnitType = UnitType.OTHER
    base_unit: Optional[str] = None
    conversion_to_base: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "abbreviation": self.abbreviation,
            "aliases": list(self.aliases),
            "type": self.type.value,
            "base_unit": self.base_unit,
            "conversion_to_base": self.conversion_to_base,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Self:
        return cls(
            id=d.get("id") or _make_id("unit", d["name"]),
            name=d["name"],
            abbreviation=d.get("abbreviation"),
            aliases=tuple(d.get("aliases") or ()),
            type=UnitType(d.get("type", "other")),
            base_unit=d.get("base_unit"),
            conversion_to_base=d.get("conversion_to_base"),
        )


@dataclass(frozen=True)
class KnownModifier:
    """A preparation, state, quality, size or cooking descriptor."""
    id: str
    name: str
    type: ModifierType = ModifierType.OTHER
    aliases: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "aliases": list(self.aliases),
        }

    @classmethod
    def from_dict(cls, d: dict) -> Self:
        return cls(
            id=d.get("id") or _make_id("modifier", d["name"]),
            name=d["name"],
            type=ModifierType(d.get("type", "other")),
            aliases=tuple(d.get("aliases") or ()),
        )


class KnowledgeBase(ABC):
    """Read-only access to the curated ingredient, unit and modifier sets."""

    @abstractmethod
    def list_ingredients(self) -> list[KnownIngredient]:
        ...

    @abstractmethod
    def list_units(self) -> list[KnownUnit]:
        ...

    @abstractmethod
    def list_modifiers(self) -> list[KnownModifier]:
        ...

    def list_all(self) -> tuple[list[KnownIngredient], list[KnownUnit], list[KnownModifier]]:
        """All three sets from one read of the store."""
        return self.list_ingredients(), self.list_units(), self.list_modifiers()

    def find_ingredient_by_name(self, name: str) -> Optional[KnownIngredient]:
        return _find_by_name(self.list_ingredients(), name)

    def find_unit_by_name(self, name: str) -> Optional[KnownUnit]:
        return _find_by_name(self.list_units(), name)

    def find_modifier_by_name(self, name: str) -> Optional[KnownModifier]:
        return _find_by_name(self.list_modifiers(), name)


def _find_by_name(entities, name):
    if not name:
        return None
    wanted = name.strip().lower()
    for entity in entities:
        if entity.name.lower() == wanted:
            return entity
    return None


class InMemoryKnowledgeBase(KnowledgeBase):
    """Knowledge base backed by plain lists, kept in the given order."""

    def __init__(
        self,
        ingredients: Optional[list[KnownIngredient]] = None,
        units: Optional[list[KnownUnit]] = None,
        modifiers: Optional[list[KnownModifier]] = None,
    ):
        self._ingredients = list(ingredients or [])
        self._units = list(units or [])
        self._modifiers = list(modifiers or [])

    def list_ingredients(self) -> list[KnownIngredient]:
        return list(self._ingredients)

    def list_units(self) -> list[KnownUnit]:
        return list(self._units)

    def list_modifiers(self) -> list[KnownModifier]:
        return list(self._modifiers)

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Build from {"ingredients": [...], "units": [...], "modifiers": [...]}.

        Keys starting with "_" are treated as comments and ignored.
        """
        return cls(
            ingredients=[KnownIngredient.from_dict(d) for d in data.get("ingredients", [])],
            units=[KnownUnit.from_dict(d) for d in data.get("units", [])],
            modifiers=[KnownModifier.from_dict(d) for d in data.get("modifiers", [])],
        )


class JsonKnowledgeBase(KnowledgeBase):
    """Knowledge base read from a JSON seed file on every listing.

    Each call re-reads the file so edits show up without a restart. list_all()
    reads it once for all three sets; wrap the store in a KnowledgeIndex to
    avoid the rescans.
    """

    def __init__(self, path: Path = DEFAULT_KNOWLEDGE_BASE_PATH):
        self.path = Path(path)

    def _load(self) -> InMemoryKnowledgeBase:
        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return InMemoryKnowledgeBase.from_dict(data)

    def list_ingredients(self) -> list[KnownIngredient]:
        return self._load().list_ingredients()

    def list_units(self) -> list[KnownUnit]:
        return self._load().list_units()

    def list_modifiers(self) -> list[KnownModifier]:
        return self._load().list_modifiers()

    def list_all(self) -> tuple[list[KnownIngredient], list[KnownUnit], list[KnownModifier]]:
        return self._load().list_all()
