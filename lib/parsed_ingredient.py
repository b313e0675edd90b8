"""Parse result type and the contract both ingredient parsers implement."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Self, Union

from lib.knowledge_base import KnownIngredient, KnownModifier, KnownUnit

# A single amount is a float; a range stays a "low-high" string
Quantity = Union[float, str, None]


@dataclass
class ParsedIngredient:
    """Structured form of one ingredient line.

    The *_text fields are filled even when resolution fails, so unmatched
    lines can be reviewed and fixed by a person later.
    """
    original_text: str
    ingredient_text: str
    quantity: Quantity = None
    unit: Optional[KnownUnit] = None
    unit_text: Optional[str] = None
    ingredient: Optional[KnownIngredient] = None
    modifiers: list[KnownModifier] = field(default_factory=list)
    modifier_texts: list[str] = field(default_factory=list)
    confidence: float = 0.0

    def to_dict(self) -> dict:
        return {
            "quantity": self.quantity,
            "unit": _entity_summary(self.unit, "type"),
            "unit_text": self.unit_text,
            "ingredient": _entity_summary(self.ingredient, "category"),
            "ingredient_text": self.ingredient_text,
            "modifiers": [_entity_summary(m, "type") for m in self.modifiers],
            "modifier_texts": list(self.modifier_texts),
            "original_text": self.original_text,
            "confidence": self.confidence,
        }

    @classmethod
    def empty(cls, original_text: str) -> Self:
        """Zero-confidence result used when a line could not be parsed."""
        return cls(original_text=original_text, ingredient_text=original_text)


def _entity_summary(entity, kind_field: str) -> Optional[dict]:
    if entity is None:
        return None
    return {
        "id": entity.id,
        "name": entity.name,
        kind_field: getattr(entity, kind_field).value,
    }


class IngredientParser(ABC):
    """Common contract for the rules and LLM parsers."""

    @abstractmethod
    async def parse(self, text: str) -> ParsedIngredient:
        ...

    @abstractmethod
    def parser_type(self) -> str:
        ...

    async def parse_many(self, lines: list[str]) -> list[ParsedIngredient]:
        """Parse lines concurrently; results keep the input order."""
        return list(await asyncio.gather(*(self.parse(line) for line in lines)))
