"""Tiered fuzzy lookup of ingredient, unit and modifier text.

Resolution order (first hit wins):
1. exact canonical name (or unit abbreviation), case-insensitive
2. exact alias, case-insensitive
3. substring in either direction against names, then aliases

Units are also looked up as written before lowercasing, so "T" and "t" can
name different units.

A KnowledgeIndex caches the lookups for a KnowledgeBase and rebuilds them on
an interval or when invalidated, so a parse never rescans the store.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from lib.knowledge_base import KnowledgeBase, KnownIngredient, KnownModifier, KnownUnit

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_SECONDS = 300.0


def _names(entity) -> list[str]:
    """Canonical name plus unit abbreviation, lowercased."""
    names = [entity.name.lower()]
    abbreviation = getattr(entity, "abbreviation", None)
    if abbreviation:
        names.append(abbreviation.lower())
    return names


def _aliases(entity) -> list[str]:
    return [alias.lower() for alias in entity.aliases if alias]


def _contains_either_way(a: str, b: str) -> bool:
    return a in b or b in a


def resolve_entity(text: Optional[str], entities: list, substring: bool = True):
    """Resolve text against a list of known entities.

    Args:
        text: Candidate text (e.g., "Chicken Broth", "stock")
        entities: KnownIngredient, KnownUnit or KnownModifier list, in
            knowledge-base order (ties resolve to the earliest entry)
        substring: Whether to fall back to substring matching

    Returns:
        The matching entity, or None. Never raises on empty input.
    """
    if not text or not text.strip():
        return None

    wanted = text.strip().lower()

    for entity in entities:
        if wanted in _names(entity):
            return entity

    for entity in entities:
        if wanted in _aliases(entity):
            return entity

    if not substring:
        return None

    for entity in entities:
        if any(_contains_either_way(name, wanted) for name in _names(entity)):
            return entity
        if any(_contains_either_way(alias, wanted) for alias in _aliases(entity)):
            return entity

    return None


def _exact_lookup(entities: list, keys_for) -> dict:
    lookup = {}
    for entity in entities:
        for key in keys_for(entity):
            lookup.setdefault(key, entity)
    return lookup


def build_lookup(entities: list) -> dict:
    """Map every lowercased name, abbreviation and alias to its entity.

    Names are registered before aliases, and the first entity to register
    a key keeps it.
    """
    lookup = _exact_lookup(entities, _names)
    for key, entity in _exact_lookup(entities, _aliases).items():
        lookup.setdefault(key, entity)
    return lookup


def build_case_lookup(entities: list) -> dict:
    """Like build_lookup, but keys keep the case they were written in.

    Lets "T" (tablespoon) and "t" (teaspoon) stay apart where the
    lowercased lookup has to pick one of them.
    """
    lookup = {}
    for entity in entities:
        for key in (entity.name, getattr(entity, "abbreviation", None)):
            if key:
                lookup.setdefault(key, entity)
    for entity in entities:
        for alias in entity.aliases:
            if alias:
                lookup.setdefault(alias, entity)
    return lookup


def search_entities(query: Optional[str], entities: list, limit: int = 20) -> list:
    """Entities whose name or an alias contains query, ordered by name.

    Queries shorter than two characters return nothing.
    """
    wanted = (query or "").strip().lower()
    if len(wanted) < 2:
        return []
    hits = [
        entity for entity in entities
        if wanted in entity.name.lower() or any(wanted in alias for alias in _aliases(entity))
    ]
    hits.sort(key=lambda entity: entity.name.lower())
    return hits[:limit]


@dataclass(frozen=True)
class IndexSnapshot:
    """One consistent build of the lookups; never mutated after creation."""
    ingredients: list
    units: list
    modifiers: list
    ingredient_names: dict
    ingredient_aliases: dict
    unit_lookup: dict
    unit_case_lookup: dict
    modifier_lookup: dict
    built_at: float

    def resolve_ingredient(self, text: Optional[str]) -> Optional[KnownIngredient]:
        """Resolve ingredient text: name, then alias, then substring."""
        if not text or not text.strip():
            return None
        wanted = text.strip().lower()
        if wanted in self.ingredient_names:
            return self.ingredient_names[wanted]
        if wanted in self.ingredient_aliases:
            return self.ingredient_aliases[wanted]
        return resolve_entity(wanted, self.ingredients)

    def resolve_unit(self, text: Optional[str]) -> Optional[KnownUnit]:
        """Resolve unit text by exact name, abbreviation or alias."""
        if not text or not text.strip():
            return None
        text = text.strip()
        return self.unit_case_lookup.get(text) or self.unit_lookup.get(text.lower())

    def resolve_modifier(self, text: Optional[str]) -> Optional[KnownModifier]:
        """Resolve modifier text by exact name or alias."""
        if not text or not text.strip():
            return None
        return self.modifier_lookup.get(text.strip().lower())

    def search_ingredients(self, query: Optional[str], limit: int = 20) -> list[KnownIngredient]:
        return search_entities(query, self.ingredients, limit)


class KnowledgeIndex:
    """Cached, read-mostly view over a KnowledgeBase.

    Readers always get a complete snapshot; a rebuild swaps in a new one.
    A parse should take one snapshot() and resolve everything against it.
    """

    def __init__(self, store: KnowledgeBase, refresh_seconds: float = DEFAULT_REFRESH_SECONDS,
                 clock=time.monotonic):
        self.store = store
        self.refresh_seconds = refresh_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: Optional[IndexSnapshot] = None

    def invalidate(self) -> None:
        """Force a rebuild on the next read."""
        with self._lock:
            self._snapshot = None

    def _build(self) -> IndexSnapshot:
        ingredients, units, modifiers = self.store.list_all()
        logger.info(
            "Built knowledge index: %d ingredients, %d units, %d modifiers",
            len(ingredients), len(units), len(modifiers),
        )
        return IndexSnapshot(
            ingredients=ingredients,
            units=units,
            modifiers=modifiers,
            ingredient_names=_exact_lookup(ingredients, _names),
            ingredient_aliases=_exact_lookup(ingredients, _aliases),
            unit_lookup=build_lookup(units),
            unit_case_lookup=build_case_lookup(units),
            modifier_lookup=build_lookup(modifiers),
            built_at=self._clock(),
        )

    def snapshot(self) -> IndexSnapshot:
        snap = self._snapshot
        if snap is not None and self._clock() - snap.built_at < self.refresh_seconds:
            return snap
        with self._lock:
            snap = self._snapshot
            if snap is None or self._clock() - snap.built_at >= self.refresh_seconds:
                snap = self._build()
                self._snapshot = snap
            return snap

    def resolve_ingredient(self, text: Optional[str]) -> Optional[KnownIngredient]:
        return self.snapshot().resolve_ingredient(text)

    def resolve_unit(self, text: Optional[str]) -> Optional[KnownUnit]:
        return self.snapshot().resolve_unit(text)

    def resolve_modifier(self, text: Optional[str]) -> Optional[KnownModifier]:
        return self.snapshot().resolve_modifier(text)

    def search_ingredients(self, query: Optional[str], limit: int = 20) -> list[KnownIngredient]:
        """Case-insensitive name/alias search, for fixing unresolved lines by hand."""
        return self.snapshot().search_ingredients(query, limit)
