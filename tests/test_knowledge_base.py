"""Tests for knowledge base module"""

import json
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from lib.knowledge_base import (
    DEFAULT_KNOWLEDGE_BASE_PATH,
    IngredientCategory,
    InMemoryKnowledgeBase,
    JsonKnowledgeBase,
    KnownIngredient,
    KnownModifier,
    KnownUnit,
    ModifierType,
    UnitType,
)


class TestKnownEntities:
    """Tests for entity dataclasses"""

    def test_ingredient_from_dict_defaults(self):
        """Missing fields get defaults and a derived id"""
        ingredient = KnownIngredient.from_dict({"name": "Chicken Broth"})
        assert ingredient.id == "ingredient:chicken broth"
        assert ingredient.category == IngredientCategory.OTHER
        assert ingredient.aliases == ()
        assert ingredient.default_unit is None

    def test_ingredient_to_dict(self):
        """Serializes enum values and alias lists"""
        ingredient = KnownIngredient(
            id="ingredient:salt", name="Salt", category=IngredientCategory.SPICES,
            aliases=("sea salt",), default_unit="teaspoon",
        )
        assert ingredient.to_dict() == {
            "id": "ingredient:salt",
            "name": "Salt",
            "category": "spices",
            "aliases": ["sea salt"],
            "default_unit": "teaspoon",
        }

    def test_unit_from_dict(self):
        """Reads conversion fields"""
        unit = KnownUnit.from_dict({
            "name": "cup", "abbreviation": "c", "aliases": ["cups"],
            "type": "volume", "base_unit": "ml", "conversion_to_base": 236.588,
        })
        assert unit.id == "unit:cup"
        assert unit.type == UnitType.VOLUME
        assert unit.aliases == ("cups",)
        assert unit.conversion_to_base == 236.588

    def test_modifier_keeps_explicit_id(self):
        """An explicit id is not replaced"""
        modifier = KnownModifier.from_dict({"id": "m-1", "name": "diced", "type": "preparation"})
        assert modifier.id == "m-1"
        assert modifier.type == ModifierType.PREPARATION

    def test_unknown_category_raises(self):
        """Unknown enum values are rejected"""
        with pytest.raises(ValueError):
            KnownIngredient.from_dict({"name": "Mystery", "category": "mystery"})


class TestInMemoryKnowledgeBase:
    """Tests for the in-memory store"""

    def test_lists_in_given_order(self):
        """Listings keep insertion order"""
        store = InMemoryKnowledgeBase.from_dict({
            "_comment": "ignored",
            "ingredients": [{"name": "B"}, {"name": "A"}],
        })
        assert [i.name for i in store.list_ingredients()] == ["B", "A"]
        assert store.list_units() == []
        assert store.list_modifiers() == []

    def test_listing_is_a_copy(self):
        """Callers cannot mutate the store through a listing"""
        store = InMemoryKnowledgeBase.from_dict({"ingredients": [{"name": "Salt"}]})
        store.list_ingredients().clear()
        assert len(store.list_ingredients()) == 1

    def test_find_by_name(self):
        """Finds by exact name, case-insensitive"""
        store = InMemoryKnowledgeBase.from_dict({
            "ingredients": [{"name": "Salt", "aliases": ["sea salt"]}],
            "units": [{"name": "cup"}],
            "modifiers": [{"name": "diced"}],
        })
        assert store.find_ingredient_by_name("salt").name == "Salt"
        assert store.find_ingredient_by_name("sea salt") is None
        assert store.find_unit_by_name("CUP").name == "cup"
        assert store.find_modifier_by_name("diced").name == "diced"
        assert store.find_modifier_by_name("") is None


class TestJsonKnowledgeBase:
    """Tests for the JSON seed file store"""

    def test_seed_file_loads(self):
        """The bundled seed file has all three sets"""
        store = JsonKnowledgeBase(DEFAULT_KNOWLEDGE_BASE_PATH)
        assert store.find_ingredient_by_name("Chicken Broth") is not None
        assert store.find_unit_by_name("cup") is not None
        assert store.find_modifier_by_name("diced") is not None

    def test_seed_ids_are_unique(self):
        """No two seed entities share an id"""
        store = JsonKnowledgeBase()
        for entities in (store.list_ingredients(), store.list_units(), store.list_modifiers()):
            ids = [e.id for e in entities]
            assert len(ids) == len(set(ids))

    def test_rereads_file(self):
        """Edits to the file show up on the next listing"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "kb.json"
            path.write_text(json.dumps({"ingredients": [{"name": "Salt"}]}))
            store = JsonKnowledgeBase(path)
            assert len(store.list_ingredients()) == 1

            path.write_text(json.dumps({"ingredients": [{"name": "Salt"}, {"name": "Pepper"}]}))
            assert len(store.list_ingredients()) == 2

    def test_missing_file_raises(self):
        """A missing file is an error, not an empty store"""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = JsonKnowledgeBase(Path(tmpdir) / "missing.json")
            with pytest.raises(FileNotFoundError):
                store.list_units()

    def test_list_all_reads_file_once(self):
        """All three sets come from a single read"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "kb.json"
            path.write_text(json.dumps({
                "ingredients": [{"name": "Salt"}],
                "units": [{"name": "cup"}],
                "modifiers": [{"name": "diced"}],
            }))
            store = JsonKnowledgeBase(path)

            with patch.object(store, '_load', wraps=store._load) as mock_load:
                ingredients, units, modifiers = store.list_all()

            assert mock_load.call_count == 1
            assert [i.name for i in ingredients] == ["Salt"]
            assert [u.name for u in units] == ["cup"]
            assert [m.name for m in modifiers] == ["diced"]
