"""Builds the configured ingredient parser.

Callers depend only on IngredientParser, so switching between the rules
and LLM strategies is a configuration change (INGREDIENT_PARSER_TYPE).
"""

import logging
from typing import Optional

from lib.config import ParserSettings, ParserType, load_settings
from lib.entity_resolver import KnowledgeIndex
from lib.ingredient_parser import RulesIngredientParser
from lib.knowledge_base import JsonKnowledgeBase
from lib.llm_client import LLMClient
from lib.llm_parser import LLMIngredientParser
from lib.parsed_ingredient import IngredientParser

logger = logging.getLogger(__name__)


def build_index(settings: ParserSettings) -> KnowledgeIndex:
    """Knowledge index over the JSON seed file named in settings."""
    return KnowledgeIndex(
        JsonKnowledgeBase(settings.knowledge_base_path),
        refresh_seconds=settings.kb_refresh_seconds,
    )


def create_parser(
    settings: Optional[ParserSettings] = None,
    index: Optional[KnowledgeIndex] = None,
) -> IngredientParser:
    """Create the parser selected by settings.parser_type.

    Args:
        settings: Parser settings (defaults to load_settings())
        index: Shared knowledge index (defaults to one over the seed file)

    Returns:
        RulesIngredientParser or LLMIngredientParser
    """
    if settings is None:
        settings = load_settings()
    if index is None:
        index = build_index(settings)

    if settings.parser_type is ParserType.LLM:
        parser = LLMIngredientParser(index, LLMClient(settings))
    elif settings.parser_type is ParserType.RULES:
        parser = RulesIngredientParser(index)
    else:
        raise ValueError(f"Unsupported parser type: {settings.parser_type}")

    logger.info("Using %s ingredient parser", parser.parser_type())
    return parser
