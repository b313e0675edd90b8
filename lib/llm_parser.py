"""LLM-assisted ingredient parser.

The model splits the line; the knowledge index resolves what it returns.
Provider failures never escape parse(): they are logged with a failure
category and turned into a zero-confidence result.
"""

import logging

from lib.confidence import llm_confidence
from lib.entity_resolver import KnowledgeIndex
from lib.failure_logger import classify_error
from lib.ingredient_validator import validate_llm_payload
from lib.llm_client import LLMClient, ProviderError
from lib.parsed_ingredient import IngredientParser, ParsedIngredient
from lib.text_normalizer import normalize_text

logger = logging.getLogger(__name__)


class LLMIngredientParser(IngredientParser):

    def __init__(self, index: KnowledgeIndex, client: LLMClient):
        self.index = index
        self.client = client

    def parser_type(self) -> str:
        return "llm"

    async def parse(self, text: str) -> ParsedIngredient:
        original_text = (text or "").strip()
        cleaned_text = normalize_text(original_text)

        logger.debug("Sent to LLM: %r (original: %r)", cleaned_text, original_text)

        try:
            payload = await self.client.complete(cleaned_text)
            logger.debug("LLM result: %s", payload)
            result = validate_llm_payload(payload)
        except ProviderError as e:
            category = classify_error(e)
            logger.warning("LLM parsing failed for %r [%s]: %s", original_text, category, e)
            return ParsedIngredient.empty(original_text)

        return self._resolve(original_text, result)

    def _resolve(self, original_text: str, result: dict) -> ParsedIngredient:
        snap = self.index.snapshot()
        ingredient = snap.resolve_ingredient(result["ingredient"])
        unit = snap.resolve_unit(result["unit"])

        modifiers = []
        modifier_texts = []
        seen_ids = set()
        for modifier_text in result["modifiers"]:
            # Unresolved texts are kept for review
            if modifier_text not in modifier_texts:
                modifier_texts.append(modifier_text)
            modifier = snap.resolve_modifier(modifier_text)
            if modifier and modifier.id not in seen_ids:
                seen_ids.add(modifier.id)
                modifiers.append(modifier)

        quantity = result["quantity"]
        return ParsedIngredient(
            original_text=original_text,
            ingredient_text=result["ingredient"],
            quantity=quantity,
            unit=unit,
            unit_text=result["unit"],
            ingredient=ingredient,
            modifiers=modifiers,
            modifier_texts=modifier_texts,
            confidence=llm_confidence(quantity, unit, ingredient),
        )
