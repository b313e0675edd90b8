"""Rules-based ingredient parser - splits quantity, unit, modifiers and item.

Each step consumes from a working string and hands the remainder on:

    normalize -> quantity -> unit -> modifiers -> clean -> resolve -> score
"""

import logging
import re
from typing import Optional

from lib.confidence import rules_confidence
from lib.entity_resolver import KnowledgeIndex
from lib.knowledge_base import KnownModifier, KnownUnit
from lib.parsed_ingredient import IngredientParser, ParsedIngredient, Quantity
from lib.text_normalizer import collapse_whitespace, normalize_text

logger = logging.getLogger(__name__)

_NUM = r'\d+(?:\.\d+)?'

# Tried in order; first match wins
MIXED_NUMBER_PATTERN = re.compile(r'^(\d+)\s+(\d+)/(\d+)\s*')
RANGE_PATTERN = re.compile(rf'^({_NUM})(?:\s*[-–]\s*|\s+to\s+)({_NUM})\s*', re.IGNORECASE)
FRACTION_PATTERN = re.compile(r'^(\d+)/(\d+)\s*')
NUMBER_PATTERN = re.compile(rf'^({_NUM})(?![\d/]|\.\d)\s*')

# Stripped from tokens before unit lookup
_TOKEN_PUNCTUATION = re.compile(r'[,;.!?()]')

# Trailing clauses that are never part of the ingredient name
TRAILING_PHRASES = [
    "to taste", "as needed", "or more", "if desired",
    "for garnish", "for serving", "optional",
]
_TRAILING_PATTERN = re.compile(
    r'(?:^|\s)(?:or\s+)?(?:' + '|'.join(re.escape(p) for p in TRAILING_PHRASES) + r')\s*$'
)


def _divide(numerator: str, denominator: str) -> Optional[float]:
    den = float(denominator)
    if den == 0:
        return None
    return float(numerator) / den


def extract_quantity(text: str) -> tuple[Quantity, str]:
    """Consume a leading quantity from normalized text.

    Grammars, in order:
    1. Mixed number "1 1/2" -> 1.5
    2. Range "3-4", "3–4" or "3 to 4" -> "3-4" (kept as a string)
    3. Fraction "3/4" -> 0.75
    4. Decimal or integer "2", "2.5" (not followed by "/")

    Args:
        text: Normalized ingredient text (e.g., "1 1/2 cups flour")

    Returns:
        (quantity, remainder). Quantity is None and nothing is consumed
        when no grammar matches or a denominator is zero.
    """
    if not text:
        return None, ""

    text = text.strip()

    match = MIXED_NUMBER_PATTERN.match(text)
    if match:
        whole, num, den = match.groups()
        fraction = _divide(num, den)
        if fraction is None:
            return None, text
        return float(whole) + fraction, text[match.end():].strip()

    match = RANGE_PATTERN.match(text)
    if match:
        low, high = match.groups()
        return f"{low}-{high}", text[match.end():].strip()

    match = FRACTION_PATTERN.match(text)
    if match:
        quantity = _divide(*match.groups())
        if quantity is None:
            return None, text
        return quantity, text[match.end():].strip()

    match = NUMBER_PATTERN.match(text)
    if match:
        return float(match.group(1)), text[match.end():].strip()

    return None, text


def match_unit(
    text: str,
    unit_lookup: dict[str, KnownUnit],
    case_lookup: Optional[dict[str, KnownUnit]] = None,
) -> tuple[Optional[KnownUnit], Optional[str], str]:
    """Find the first unit phrase in text.

    Scans each start position left to right, trying the two-token window
    before the single token, so "fl oz" wins over "fl". Each window is
    looked up as written in case_lookup first, then lowercased in
    unit_lookup, so "T" and "t" can name different units.

    Args:
        text: Text left after quantity extraction
        unit_lookup: Lowercased name/abbreviation/alias -> KnownUnit
        case_lookup: Name/abbreviation/alias as written -> KnownUnit

    Returns:
        (unit, matched_text, remainder). (None, None, text) when nothing matches.
    """
    case_lookup = case_lookup or {}
    words = text.split()
    clean_words = [_TOKEN_PUNCTUATION.sub('', w) for w in words]

    for i in range(len(words)):
        for j in range(min(i + 2, len(words)), i, -1):
            phrase = ' '.join(clean_words[i:j])
            if not phrase:
                continue
            unit = case_lookup.get(phrase) or unit_lookup.get(phrase.lower())
            if unit:
                remainder = ' '.join(words[:i] + words[j:])
                return unit, phrase, remainder.strip()

    return None, None, text


def _word_pattern(phrase: str) -> re.Pattern:
    return re.compile(r'(?<!\w)' + re.escape(phrase) + r'(?!\w)', re.IGNORECASE)


def extract_modifiers(
    text: str, modifier_lookup: dict[str, KnownModifier]
) -> tuple[list[KnownModifier], list[str], str]:
    """Strip known modifier phrases from text, longest phrase first.

    "extra virgin" is tried before "virgin", and each hit is erased from
    the working text before shorter keys are tried. Passes repeat until
    nothing matches, so running this on its own output finds nothing.

    Args:
        text: Text left after unit extraction
        modifier_lookup: Lowercased name/alias -> KnownModifier

    Returns:
        (modifiers, matched_texts, remainder). Modifiers are de-duplicated
        by id; matched_texts follow the same order.
    """
    keys = sorted(modifier_lookup, key=len, reverse=True)
    modifiers = []
    modifier_texts = []
    seen_ids = set()
    working = text

    matched = True
    while matched:
        matched = False
        for key in keys:
            pattern = _word_pattern(key)
            if not pattern.search(working):
                continue
            matched = True
            modifier = modifier_lookup[key]
            if modifier.id not in seen_ids:
                seen_ids.add(modifier.id)
                modifiers.append(modifier)
                modifier_texts.append(key)
            working = pattern.sub(' ', working)

    return modifiers, modifier_texts, collapse_whitespace(working)


def clean_ingredient_text(text: str) -> str:
    """Reduce leftover text to an ingredient name candidate.

    Drops everything after the first comma ("..., drained"), parenthetical
    asides and trailing phrases like "to taste". A bracket left unpaired
    once the unit was taken out ("(15 can beans") goes with its word.
    """
    cleaned = re.sub(r',.*$', '', text)
    cleaned = re.sub(r'\(.*?\)', '', cleaned)
    cleaned = re.sub(r'\(\S*|\S*\)', '', cleaned)
    cleaned = _TRAILING_PATTERN.sub('', cleaned.strip())
    return collapse_whitespace(cleaned)


class RulesIngredientParser(IngredientParser):
    """Deterministic grammar and lookup based parser.

    Never raises: every step degrades to None or an empty list.
    """

    def __init__(self, index: KnowledgeIndex):
        self.index = index

    def parser_type(self) -> str:
        return "rules"

    async def parse(self, text: str) -> ParsedIngredient:
        original_text = (text or "").strip()
        try:
            return self._parse(original_text)
        except Exception:
            logger.exception("Rules parsing failed for %r", original_text)
            return ParsedIngredient.empty(original_text)

    def _parse(self, original_text: str) -> ParsedIngredient:
        snap = self.index.snapshot()

        quantity, working = extract_quantity(normalize_text(original_text))
        unit, unit_text, working = match_unit(working, snap.unit_lookup, snap.unit_case_lookup)
        modifiers, modifier_texts, working = extract_modifiers(working.lower(), snap.modifier_lookup)

        ingredient_text = clean_ingredient_text(working)
        ingredient = snap.resolve_ingredient(ingredient_text)

        return ParsedIngredient(
            original_text=original_text,
            ingredient_text=ingredient_text,
            quantity=quantity,
            unit=unit,
            unit_text=unit_text,
            ingredient=ingredient,
            modifiers=modifiers,
            modifier_texts=modifier_texts,
            confidence=rules_confidence(quantity, unit, ingredient),
        )
