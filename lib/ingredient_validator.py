"""Validation and clean-up of LLM ingredient replies."""

from lib.ingredient_parser import extract_quantity
from lib.llm_client import ProviderMalformedResponse

# Phrases the model sometimes returns as modifiers that describe amounts
# or serving, not the ingredient
EXCLUDED_MODIFIERS = [
    'to taste', 'or to taste', 'as needed', 'optional', 'or more',
    'if desired', 'for garnish', 'for serving', 'about', 'approximately',
]
EXCLUDED_PREFIXES = ('or ', 'about ')


def coerce_quantity(value):
    """Normalize a model-supplied quantity.

    - Numbers stay numbers (bool is not a number here)
    - Strings with "-" or " to " are ranges, kept verbatim ("3-4")
    - Other numeric strings parse to float ("1.5" -> 1.5, "1/2" -> 0.5)
    - Anything else -> None

    Args:
        value: The "quantity" field from the model reply

    Returns:
        float, range string, or None
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        trimmed = value.strip()
        if '-' in trimmed or ' to ' in trimmed:
            return trimmed
        quantity, _ = extract_quantity(trimmed)
        if isinstance(quantity, float):
            return quantity
    return None


def is_excluded_modifier(modifier: str) -> bool:
    """Check if a modifier is boilerplate like "to taste" or "about 2 cups"."""
    text = modifier.strip().lower()
    return text in EXCLUDED_MODIFIERS or text.startswith(EXCLUDED_PREFIXES)


def filter_modifiers(modifiers) -> list[str]:
    """Keep non-empty string modifiers that are not boilerplate."""
    if not isinstance(modifiers, list):
        return []
    return [
        mod for mod in modifiers
        if isinstance(mod, str) and mod.strip() and not is_excluded_modifier(mod)
    ]


def validate_llm_payload(payload) -> dict:
    """Check a decoded model reply and coerce it to the parser's shape.

    Args:
        payload: Decoded JSON reply

    Returns:
        {"ingredient": str, "quantity": float|str|None,
         "unit": str|None, "modifiers": list[str]}

    Raises:
        ProviderMalformedResponse: If payload is not an object with a
            non-empty string "ingredient".
    """
    if not isinstance(payload, dict):
        raise ProviderMalformedResponse("Invalid response: expected a JSON object")

    ingredient = payload.get('ingredient')
    if not isinstance(ingredient, str) or not ingredient.strip():
        raise ProviderMalformedResponse("Invalid response: missing ingredient")

    unit = payload.get('unit')
    return {
        "ingredient": ingredient.strip(),
        "quantity": coerce_quantity(payload.get('quantity')),
        "unit": unit.strip() if isinstance(unit, str) and unit.strip() else None,
        "modifiers": filter_modifiers(payload.get('modifiers')),
    }
