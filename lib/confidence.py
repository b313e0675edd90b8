"""Confidence scores for parsed ingredients.

The two parsers score on different scales and downstream review thresholds
depend on both, so they are kept separate.
"""

# Rules parser: no base
RULES_WEIGHTS = {"quantity": 0.2, "unit": 0.3, "ingredient": 0.5}

# LLM parser: small base for any successful model reply
LLM_BASE = 0.1
LLM_WEIGHTS = {"quantity": 0.2, "unit": 0.3, "ingredient": 0.4}


def _score(base: float, weights: dict, quantity, unit, ingredient) -> float:
    score = base
    if quantity is not None:
        score += weights["quantity"]
    if unit is not None:
        score += weights["unit"]
    if ingredient is not None:
        score += weights["ingredient"]
    return round(min(score, 1.0), 2)


def rules_confidence(quantity, unit, ingredient) -> float:
    """Score a rules parse: 0.2 quantity + 0.3 unit + 0.5 ingredient."""
    return _score(0.0, RULES_WEIGHTS, quantity, unit, ingredient)


def llm_confidence(quantity, unit, ingredient) -> float:
    """Score an LLM parse: 0.1 base + 0.2 quantity + 0.3 unit + 0.4 ingredient."""
    return _score(LLM_BASE, LLM_WEIGHTS, quantity, unit, ingredient)
