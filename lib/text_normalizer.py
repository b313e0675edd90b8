"""Text normalization shared by the rules and LLM ingredient parsers."""

import re

# Unicode vulgar fractions -> ASCII "n/d"
UNICODE_FRACTIONS = {
    "½": "1/2", "⅓": "1/3", "⅔": "2/3",
    "¼": "1/4", "¾": "3/4",
    "⅕": "1/5", "⅖": "2/5", "⅗": "3/5", "⅘": "4/5",
    "⅙": "1/6", "⅚": "5/6",
    "⅛": "1/8", "⅜": "3/8", "⅝": "5/8", "⅞": "7/8",
}

_BULLET_PATTERN = re.compile(r'^\s*[■□●○•◦▪▫★☆✓✔✗✘\-*#]+\s*')
# "1. " or "1) " list markers, but never the "1" in "1 cup"
_LIST_MARKER_PATTERN = re.compile(r'^\d+[.)]\s+(?=[a-zA-Z])')
_WHITESPACE_PATTERN = re.compile(r'\s+')


def replace_unicode_fractions(text: str) -> str:
    """Replace vulgar fraction glyphs with their ASCII form.

    A glyph glued to a digit ("1½") gets a space so it reads as a
    mixed number ("1 1/2").
    """
    for glyph, ascii_form in UNICODE_FRACTIONS.items():
        if glyph not in text:
            continue
        text = re.sub(r'(\d)' + glyph, r'\1 ' + ascii_form, text)
        text = text.replace(glyph, ascii_form)
    return text


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    return _WHITESPACE_PATTERN.sub(' ', text).strip()


def normalize_text(text: str) -> str:
    """Normalize a raw ingredient line.

    Steps, in order:
    1. Unicode fractions -> "n/d" (before bullet stripping, so a glyph is
       never mistaken for a bullet)
    2. Strip leading bullet/marker glyphs
    3. Strip a leading "1." / "1)" list marker when followed by a letter
    4. Collapse whitespace

    Args:
        text: Raw ingredient line (e.g., "• ½ cup sugar")

    Returns:
        Normalized line (e.g., "1/2 cup sugar"). Empty string for None.
    """
    if not text:
        return ""

    cleaned = replace_unicode_fractions(text)
    cleaned = _BULLET_PATTERN.sub('', cleaned)
    cleaned = _LIST_MARKER_PATTERN.sub('', cleaned)
    return collapse_whitespace(cleaned)
