"""Prompt templates for LLM ingredient parsing.

Rules and worked examples are plain data so they can be reviewed, tested
and versioned apart from the parser.
"""

import json

PROMPT_VERSION = "2"

PARSING_RULES = """CRITICAL Rules for ingredient field:
- KEEP the FULL ingredient name including variety, type, color, and form
- "lemon juice" is the ingredient, NOT "lemon" with modifier "juiced"
- "flour tortillas" is the ingredient, NOT "flour"
- "Kalamata olives" is the ingredient, NOT "olives"
- "chicken broth" is the ingredient, NOT "chicken"
- "tomato paste" is the ingredient, NOT "tomato"
- "soy sauce" is the ingredient, NOT "soy"
- "olive oil" is the ingredient, NOT "oil"
- SUGARS: "granulated sugar" "brown sugar" "powdered sugar" "coconut sugar" - keep the type! "granulated" is NOT a modifier! Plain "sugar" = "granulated sugar"
- PEPPERS: Keep the FULL name! "red pepper" "bell pepper" "hungarian pepper" "serrano pepper" "poblano pepper" "jalapeño" - NEVER just "pepper"
- ONIONS: "red onion" "green onion" "white onion" "yellow onion" - keep the color!
- TOMATOES: "cherry tomatoes" "Roma tomatoes" "San Marzano tomatoes" - keep the variety!

Rules:
- ingredient: The BASE ingredient (sesame seeds, black beans, seaweed) - NOT "toasted sesame seeds" or "canned black beans"
  - EXCEPTION: Keep compound names like "lemon juice", "chicken broth", "flour tortillas", "Kalamata olives"
- quantity: Number, string for ranges "1-2", or null
  - Fractions: 1/4=0.25, 1/2=0.5, 1/3=0.33, 3/4=0.75
  - Mixed: 1 1/2=1.5
  - "1 to 2" or "1-2" -> "1-2"
  - "Some", "a few", "handful" -> null (no quantity)
- unit: Measurement (cup, tbsp, tsp, pound, oz, g, clove, can, piece) or null
- modifiers: Preparation (chopped, diced), state (toasted, canned, frozen, dried), quality (seasoned, packed)
  - "toasted" goes in modifiers, "sesame seeds" is the ingredient
  - "canned" goes in modifiers, "black beans" is the ingredient
  - Never put "to taste", "optional" or "for garnish" in modifiers"""

# (input line, expected JSON reply)
EXAMPLES = [
    ("1 Tbsp lemon juice", {"ingredient": "lemon juice", "quantity": 1, "unit": "tbsp", "modifiers": []}),
    ("4 flour tortillas", {"ingredient": "flour tortillas", "quantity": 4, "unit": "piece", "modifiers": []}),
    ("1-2 tbsp chopped pitted Kalamata olives", {"ingredient": "Kalamata olives", "quantity": "1-2", "unit": "tbsp", "modifiers": ["chopped", "pitted"]}),
    ("2 cups chicken broth", {"ingredient": "chicken broth", "quantity": 2, "unit": "cup", "modifiers": []}),
    ("1 cup cherry tomatoes, halved", {"ingredient": "cherry tomatoes", "quantity": 1, "unit": "cup", "modifiers": ["halved"]}),
    ("3 tbsp tomato paste", {"ingredient": "tomato paste", "quantity": 3, "unit": "tbsp", "modifiers": []}),
    ("2 tbsp soy sauce", {"ingredient": "soy sauce", "quantity": 2, "unit": "tbsp", "modifiers": []}),
    ("3-4 tbsp extra virgin olive oil", {"ingredient": "extra virgin olive oil", "quantity": "3-4", "unit": "tbsp", "modifiers": []}),
    ("1/4 cup diced onion", {"ingredient": "onion", "quantity": 0.25, "unit": "cup", "modifiers": ["diced"]}),
    ("2-3 garlic cloves, minced", {"ingredient": "garlic", "quantity": "2-3", "unit": "clove", "modifiers": ["minced"]}),
    ("2 boneless skinless chicken breasts", {"ingredient": "chicken breast", "quantity": 2, "unit": "piece", "modifiers": ["boneless", "skinless"]}),
    ("salt to taste", {"ingredient": "salt", "quantity": None, "unit": None, "modifiers": []}),
    ("salt and pepper", {"ingredient": "salt and pepper", "quantity": None, "unit": None, "modifiers": []}),
    ("2 hungarian red pepper, deseeded", {"ingredient": "hungarian red pepper", "quantity": 2, "unit": "piece", "modifiers": ["deseeded"]}),
    ("1 red bell pepper, diced", {"ingredient": "red bell pepper", "quantity": 1, "unit": "piece", "modifiers": ["diced"]}),
    ("2 jalapeños, sliced", {"ingredient": "jalapeño", "quantity": 2, "unit": "piece", "modifiers": ["sliced"]}),
    ("1 medium red onion, chopped", {"ingredient": "red onion", "quantity": 1, "unit": "piece", "modifiers": ["chopped"]}),
    ("3 green onions, sliced", {"ingredient": "green onion", "quantity": 3, "unit": "piece", "modifiers": ["sliced"]}),
    ("1 tbsp toasted sesame seeds", {"ingredient": "sesame seeds", "quantity": 1, "unit": "tbsp", "modifiers": ["toasted"]}),
    ("800g canned black beans", {"ingredient": "black beans", "quantity": 800, "unit": "g", "modifiers": ["canned"]}),
    ("15oz can black beans, drained", {"ingredient": "black beans", "quantity": 15, "unit": "oz", "modifiers": ["canned", "drained"]}),
    ("Some toasted seasoned seaweed", {"ingredient": "seaweed", "quantity": None, "unit": None, "modifiers": ["toasted", "seasoned"]}),
    ("a handful of fresh basil", {"ingredient": "basil", "quantity": None, "unit": "handful", "modifiers": ["fresh"]}),
    ("frozen peas", {"ingredient": "peas", "quantity": None, "unit": None, "modifiers": ["frozen"]}),
    ("1 cup granulated sugar", {"ingredient": "granulated sugar", "quantity": 1, "unit": "cup", "modifiers": []}),
    ("1/2 cup brown sugar, packed", {"ingredient": "brown sugar", "quantity": 0.5, "unit": "cup", "modifiers": ["packed"]}),
    ("2 cups powdered sugar", {"ingredient": "powdered sugar", "quantity": 2, "unit": "cup", "modifiers": []}),
    ("1 cup sugar", {"ingredient": "granulated sugar", "quantity": 1, "unit": "cup", "modifiers": []}),
]

RESPONSE_FORMAT = 'Respond with JSON only: {"ingredient":"...","quantity":...,"unit":"...","modifiers":[...]}'


def format_examples(examples=None) -> str:
    """Render worked examples as `"line" -> {json}` rows."""
    rows = []
    for line, expected in examples or EXAMPLES:
        rows.append(f'"{line}" -> {json.dumps(expected, ensure_ascii=False, separators=(",", ":"))}')
    return "\n".join(rows)


def build_system_prompt() -> str:
    """Instructions shared by every request: rules, examples, output shape."""
    return f"Parse recipe ingredients into JSON.\n\n{PARSING_RULES}\n\nExamples:\n{format_examples()}\n\n{RESPONSE_FORMAT}"


def build_user_prompt(ingredient_text: str) -> str:
    return f'Parse: "{ingredient_text}"'


def build_prompt(ingredient_text: str) -> str:
    """Single-string prompt for completion-style backends (Ollama)."""
    return f"{build_system_prompt()}\n\n{build_user_prompt(ingredient_text)}"


def build_messages(ingredient_text: str) -> list[dict]:
    """System + user message pair for chat-style backends (OpenAI)."""
    return [
        {"role": "system", "content": build_system_prompt()},
        {"role": "user", "content": build_user_prompt(ingredient_text)},
    ]
