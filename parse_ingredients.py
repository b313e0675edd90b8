#!/usr/bin/env python3
"""Parse recipe ingredient lines into quantity, unit, ingredient and modifiers.

Lines come from arguments, a file (one per line) or stdin. Results below
the confidence threshold are written to failures/<parser>-<timestamp>.json for review.

Usage:
    python parse_ingredients.py "2 cups chicken broth" "1/4 cup diced onion"
    python parse_ingredients.py --file ingredients.txt
    python parse_ingredients.py --parser llm --json < ingredients.txt
    python parse_ingredients.py --file ingredients.txt --min-confidence 0.8
    python parse_ingredients.py --search pepper
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from lib.config import ParserType, load_settings
from lib.failure_logger import FAILURES_DIR_NAME, cleanup_old_failure_logs, log_failures
from lib.parser_factory import build_index, create_parser

DEFAULT_MIN_CONFIDENCE = 0.5


def read_lines(args) -> list[str]:
    """Collect non-blank ingredient lines from args, --file or stdin."""
    if args.lines:
        lines = args.lines
    elif args.file:
        lines = Path(args.file).read_text(encoding='utf-8').splitlines()
    else:
        lines = sys.stdin.read().splitlines()
    return [line for line in lines if line.strip()]


def format_result(result) -> str:
    """One-line human readable summary of a ParsedIngredient."""
    quantity = result.quantity if result.quantity is not None else "-"
    if isinstance(quantity, float) and quantity.is_integer():
        quantity = int(quantity)
    unit = result.unit.name if result.unit else (f"?{result.unit_text}" if result.unit_text else "-")
    ingredient = result.ingredient.name if result.ingredient else f"?{result.ingredient_text}"
    modifiers = ", ".join(result.modifier_texts)
    line = f"{quantity} | {unit} | {ingredient}"
    if modifiers:
        line += f" | {modifiers}"
    return f"[{result.confidence:.2f}] {line}"


def print_search(index, query: str):
    """Print known ingredients whose name or alias contains query."""
    matches = index.search_ingredients(query)
    if not matches:
        print(f"No known ingredients match '{query}'", file=sys.stderr)
        return
    for ingredient in matches:
        aliases = f" ({', '.join(ingredient.aliases)})" if ingredient.aliases else ""
        print(f"{ingredient.name}{aliases} [{ingredient.category.value}]")


def collect_failures(results, parser_type: str, min_confidence: float) -> list[dict]:
    """Results that need human review."""
    failures = []
    for result in results:
        if result.confidence >= min_confidence:
            continue
        if result.ingredient is None:
            reason = "no ingredient match"
        elif result.confidence == 0:
            reason = "parse failed"
        else:
            reason = "low confidence"
        failures.append({
            "text": result.original_text,
            "parser": parser_type,
            "confidence": result.confidence,
            "reason": reason,
            "result": result.to_dict(),
            "timestamp": datetime.now().isoformat(timespec="seconds"),
        })
    return failures


def main():
    parser = argparse.ArgumentParser(
        description="Parse recipe ingredient lines into structured data"
    )
    parser.add_argument('lines', nargs='*', help='Ingredient lines to parse')
    parser.add_argument('--file', help='File with one ingredient per line')
    parser.add_argument(
        '--parser',
        choices=[t.value for t in ParserType],
        help='Parser strategy (default: INGREDIENT_PARSER_TYPE or rules)'
    )
    parser.add_argument('--json', action='store_true', help='Print results as JSON')
    parser.add_argument(
        '--min-confidence',
        type=float,
        default=DEFAULT_MIN_CONFIDENCE,
        help=f'Log results below this confidence for review (default: {DEFAULT_MIN_CONFIDENCE})'
    )
    parser.add_argument('--search', metavar='QUERY', help='List known ingredients matching QUERY and exit')
    parser.add_argument('--verbose', '-v', action='store_true', help='Show debug logging')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    )

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if args.parser:
        settings = replace(settings, parser_type=ParserType(args.parser))

    if args.search is not None:
        print_search(build_index(settings), args.search)
        return

    try:
        lines = read_lines(args)
    except OSError as e:
        print(f"Error: Could not read {args.file}: {e}", file=sys.stderr)
        sys.exit(1)

    if not lines:
        print("No ingredient lines given.", file=sys.stderr)
        sys.exit(1)

    ingredient_parser = create_parser(settings)
    results = asyncio.run(ingredient_parser.parse_many(lines))

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False))
    else:
        for result in results:
            print(f"{result.original_text}\n  -> {format_result(result)}")

    failures = collect_failures(results, ingredient_parser.parser_type(), args.min_confidence)

    project_root = Path(__file__).parent
    removed = cleanup_old_failure_logs(project_root / FAILURES_DIR_NAME)
    if removed:
        print(f"Cleaned up {removed} old failure log(s)", file=sys.stderr)

    print(
        f"\nParsed {len(results)} line(s) with the {ingredient_parser.parser_type()} parser, "
        f"{len(failures)} need review",
        file=sys.stderr,
    )
    if failures:
        log_path = log_failures(
            failures,
            total_processed=len(results),
            parser_type=ingredient_parser.parser_type(),
            min_confidence=args.min_confidence,
            project_root=project_root,
        )
        print(f"Review log: {log_path}", file=sys.stderr)


if __name__ == "__main__":
    main()
