"""Failure logging for ingredient parsing.

Classifies provider errors for log messages, and writes structured JSON
logs of lines that need human review.
"""
import json
import time
from collections import Counter
from datetime import datetime
from pathlib import Path

from lib.llm_client import ProviderError, ProviderRequestError

FAILURES_DIR_NAME = "failures"
SECONDS_PER_DAY = 24 * 60 * 60

# Error classification patterns
_OLLAMA_PATTERNS = ["localhost:11434", "ollama", "11434"]
_NETWORK_PATTERNS = ["cannot connect", "connection refused", "connection error", "dns", "unreachable"]

# Provider exceptions map straight to a category
_PROVIDER_CATEGORIES = {
    "ProviderTimeout": "timeout",
    "ProviderRateLimited": "rate_limit",
    "ProviderMalformedResponse": "malformed",
    "ProviderAuthMissing": "auth",
}


def classify_error(error: ProviderError) -> str:
    """Classify a provider error into a category for diagnostics.

    Categories: timeout, rate_limit, malformed, auth, ollama, http,
    network, unknown

    Request errors are split by cause: anything naming Ollama is "ollama"
    (a local server that is down or missing a model), an HTTP status is
    "http", and connection failures are "network".
    """
    exc_name = type(error).__name__
    if exc_name in _PROVIDER_CATEGORIES:
        return _PROVIDER_CATEGORIES[exc_name]

    msg_lower = str(error).lower()

    # Ollama errors (check before network since Ollama connection errors are specific)
    if any(p in msg_lower for p in _OLLAMA_PATTERNS):
        return "ollama"

    if isinstance(error, ProviderRequestError) and error.status_code is not None:
        return "http"

    if any(p in msg_lower for p in _NETWORK_PATTERNS):
        return "network"

    return "unknown"


def summarize_reasons(failures: list[dict]) -> dict[str, int]:
    """Count review entries per reason, most common first."""
    counts = Counter(f.get("reason", "unknown") for f in failures)
    return dict(counts.most_common())


def log_failures(
    failures: list[dict],
    total_processed: int,
    parser_type: str = "rules",
    min_confidence: float = None,
    project_root: Path = None,
) -> Path:
    """Write parsed lines that need review to a JSON file.

    The file is named <parser>-<timestamp>.json so runs of the two
    strategies over the same input can be compared side by side.

    Args:
        failures: Dicts with text, parser, confidence, reason, result, timestamp
        total_processed: Number of lines parsed in the run
        parser_type: "rules" or "llm"
        min_confidence: Threshold the run used to select failures
        project_root: Directory holding failures/ (defaults to parent of lib/)

    Returns:
        Path to the created JSON log file
    """
    if project_root is None:
        project_root = Path(__file__).parent.parent

    failures_dir = project_root / FAILURES_DIR_NAME
    failures_dir.mkdir(exist_ok=True)

    now = datetime.now()
    filepath = failures_dir / f"{parser_type}-{now.strftime('%Y-%m-%d-%H%M%S')}.json"

    data = {
        "run_timestamp": now.isoformat(timespec="seconds"),
        "parser": parser_type,
        "min_confidence": min_confidence,
        "total_processed": total_processed,
        "total_failed": len(failures),
        "reasons": summarize_reasons(failures),
        "failures": failures,
    }
    filepath.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    return filepath


def cleanup_old_failure_logs(failures_dir: Path, max_age_days: int = 30) -> int:
    """Delete review logs older than max_age_days.

    Returns:
        Number of files removed (0 when the directory does not exist)
    """
    failures_dir = Path(failures_dir)
    if not failures_dir.is_dir():
        return 0

    cutoff = time.time() - max_age_days * SECONDS_PER_DAY
    stale = [p for p in failures_dir.glob("*.json") if p.stat().st_mtime < cutoff]
    for log_file in stale:
        log_file.unlink()
    return len(stale)
