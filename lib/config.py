"""Parser configuration, read once from the environment (and .env)."""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from lib.knowledge_base import DEFAULT_KNOWLEDGE_BASE_PATH


class Provider(str, Enum):
    """Supported LLM backends."""
    OLLAMA = "ollama"
    OPENAI = "openai"


class ParserType(str, Enum):
    RULES = "rules"
    LLM = "llm"


DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OPENAI_URL = "https://api.openai.com/v1"
DEFAULT_MODELS = {
    Provider.OLLAMA: "llama3.2:3b",
    Provider.OPENAI: "gpt-4o-mini",
}
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_KB_REFRESH_SECONDS = 300.0


@dataclass(frozen=True)
class ParserSettings:
    parser_type: ParserType = ParserType.RULES
    provider: Provider = Provider.OLLAMA
    model: str = DEFAULT_MODELS[Provider.OLLAMA]
    ollama_url: str = DEFAULT_OLLAMA_URL
    openai_url: str = DEFAULT_OPENAI_URL
    openai_api_key: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    knowledge_base_path: Path = DEFAULT_KNOWLEDGE_BASE_PATH
    kb_refresh_seconds: float = DEFAULT_KB_REFRESH_SECONDS


def _parse_choice(enum_cls, value: str, env_name: str):
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {env_name}: {value!r}. Expected one of: {choices}") from None


def _parse_seconds(value: str, env_name: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise ValueError(f"Invalid {env_name}: {value!r}. Expected a number of seconds") from None
    if seconds <= 0:
        raise ValueError(f"Invalid {env_name}: {value!r}. Must be positive")
    return seconds


def load_settings(env: Optional[Mapping[str, str]] = None) -> ParserSettings:
    """Build settings from environment variables.

    Args:
        env: Mapping to read from. Defaults to os.environ after loading .env.

    Returns:
        ParserSettings

    Raises:
        ValueError: On an unknown parser type or provider, or a bad number.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    api_key = env.get('OPENAI_API_KEY') or None

    provider_value = env.get('LLM_PROVIDER')
    if provider_value:
        provider = _parse_choice(Provider, provider_value, 'LLM_PROVIDER')
    else:
        provider = Provider.OPENAI if api_key else Provider.OLLAMA

    return ParserSettings(
        parser_type=_parse_choice(ParserType, env.get('INGREDIENT_PARSER_TYPE', 'rules'), 'INGREDIENT_PARSER_TYPE'),
        provider=provider,
        model=env.get('LLM_MODEL') or env.get('OLLAMA_MODEL') or DEFAULT_MODELS[provider],
        ollama_url=env.get('OLLAMA_URL', DEFAULT_OLLAMA_URL).rstrip('/'),
        openai_url=env.get('OPENAI_URL', DEFAULT_OPENAI_URL).rstrip('/'),
        openai_api_key=api_key,
        timeout=_parse_seconds(env.get('LLM_TIMEOUT', str(DEFAULT_TIMEOUT_SECONDS)), 'LLM_TIMEOUT'),
        knowledge_base_path=Path(env.get('KNOWLEDGE_BASE_PATH') or DEFAULT_KNOWLEDGE_BASE_PATH),
        kb_refresh_seconds=_parse_seconds(
            env.get('KB_REFRESH_SECONDS', str(DEFAULT_KB_REFRESH_SECONDS)), 'KB_REFRESH_SECONDS'
        ),
    )
