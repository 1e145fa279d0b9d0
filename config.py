from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import structlog
from dotenv import load_dotenv

from errors import ConfigurationError

BASE_DIR = Path(__file__).parent
ENV_PATH = BASE_DIR / ".env"

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_ENCODE_CONCURRENCY = 4
API_KEY_NAMES = ("GEMINI_API_KEY", "GOOGLE_AI_STUDIO_API", "API_KEY")

load_dotenv(ENV_PATH)


@dataclass(frozen=True)
class Settings:
    api_key: str
    model: str = DEFAULT_MODEL
    temperature: Optional[float] = None
    encode_concurrency: int = DEFAULT_ENCODE_CONCURRENCY
    log_level: str = "INFO"

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY environment variable is not set.")
        return self.api_key


def _clean_env_value(value: str) -> str:
    cleaned = value.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in {"'", '"'}:
        return cleaned[1:-1]
    return cleaned


def _resolve_api_key(env: dict[str, str]) -> str:
    for name in API_KEY_NAMES:
        value = _clean_env_value(env.get(name) or "")
        if value:
            return value
    return ""


def _int_env(env: dict[str, str], name: str, default: int) -> int:
    value = (env.get(name) or "").strip()
    if not value:
        return default
    try:
        return max(1, int(value))
    except ValueError:
        return default


def _float_env(env: dict[str, str], name: str) -> Optional[float]:
    value = (env.get(name) or "").strip()
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def load_settings(env: Optional[dict[str, str]] = None) -> Settings:
    """Build settings from the process environment (or an explicit mapping).

    A missing API key is not an error here; it surfaces when a generation
    attempt calls ``Settings.require_api_key``.
    """
    if env is None:
        env = dict(os.environ)
    return Settings(
        api_key=_resolve_api_key(env),
        model=_clean_env_value(env.get("GEMINI_MODEL") or "") or DEFAULT_MODEL,
        temperature=_float_env(env, "GEMINI_TEMPERATURE"),
        encode_concurrency=_int_env(env, "ENCODE_CONCURRENCY", DEFAULT_ENCODE_CONCURRENCY),
        log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
    )
