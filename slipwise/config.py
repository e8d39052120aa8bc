import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .llm import DEFAULT_MODEL

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str]
    model: str = DEFAULT_MODEL
    max_tokens: int = 1024
    timeout_s: float = 30.0
    log_level: str = "WARNING"
    out_dir: str = "slips"


def _number(name: str, default: str, cast):
    raw = os.getenv(name, default)
    try:
        value = cast(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _log_level() -> str:
    level = os.getenv("SLIPWISE_LOG_LEVEL", "WARNING").strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"SLIPWISE_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {level!r}")
    return level


def load_settings() -> Settings:
    """Read settings from the environment, after loading a local .env file if present."""
    load_dotenv(find_dotenv(usecwd=True))
    return Settings(
        api_key=os.getenv("ANTHROPIC_API_KEY") or None,
        model=os.getenv("SLIPWISE_MODEL", DEFAULT_MODEL),
        max_tokens=_number("SLIPWISE_MAX_TOKENS", "1024", int),
        timeout_s=_number("SLIPWISE_TIMEOUT_S", "30", float),
        log_level=_log_level(),
        out_dir=os.getenv("SLIPWISE_OUT_DIR", "slips"),
    )
