"""Configuration helpers for autofill sweeps."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

DEFAULT_TRIAGE_URL = "http://localhost:5171/api/autofill/triage-fields"
TRIAGE_BACKENDS = ("none", "http", "openai")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


@dataclass
class Settings:
    """Container for environment-driven settings.

    Values are read when the instance is created, so tests can build a
    ``Settings`` after adjusting the environment or pass fields explicitly.
    """

    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))
    triage_backend: str = field(default_factory=lambda: os.getenv("CLAIMFILL_TRIAGE_BACKEND", "none").strip().lower())
    triage_url: str = field(default_factory=lambda: os.getenv("CLAIMFILL_TRIAGE_URL", DEFAULT_TRIAGE_URL))
    triage_timeout_seconds: float = field(default_factory=lambda: _env_float("CLAIMFILL_TRIAGE_TIMEOUT", 10.0))
    openai_model: str = field(default_factory=lambda: os.getenv("CLAIMFILL_OPENAI_MODEL", "gpt-4o-mini"))
    low_confidence_threshold: float = field(default_factory=lambda: _env_float("CLAIMFILL_LOW_CONFIDENCE", 0.75))
    # 0 disables the per-sweep fill limit
    max_fills_per_sweep: int = field(default_factory=lambda: _env_int("CLAIMFILL_MAX_FILLS", 0))
    sibling_text_limit: int = field(default_factory=lambda: _env_int("CLAIMFILL_SIBLING_TEXT_LIMIT", 100))
    fuzzy_score_cutoff: int = field(default_factory=lambda: _env_int("CLAIMFILL_FUZZY_CUTOFF", 88))
    ranked_min_length: int = field(default_factory=lambda: _env_int("CLAIMFILL_RANKED_MIN_LENGTH", 10))
    playwright_browser: str = field(default_factory=lambda: os.getenv("PLAYWRIGHT_BROWSER", "chromium"))
    playwright_headless: bool = field(default_factory=lambda: _env_flag("PLAYWRIGHT_HEADLESS", default=True))
    log_level: str = field(default_factory=lambda: os.getenv("CLAIMFILL_LOG_LEVEL", "INFO").upper())

    def __post_init__(self) -> None:
        if self.triage_backend not in TRIAGE_BACKENDS:
            raise ValueError(f"Unknown triage backend {self.triage_backend!r}; expected one of {', '.join(TRIAGE_BACKENDS)}")
        if not 0.0 <= self.low_confidence_threshold <= 1.0:
            raise ValueError("low_confidence_threshold must lie in [0, 1]")
        if self.max_fills_per_sweep < 0:
            raise ValueError("max_fills_per_sweep must be non-negative")

    @property
    def triage_enabled(self) -> bool:
        return self.triage_backend != "none"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["DEFAULT_TRIAGE_URL", "Settings", "TRIAGE_BACKENDS", "get_settings"]
