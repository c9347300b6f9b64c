"""
Home Pager Backend — Application Configuration
================================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with defined fallback rules.
       A malformed value never stops the service; it falls back to a default.
How:   Pydantic Settings reads from environment variables (or .env file),
       `before` validators normalize the raw strings, and a frozen singleton
       `settings` object is exposed.
Who:   Imported by the application factory and the lifecycle coordinator.
When:  Loaded once at module import time; immutable afterwards.

Fallback Rules:
    PORT                 absent or empty            → "8080"
    KUBERNETES_TIMEOUT   bare integer               → that many seconds
                         duration string ("250ms")  → parsed duration
                         absent / <= 0 / garbage    → 10 seconds

Duration strings follow the Go `time.ParseDuration` grammar used by the
Kubernetes tooling the chart is shared with: a sequence of decimal numbers
each followed by a unit (ns, us, µs, ms, s, m, h), e.g. "1m30s" or "1.5h".
"""

import re
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_PORT = "8080"
DEFAULT_UPSTREAM_TIMEOUT = 10.0  # seconds

# Seconds per unit for Go-style duration strings
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # U+00B5 micro sign
    "μs": 1e-6,  # U+03BC greek mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)"
_DURATION_RE = re.compile(rf"(?:{_DURATION_PART})+")
_DURATION_PART_RE = re.compile(_DURATION_PART)
_INTEGER_RE = re.compile(r"[+-]?\d+")


def parse_duration(raw: str) -> Optional[float]:
    """
    Parse a Go-style duration string into seconds.

    Returns None when the string does not follow the grammar. "0" is the
    only unit-less value accepted, matching the Go parser.
    """
    text = raw.strip()
    sign = 1.0
    if text[:1] in ("+", "-"):
        if text[0] == "-":
            sign = -1.0
        text = text[1:]

    if text == "0":
        return 0.0
    if not text or not _DURATION_RE.fullmatch(text):
        return None

    total = sum(
        float(number) * _DURATION_UNITS[unit]
        for number, unit in _DURATION_PART_RE.findall(text)
    )
    return sign * total


def resolve_timeout(raw: Optional[str], fallback: float = DEFAULT_UPSTREAM_TIMEOUT) -> float:
    """
    Resolve the upstream timeout from its raw environment value.

    What:    Integer seconds first, duration string second, fallback last.
    Returns: A strictly positive number of seconds.
    """
    text = (raw or "").strip()
    if not text:
        return fallback

    if _INTEGER_RE.fullmatch(text):
        seconds = int(text)
        return float(seconds) if seconds > 0 else fallback

    parsed = parse_duration(text)
    if parsed is not None and parsed > 0:
        return parsed
    return fallback


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have defaults that work for local development outside a
    cluster. The Kubernetes service host/port are deliberately NOT settings:
    they are read at request time so readiness and fetch reflect the live
    environment.
    """

    # ── Server ────────────────────────────────────────────────────────────
    # What: TCP port the listener binds to. Kept as a string; validated at bind.
    port: str = Field(default=DEFAULT_PORT)
    host: str = Field(default="0.0.0.0")

    # ── Upstream ──────────────────────────────────────────────────────────
    # What: Ceiling for one control-plane round trip, in seconds
    kubernetes_timeout: float = Field(default=DEFAULT_UPSTREAM_TIMEOUT)

    # ── Static Assets ─────────────────────────────────────────────────────
    # What: Directory served for every path not claimed by an API route
    static_root: str = Field(default="./static")

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("port", mode="before")
    @classmethod
    def default_empty_port(cls, v: object) -> str:
        """Empty or missing PORT falls back to 8080."""
        if v is None:
            return DEFAULT_PORT
        text = str(v).strip()
        return text or DEFAULT_PORT

    @field_validator("kubernetes_timeout", mode="before")
    @classmethod
    def resolve_kubernetes_timeout(cls, v: object) -> float:
        if isinstance(v, (int, float)):
            return float(v) if v > 0 else DEFAULT_UPSTREAM_TIMEOUT
        return resolve_timeout(None if v is None else str(v))

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "frozen": True,
    }


# Singleton instance — configuration is immutable after startup
settings = Settings()
