"""
Judging Settings

Centralized configuration for the judging core.
All values are loaded from environment variables (and a local .env file).
"""
import os
from decimal import Decimal, InvalidOperation
from typing import List, Tuple

from dotenv import load_dotenv

load_dotenv()


DEFAULT_DOMAINS = (
    "fintech:Fintech,"
    "healthtech:Healthtech,"
    "edtech:Edtech,"
    "sustainability:Sustainability,"
    "open-innovation:Open Innovation"
)


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable."""
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}")


def get_decimal_env(key: str, default: str) -> Decimal:
    """Get a Decimal value from environment variable."""
    value = os.getenv(key, default)
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ValueError(f"{key} must be numeric, got {value!r}")


def parse_domains(raw: str) -> List[Tuple[str, str]]:
    """
    Parse a ``key:Name,key:Name`` domain list.

    Keys are lower-cased and stripped. Duplicate keys are rejected.
    """
    domains: List[Tuple[str, str]] = []
    seen = set()
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        if ":" not in chunk:
            raise ValueError(f"Domain entry {chunk!r} must look like key:Name")
        key, name = chunk.split(":", 1)
        key = key.strip().lower()
        name = name.strip()
        if not key or not name:
            raise ValueError(f"Domain entry {chunk!r} has an empty key or name")
        if key in seen:
            raise ValueError(f"Duplicate domain key {key!r}")
        seen.add(key)
        domains.append((key, name))
    return domains


class JudgingSettings:
    """
    Settings for the judging core.

    Rubric bounds and the promotion cutoff are configuration, never
    constants inside the engines.
    """

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./hackjudge.db")
    SQL_ECHO: bool = get_bool_env("SQL_ECHO", False)
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Rubric bounds (inclusive, lower bound is always 0)
    CRITERION_MAX_SCORE: Decimal = get_decimal_env("CRITERION_MAX_SCORE", "10")
    BONUS_MAX_SCORE: Decimal = get_decimal_env("BONUS_MAX_SCORE", "5")

    # Teams ranked at or above this cutoff in their domain qualify for Round 2
    ROUND_TWO_PROMOTION_CUTOFF: int = get_int_env("ROUND_TWO_PROMOTION_CUTOFF", 3)

    DOMAINS: List[Tuple[str, str]] = parse_domains(os.getenv("HACKJUDGE_DOMAINS", DEFAULT_DOMAINS))

    @classmethod
    def as_dict(cls) -> dict:
        """Get all settings as a dictionary."""
        return {
            key: value
            for key, value in cls.__dict__.items()
            if key.isupper()
        }


# Singleton instance for easy importing
settings = JudgingSettings()
