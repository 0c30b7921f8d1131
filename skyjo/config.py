"""
Centralized configuration for the Skyjo engine.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from skyjo.config import config
    print(config.SCORE_THRESHOLD)
    print(config.LOG_LEVEL)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_optional_int(key: str) -> Optional[int]:
    """Get integer environment variable, or None when unset or malformed."""
    raw = os.environ.get(key)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@dataclass
class SkyjoConfig:
    """Engine configuration."""
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Detailed per-decision AI logging
    AI_DEBUG: bool = False

    # Game rules
    SCORE_THRESHOLD: int = 100
    DEFAULT_DIFFICULTY: str = "normal"
    MIN_PLAYERS: int = 2
    MAX_PLAYERS: int = 8

    # Seed for the shared default random generator (None = OS entropy)
    SEED: Optional[int] = None

    @classmethod
    def from_env(cls) -> "SkyjoConfig":
        """Load configuration from environment variables."""
        return cls(
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            AI_DEBUG=get_env_bool("SKYJO_AI_DEBUG", False),
            SCORE_THRESHOLD=get_env_int("SCORE_THRESHOLD", 100),
            DEFAULT_DIFFICULTY=get_env("DEFAULT_DIFFICULTY", "normal").lower(),
            MIN_PLAYERS=get_env_int("MIN_PLAYERS", 2),
            MAX_PLAYERS=get_env_int("MAX_PLAYERS", 8),
            SEED=get_env_optional_int("SKYJO_SEED"),
        )


# Global config instance - loaded once at module import
config = SkyjoConfig.from_env()


def reload_config() -> SkyjoConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = SkyjoConfig.from_env()
    return config
