"""Configuration management for the profanity accountant bot."""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr

DEFAULT_TERMS = [
    "fuck",
    "shit",
    "damn",
    "ass",
    "bitch",
    "crap",
    "hell",
    "bastard",
    "dick",
    "piss",
    "cunt",
    "asshole",
    "bullshit",
    "motherfucker",
    "fucker",
    "goddamn",
    "dammit",
    "wtf",
]


class BlueskyConfig(BaseModel):
    """Bluesky/ATproto connection settings."""

    handle: str = Field(..., description="Bot's Bluesky handle")
    app_password: SecretStr = Field(..., description="App password for authentication")
    service_url: str = Field(default="https://bsky.social", description="PDS base URL")


class AnalysisConfig(BaseModel):
    """Post history retrieval and caching settings."""

    freshness_hours: int = Field(default=24, ge=1, description="Hours a cached analysis stays valid")
    max_posts: int = Field(default=100, ge=1, le=25_000)
    max_age_days: int = Field(default=365, ge=1, description="Ignore posts older than N days")
    page_size: int = Field(default=100, ge=1, le=100, description="Author feed page size")
    terms: list[str] = Field(default_factory=lambda: list(DEFAULT_TERMS), min_length=1)


class BotConfig(BaseModel):
    """Bot behavior settings."""

    poll_interval: int = Field(default=60, ge=5, description="Seconds between notification checks")
    stale_claim_minutes: int = Field(
        default=20, ge=1, description="Minutes before an ANALYZING mention is reclaimable"
    )

    # Database settings
    database_path: str = Field(
        default="~/.profanity-accountant/bot.db", description="Path to SQLite database file"
    )
    cleanup_old_data_days: int = Field(default=30, description="Clean up data older than N days")


class Config(BaseModel):
    """Root configuration model."""

    bluesky: BlueskyConfig
    analysis: AnalysisConfig = AnalysisConfig()
    bot: BotConfig = BotConfig()


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from YAML file.

    Supports ${VAR_NAME} syntax for environment variable expansion.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config is invalid.
        ValueError: If referenced environment variable is not set.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            "Copy config.example.yaml to config.yaml and fill in your values."
        )

    with path.open() as f:
        raw_config = yaml.safe_load(f) or {}

    # Expand environment variables in the format ${VAR_NAME}
    def expand_env_vars(obj):
        if isinstance(obj, dict):
            return {k: expand_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [expand_env_vars(item) for item in obj]
        elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            env_var = obj[2:-1]
            value = os.getenv(env_var)
            if value is None:
                raise ValueError(f"Environment variable '{env_var}' is not set")
            return value
        return obj

    raw_config = expand_env_vars(raw_config)

    return Config(**raw_config)
