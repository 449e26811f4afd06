"""Configuration management using Pydantic Settings."""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from whisp.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SECRET_KEY_LENGTH = 64


class ClaimsConfig(BaseModel):
    """User-initiated claim path parameters."""

    protocol_fee: float = 0.02  # Share of the losing pool kept by the treasury
    lock_timeout_seconds: int = 30


class SweepConfig(BaseModel):
    """Backup settlement sweep parameters."""

    interval_seconds: int = 30
    idle_interval_seconds: int = 10
    grace_period_hours: int = 48
    lock_timeout_seconds: int = 60
    max_parallel_markets: int = 1


class FeesConfig(BaseModel):
    """Treasury fee retry queue parameters."""

    max_retries: int = 5
    batch_size: int = 10
    retry_interval_minutes: int = 60
    lock_timeout_seconds: int = 60


class RateLimit(BaseModel):
    """Requests allowed per identity within one window."""

    max_requests: int
    window_seconds: int = 60


class RateLimitsConfig(BaseModel):
    """Per-operation request budgets."""

    claim: RateLimit = Field(default_factory=lambda: RateLimit(max_requests=10))
    deposit: RateLimit = Field(default_factory=lambda: RateLimit(max_requests=5))
    status: RateLimit = Field(default_factory=lambda: RateLimit(max_requests=20))
    cleanup_interval_seconds: int = 300


class Settings(BaseSettings):
    """Main configuration class."""

    # Application
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Paths
    data_dir: Path = Path("data")

    # Storage and broker
    database_url: str = "sqlite+aiosqlite:///./whisp.db"
    redis_url: str = "redis://localhost:6379/0"

    # Secrets
    logfire_token: str = ""
    cron_secret: str = ""
    vault_secret_key: str = ""

    # Protocol wallets (public, safe to expose)
    vault_address: str = "92Xoz2ZNC4RjTpPCUizwKRgXBAe7tJ1XNtZiFGFXKiMJ"
    treasury_address: str = "EBybdh3Jzjjue48HU6tYhUqPhg1LfEzjkzmcCRqDcbcA"

    # External services
    oracle_base_url: str = "https://prediction-market-api.jup.ag/api/v1"
    payment_rail_url: str = "http://localhost:8787"
    paper_mode: bool = True

    # Nested configuration sections
    claims: ClaimsConfig = Field(default_factory=ClaimsConfig)
    sweep: SweepConfig = Field(default_factory=SweepConfig)
    fees: FeesConfig = Field(default_factory=FeesConfig)
    rate_limits: RateLimitsConfig = Field(default_factory=RateLimitsConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    @field_validator("database_url")
    @classmethod
    def use_async_driver(cls, v: str) -> str:
        """Upgrade plain PostgreSQL URLs to the asyncpg driver."""
        for prefix in ("postgresql+psycopg2://", "postgresql://", "postgres://"):
            if v.startswith(prefix):
                return "postgresql+asyncpg://" + v[len(prefix):]
        return v

    @property
    def cors_origins(self) -> List[str]:
        """Parse comma-separated origins into a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"

    def get_vault_secret_key(self) -> bytes:
        """Parse the vault keypair, raising ConfigurationError when unusable."""
        return parse_secret_key(self.vault_secret_key, name="VAULT_SECRET_KEY")

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.debug(f"Config file not found: {config_path}. Using defaults.")
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in ["claims", "sweep", "fees", "rate_limits"]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    section_dict = section.model_dump()
                    section_dict.update(yaml_config[section_name])
                    setattr(self, section_name, section.__class__(**section_dict))

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise


def parse_secret_key(value: str, name: str = "secret key") -> bytes:
    """
    Parse a 64-byte secret key.

    Accepts a JSON array (``[1,2,3,...]``) or a comma-separated list
    (``1,2,3,...``) of byte values.
    """
    key_str = (value or "").strip()
    if not key_str:
        raise ConfigurationError(f"{name} is not set")

    try:
        if key_str.startswith("["):
            values = json.loads(key_str)
        else:
            values = [int(part.strip(), 10) for part in key_str.split(",")]
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"Failed to parse {name}: {e}") from e

    if not isinstance(values, list) or len(values) != SECRET_KEY_LENGTH:
        length = len(values) if isinstance(values, list) else 0
        raise ConfigurationError(
            f"Failed to parse {name}: expected {SECRET_KEY_LENGTH} bytes, got {length}"
        )

    if any(not isinstance(n, int) or isinstance(n, bool) or n < 0 or n > 255 for n in values):
        raise ConfigurationError(f"Failed to parse {name}: invalid byte values")

    return bytes(values)


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
