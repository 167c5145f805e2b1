"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class MarketConfig(BaseModel):
    """Pricing and settlement parameters."""

    price_increment: int = Field(default=5, gt=0)
    flat_payout: int = Field(default=100, ge=0)
    default_points: int = Field(default=1000, ge=0)


class AuthConfig(BaseModel):
    """Credential and session parameters."""

    min_password_length: int = 4
    # Changing this after accounts exist invalidates every stored hash
    hash_iterations: int = 100_000
    salt_bytes: int = 16
    session_token_bytes: int = 24


class BootstrapConfig(BaseModel):
    """Administrator seeded into an empty users table on first run."""

    admin_username: str = "admin"
    admin_password: str = "admin"


class ServerConfig(BaseModel):
    """HTTP server parameters."""

    host: str = "127.0.0.1"
    port: int = 3000
    max_body_bytes: int = 1_000_000
    allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")

    log_level: str = "INFO"
    logfire_token: str = ""

    # Nested configuration sections
    market: MarketConfig = Field(default_factory=MarketConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    bootstrap: BootstrapConfig = Field(default_factory=BootstrapConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

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

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration from data_dir/config.yaml."""
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

            for section_name in ["market", "auth", "bootstrap", "server"]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name] or {}

                    section_dict = section.model_dump()
                    section_dict.update(yaml_section)

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
