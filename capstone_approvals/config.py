"""Configuration module for the Capstone Approvals service.

Implements Pydantic v2 Settings for configuration management with support for:
- Environment variables (CAPSTONE_APPROVALS_* prefix)
- YAML/TOML configuration files
- Command-line argument overrides
- Fail-fast validation at startup

Configuration priority (later overrides earlier):
1. Built-in defaults
2. Configuration file (YAML/TOML)
3. Environment variables
4. Command-line arguments
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_APPROVAL_ACTIONS: dict[str, str] = {
    "noop": "capstone_approvals.domain.services.actions.NoOpAction",
}


class Settings(BaseSettings):
    """Application configuration with sensible defaults.

    Example:
        # Load from environment only
        settings = Settings()

        # Override specific values
        settings = Settings(environment="prod", debug=False)
    """

    model_config = SettingsConfigDict(
        env_prefix="CAPSTONE_APPROVALS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown fields
    )

    # ========================================
    # Application Settings
    # ========================================

    environment: Literal["dev", "staging", "prod"] = Field(
        default="dev", description="Deployment environment"
    )

    debug: bool = Field(default=False, description="Enable debug mode with verbose logging")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    log_format: Literal["json", "text"] = Field(default="json", description="Log output format")

    # ========================================
    # HTTP API
    # ========================================

    http_host: str = Field(
        default="127.0.0.1",
        description="HTTP server bind address (0.0.0.0 for all interfaces)",
    )

    http_port: int = Field(default=8080, ge=1, le=65535, description="HTTP server port")

    api_prefix: str = Field(default="/api/pg", description="Prefix for approval request routes")

    identity_header: str = Field(
        default="X-User-Id",
        description="Header carrying the caller id resolved by the upstream identity provider",
    )

    # ========================================
    # Database Configuration
    # ========================================

    database_url: str = Field(
        default="sqlite+aiosqlite:///./capstone_approvals.db",
        description="Database connection URL (SQLite or PostgreSQL)",
    )

    database_pool_size: int = Field(
        default=5, ge=1, le=100, description="Database connection pool size"
    )

    database_max_overflow: int = Field(
        default=10, ge=0, le=100, description="Max overflow connections beyond pool size"
    )

    database_echo: bool = Field(
        default=False, description="Echo SQL statements to logs (debug only)"
    )

    # ========================================
    # Approval Workflow
    # ========================================

    vote_max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Attempts of the vote transaction before a storage conflict is surfaced",
    )

    vote_retry_backoff_seconds: float = Field(
        default=0.05, ge=0.0, le=5.0, description="Exponential backoff base between vote attempts"
    )

    approval_actions: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_APPROVAL_ACTIONS),
        description="Mapping of action_key to the dotted path of its resolution handler",
    )

    # ========================================
    # Validators
    # ========================================

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not (
            v.startswith("sqlite:///")
            or v.startswith("sqlite+aiosqlite:///")
            or v.startswith("sqlite://")
            or v.startswith("sqlite+aiosqlite://")
            or v.startswith("postgresql://")
            or v.startswith("postgresql+asyncpg://")
            or v.startswith("postgresql+psycopg://")
        ):
            raise ValueError(
                "database_url must be SQLite (sqlite:///, sqlite+aiosqlite:///) or PostgreSQL "
                "(postgresql://, postgresql+asyncpg://, postgresql+psycopg://)"
            )
        return v

    @field_validator("approval_actions")
    @classmethod
    def validate_approval_actions(cls, v: dict[str, str]) -> dict[str, str]:
        """Require at least one registered action key."""
        if not v:
            raise ValueError("approval_actions must register at least one action key")
        return v

    @model_validator(mode="after")
    def validate_production_flags(self) -> "Settings":
        """Refuse debug mode in production."""
        if self.environment == "prod" and self.debug:
            raise ValueError("debug must be disabled in the prod environment")
        return self

    # ========================================
    # Helper Methods
    # ========================================

    @property
    def is_sqlite(self) -> bool:
        """Check if database is SQLite."""
        return self.database_url.startswith("sqlite")

    @property
    def is_postgresql(self) -> bool:
        """Check if database is PostgreSQL."""
        return self.database_url.startswith("postgresql")

    @property
    def database_driver(self) -> str:
        """Get database driver name."""
        if self.database_url.startswith("sqlite+aiosqlite://"):
            return "aiosqlite"
        elif self.database_url.startswith("sqlite://"):
            return "sqlite"
        elif self.database_url.startswith("postgresql+asyncpg://"):
            return "asyncpg"
        elif self.database_url.startswith("postgresql+psycopg://"):
            return "psycopg"
        elif self.database_url.startswith("postgresql://"):
            return "postgresql"
        else:
            return "unknown"

    @property
    def action_keys(self) -> list[str]:
        """Registered action keys, sorted."""
        return sorted(self.approval_actions)


# ========================================
# Global Settings Instance
# ========================================

_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set global settings instance.

    Args:
        settings: Settings instance to use globally
    """
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Drop the global settings instance (mainly for testing)."""
    global _settings
    _settings = None


def load_settings_from_file(config_file: Path | str) -> Settings:
    """Load settings from YAML or TOML configuration file.

    Args:
        config_file: Path to configuration file

    Returns:
        Settings instance loaded from file

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file format is invalid

    Example:
        settings = load_settings_from_file("config/prod.yaml")
        set_settings(settings)
    """
    config_path = Path(config_file)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    if suffix in [".yaml", ".yml"]:
        import yaml

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}
    elif suffix == ".toml":
        import tomllib

        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)
    else:
        raise ValueError(f"Unsupported config file format: {suffix}. Use .yaml, .yml, or .toml")

    return Settings(**config_data)
