# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the
classroom enrollment service. Settings are loaded from environment
variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.enrollment.initial_grant)
    50
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration for the enrollment store.

    The service connects with a narrowly-scoped role that may only read
    classrooms and append students, quiz submissions and ledger entries.

    Attributes:
        url_override: Full connection URL; takes precedence over components.
        migration_url_override: Connection URL for the schema owner. Migrations
            create tables and triggers, which the service role may not do.
        migrate_on_startup: Apply pending migrations when the API starts.
        user: PostgreSQL role used by the service.
        password: Password for the service role.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        isolation_level: Transaction isolation level for PostgreSQL.
        sqlite_busy_timeout: Seconds a SQLite writer waits for the lock.
        echo: Whether SQLAlchemy echoes SQL statements.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
        populate_by_name=True,
    )

    url_override: str | None = Field(
        default=None,
        validation_alias="DATABASE_URL",
    )
    migration_url_override: str | None = Field(
        default=None,
        validation_alias="MIGRATION_DATABASE_URL",
    )
    migrate_on_startup: bool = False
    user: str = "enrollment_service"
    password: SecretStr = SecretStr("enrollment_service_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "classroom_enrollment"
    pool_size: int = 20
    max_overflow: int = 40
    isolation_level: Literal["READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE"] = (
        "READ COMMITTED"
    )
    sqlite_busy_timeout: float = 30.0
    echo: bool = False

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def migration_url(self) -> str:
        """URL migrations connect with; the service URL when no owner is set."""
        return self.migration_url_override or self.url

    @property
    def is_sqlite(self) -> bool:
        """Check whether the configured backend is SQLite."""
        return self.url.startswith("sqlite")


class EnrollmentSettings(BaseSettings):
    """Enrollment transaction configuration.

    The suffix length and attempt bounds are documented together: with the
    32-symbol alphabet and a 4-character suffix there are 1,048,576 codes per
    archetype prefix, so a single attempt collides with probability under 1%
    while fewer than ~10,000 students share a prefix.

    Attributes:
        initial_grant: Coins granted on successful enrollment.
        code_suffix_length: Identity code suffix length.
        max_code_attempts: Identity code insert attempts per transaction.
        max_transaction_attempts: Whole-transaction attempts on transient errors.
        retry_base_delay: Initial backoff delay in seconds.
        retry_max_delay: Maximum backoff delay in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENROLLMENT_",
        extra="ignore",
    )

    initial_grant: int = Field(default=50, gt=0)
    code_suffix_length: int = Field(default=4, ge=3, le=8)
    max_code_attempts: int = Field(default=5, ge=1, le=20)
    max_transaction_attempts: int = Field(default=3, ge=1, le=10)
    retry_base_delay: float = Field(default=0.05, ge=0.0)
    retry_max_delay: float = Field(default=1.0, ge=0.0)


class LedgerSettings(BaseSettings):
    """Currency ledger configuration.

    Attributes:
        max_entry_amount: Largest absolute amount accepted for one entry.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore",
    )

    max_entry_amount: int = Field(default=10000, gt=0)


class RateLimitSettings(BaseSettings):
    """Rate limiting configuration.

    Attributes:
        enabled: Whether rate limiting is applied.
        storage_uri: slowapi storage backend URI.
        submit_per_ip: Quiz submissions allowed per client IP.
        submit_per_class: Quiz submissions allowed per class code.
        eligibility_per_ip: Eligibility checks allowed per client IP.
    """

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        extra="ignore",
    )

    enabled: bool = True
    storage_uri: str = "memory://"
    submit_per_ip: str = "10/minute"
    submit_per_class: str = "200/minute"
    eligibility_per_ip: str = "60/minute"


class CORSSettings(BaseSettings):
    """CORS configuration for API.

    Attributes:
        origins: Comma-separated list of allowed origins.
        allow_credentials: Whether to allow credentials.
        allow_methods: Allowed HTTP methods.
        allow_headers: Allowed HTTP headers.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True
    allow_methods: list[str] = ["GET", "POST"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into a list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        db: Database settings.
        enrollment: Enrollment transaction settings.
        ledger: Currency ledger settings.
        rate_limit: Rate limiting settings.
        cors: CORS settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "test", "staging", "production"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Subsettings - loaded with their own env prefixes
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    enrollment: EnrollmentSettings = Field(default_factory=EnrollmentSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production against SQLite or with
                the default database password.
        """
        if self.environment == "production":
            if self.db.is_sqlite:
                raise ValueError(
                    "SQLite cannot serve multiple application instances. "
                    "Set DATABASE_URL to a PostgreSQL database in production."
                )
            default_password = "enrollment_service_password"
            if (
                self.db.url_override is None
                and self.db.password.get_secret_value() == default_password
            ):
                raise ValueError(
                    "Database password must be changed from default in production. "
                    "Set DB_PASSWORD environment variable."
                )
        if self.enrollment.retry_max_delay < self.enrollment.retry_base_delay:
            raise ValueError("ENROLLMENT_RETRY_MAX_DELAY must be >= ENROLLMENT_RETRY_BASE_DELAY")
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
