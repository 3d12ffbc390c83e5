"""Configuration settings for ledgerfix."""

import json
from decimal import Decimal
from functools import lru_cache
from typing import Annotated, Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Settings read from LEDGERFIX_* environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGERFIX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Store
    db_path: Optional[str] = Field(default=None, description="SQLite database file")
    factory_id: Optional[str] = Field(
        default=None, description="Restrict scans and postings to one factory"
    )
    batch_size: int = Field(
        default=500, ge=1, le=500, description="Max write operations per store batch"
    )

    # Reconciliation
    tolerance: Decimal = Field(
        default=Decimal("0.01"), ge=0, description="Imbalance tolerance"
    )
    account_roles: dict[str, str] = Field(
        default_factory=dict,
        description="Logical role to account id, e.g. {\"CAPITAL\": \"301\"}",
    )
    debit_normal_partner_types: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["CUSTOMER"],
        description="Partner types whose balance is debit minus credit",
    )
    renumber_start: int = Field(default=1001, ge=1, description="First number for renumbered ids")
    duplicate_entry_threshold: int = Field(
        default=12, ge=1, description="Leg count above which a group is a duplicate suspect"
    )
    legs_per_posting: int = Field(
        default=6, ge=1, description="Typical leg count of one invoice posting"
    )

    # Destructive operations
    admin_pin: Optional[SecretStr] = Field(
        default=None, description="Authorization code for data resets"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING", description="Logging level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log output format"
    )

    @field_validator("account_roles", mode="before")
    @classmethod
    def _parse_roles(cls, value):
        if isinstance(value, str):
            return json.loads(value) if value.strip() else {}
        return value

    @field_validator("debit_normal_partner_types", mode="before")
    @classmethod
    def _parse_partner_types(cls, value):
        if isinstance(value, str):
            if value.strip().startswith("["):
                return json.loads(value)
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
