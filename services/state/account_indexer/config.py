"""Pydantic settings for Account Indexer Service behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from solders.pubkey import Pubkey

from packages.mirror_shared.config import MirrorSettings, resolve_component_settings
from services.state.account_indexer.component import SERVICE_COMPONENT_ID


class AccountIndexerSettings(BaseModel):
    """Account Indexer Service runtime behavior settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    program_id: str = "11111111111111111111111111111111"
    account_type_name: str = "ManagedAccount"
    default_event_list_limit: int = Field(default=100, gt=0)
    max_event_list_limit: int = Field(default=500, gt=0)
    lock_timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("program_id")
    @classmethod
    def _validate_program_id(cls, value: str) -> str:
        """Require a base58 program address."""
        normalized = value.strip()
        try:
            Pubkey.from_string(normalized)
        except ValueError:
            raise ValueError("program_id must be a base58 address") from None
        return normalized

    @field_validator("account_type_name")
    @classmethod
    def _validate_account_type_name(cls, value: str) -> str:
        """Require a bare type identifier for the account discriminator."""
        normalized = value.strip()
        if not normalized.isidentifier():
            raise ValueError("account_type_name must be an identifier")
        return normalized

    @model_validator(mode="after")
    def _validate_limits(self) -> "AccountIndexerSettings":
        """Keep the default page size within the maximum."""
        if self.default_event_list_limit > self.max_event_list_limit:
            raise ValueError("default_event_list_limit must be <= max_event_list_limit")
        return self


def resolve_account_indexer_settings(settings: MirrorSettings) -> AccountIndexerSettings:
    """Resolve settings from ``components.service.account_indexer``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=AccountIndexerSettings,
    )
