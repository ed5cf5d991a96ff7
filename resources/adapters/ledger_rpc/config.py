"""Pydantic settings for the ledger RPC adapter resource."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.mirror_shared.config import MirrorSettings, resolve_component_settings

RESOURCE_COMPONENT_ID = "adapter_ledger_rpc"


class LedgerRpcSettings(BaseModel):
    """Runtime settings for ledger JSON-RPC calls."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str = "http://localhost:8899"
    commitment: Literal["processed", "confirmed", "finalized"] = "confirmed"
    timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        """Require an http(s) endpoint."""
        normalized = value.strip().rstrip("/")
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("url must be an http(s) endpoint")
        return normalized


def resolve_ledger_rpc_settings(settings: MirrorSettings) -> LedgerRpcSettings:
    """Resolve adapter settings from ``components.adapter.ledger_rpc``."""
    return resolve_component_settings(
        settings=settings,
        component_id=RESOURCE_COMPONENT_ID,
        model=LedgerRpcSettings,
    )
