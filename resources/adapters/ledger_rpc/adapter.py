"""Transport-agnostic ledger RPC adapter protocol and DTOs."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict


class LedgerRpcError(Exception):
    """Base exception for ledger RPC adapter failures."""


class LedgerRpcDependencyError(LedgerRpcError):
    """Node unreachable, timed out, or answered with a server-side failure."""


class LedgerRpcInternalError(LedgerRpcError):
    """Response did not match the expected RPC contract."""


class LedgerAccountInfo(BaseModel):
    """Raw on-chain account state as returned by ``getAccountInfo``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str
    owner_program: str
    data: bytes
    lamports: int
    executable: bool


class LedgerRpcHealthResult(BaseModel):
    """Readiness payload for the ledger RPC node."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    adapter_ready: bool
    detail: str


@runtime_checkable
class LedgerRpcAdapter(Protocol):
    """Protocol for reading live account state from the ledger."""

    def get_account_info(self, *, address: str) -> LedgerAccountInfo | None:
        """Return account state, or ``None`` when no account exists at ``address``."""

    def health(self) -> LedgerRpcHealthResult:
        """Return node readiness."""
