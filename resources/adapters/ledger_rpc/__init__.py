"""Ledger JSON-RPC adapter resource."""

from resources.adapters.ledger_rpc.adapter import (
    LedgerAccountInfo,
    LedgerRpcAdapter,
    LedgerRpcDependencyError,
    LedgerRpcError,
    LedgerRpcHealthResult,
    LedgerRpcInternalError,
)
from resources.adapters.ledger_rpc.config import (
    RESOURCE_COMPONENT_ID,
    LedgerRpcSettings,
    resolve_ledger_rpc_settings,
)
from resources.adapters.ledger_rpc.rpc_adapter import HttpLedgerRpcAdapter

__all__ = [
    "RESOURCE_COMPONENT_ID",
    "HttpLedgerRpcAdapter",
    "LedgerAccountInfo",
    "LedgerRpcAdapter",
    "LedgerRpcDependencyError",
    "LedgerRpcError",
    "LedgerRpcHealthResult",
    "LedgerRpcInternalError",
    "LedgerRpcSettings",
    "resolve_ledger_rpc_settings",
]
