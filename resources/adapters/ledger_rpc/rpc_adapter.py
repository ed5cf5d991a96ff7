"""Ledger RPC adapter implementation over HTTP JSON-RPC."""

from __future__ import annotations

import base64
import binascii
from itertools import count
from typing import Any

from solders.pubkey import Pubkey

from packages.mirror_shared.http import (
    HttpClient,
    HttpJsonDecodeError,
    HttpRequestError,
    HttpStatusError,
)
from packages.mirror_shared.logging import get_logger, public_api_instrumented
from resources.adapters.ledger_rpc.adapter import (
    LedgerAccountInfo,
    LedgerRpcAdapter,
    LedgerRpcDependencyError,
    LedgerRpcHealthResult,
    LedgerRpcInternalError,
)
from resources.adapters.ledger_rpc.config import RESOURCE_COMPONENT_ID, LedgerRpcSettings

_LOGGER = get_logger(__name__)

# JSON-RPC 2.0 reserved range; server-defined node errors sit at -32000..-32099.
_INVALID_PARAMS = -32602


class HttpLedgerRpcAdapter(LedgerRpcAdapter):
    """Ledger adapter backed by a JSON-RPC node over HTTP."""

    def __init__(self, *, settings: LedgerRpcSettings) -> None:
        self._settings = settings
        self._client = HttpClient(
            base_url=settings.url,
            timeout_seconds=settings.timeout_seconds,
            headers={"Content-Type": "application/json"},
        )
        self._ids = count(1)

    def close(self) -> None:
        """Release HTTP transport resources."""
        self._client.close()

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=RESOURCE_COMPONENT_ID,
        id_fields=("address",),
    )
    def get_account_info(self, *, address: str) -> LedgerAccountInfo | None:
        """Fetch base64-encoded account state for one address."""
        try:
            Pubkey.from_string(address)
        except ValueError:
            return None

        result = self._call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self._settings.commitment}],
        )
        if result is None:
            return None
        if not isinstance(result, dict) or "value" not in result:
            raise LedgerRpcInternalError("getAccountInfo result missing 'value'")
        value = result["value"]
        if value is None:
            return None
        return _to_account_info(address=address, value=value)

    @public_api_instrumented(logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID)
    def health(self) -> LedgerRpcHealthResult:
        """Probe node health with ``getHealth``."""
        try:
            result = self._call("getHealth", [])
        except (LedgerRpcDependencyError, LedgerRpcInternalError) as exc:
            return LedgerRpcHealthResult(adapter_ready=False, detail=str(exc))
        return LedgerRpcHealthResult(adapter_ready=result == "ok", detail=str(result))

    def _call(self, method: str, params: list[Any]) -> Any:
        """Issue one JSON-RPC call and return its ``result`` member.

        Invalid-params errors return ``None`` so callers can treat malformed
        addresses the same as missing accounts.
        """
        request = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            body = self._client.post_json("", json=request)
        except HttpStatusError as exc:
            raise LedgerRpcDependencyError(
                f"{method} failed with status {exc.status_code}"
            ) from None
        except HttpRequestError as exc:
            reason = "timed out" if exc.timed_out else "unavailable"
            raise LedgerRpcDependencyError(f"{method} {reason}: {exc}") from None
        except HttpJsonDecodeError as exc:
            raise LedgerRpcInternalError(f"{method} returned invalid JSON: {exc}") from None

        if not isinstance(body, dict):
            raise LedgerRpcInternalError(f"{method} returned a non-object body")
        error = body.get("error")
        if error is not None:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else str(error)
            if code == _INVALID_PARAMS:
                _LOGGER.debug("%s rejected params: %s", method, message)
                return None
            raise LedgerRpcDependencyError(f"{method} rpc error {code}: {message}")
        if "result" not in body:
            raise LedgerRpcInternalError(f"{method} response missing 'result'")
        return body["result"]


def _to_account_info(*, address: str, value: Any) -> LedgerAccountInfo:
    """Map one ``getAccountInfo`` value object onto ``LedgerAccountInfo``."""
    if not isinstance(value, dict):
        raise LedgerRpcInternalError("getAccountInfo value must be an object")
    data = value.get("data")
    if (
        not isinstance(data, list)
        or len(data) != 2
        or data[1] != "base64"
        or not isinstance(data[0], str)
    ):
        raise LedgerRpcInternalError("getAccountInfo data must be ['<payload>', 'base64']")
    try:
        raw = base64.b64decode(data[0], validate=True)
    except (binascii.Error, ValueError):
        raise LedgerRpcInternalError("getAccountInfo data is not valid base64") from None
    try:
        return LedgerAccountInfo(
            address=address,
            owner_program=str(value["owner"]),
            data=raw,
            lamports=int(value.get("lamports", 0)),
            executable=bool(value.get("executable", False)),
        )
    except KeyError:
        raise LedgerRpcInternalError("getAccountInfo value missing 'owner'") from None
