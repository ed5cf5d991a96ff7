"""Pydantic request-validation models for Account Indexer Service API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from solders.pubkey import Pubkey

from services.state.account_indexer.domain import EventKind, TransactionRecord


class _ValidationModel(BaseModel):
    """Base request model with strict shape semantics."""

    model_config = ConfigDict(frozen=True, extra="forbid")


def _normalize_address(value: str, info: ValidationInfo) -> str:
    """Require one base58 ledger address."""
    normalized = value.strip()
    if normalized == "":
        raise ValueError(f"{info.field_name} is required")
    try:
        Pubkey.from_string(normalized)
    except ValueError:
        raise ValueError(f"{info.field_name} must be a base58 address") from None
    return normalized


class ReconcileRequest(_ValidationModel):
    """Validated reconcile-transaction request shape."""

    transaction_id: str = Field(max_length=128)
    transaction: TransactionRecord

    @field_validator("transaction_id")
    @classmethod
    def _validate_transaction_id(cls, value: str) -> str:
        """Require a non-empty transaction signature."""
        normalized = value.strip()
        if normalized == "":
            raise ValueError("transaction_id is required")
        return normalized


class AddressRequest(_ValidationModel):
    """Validated request shape for operations keyed by account address."""

    address: str

    @field_validator("address")
    @classmethod
    def _validate_address(cls, value: str, info: ValidationInfo) -> str:
        """Require a base58 account address."""
        return _normalize_address(value, info)


class OwnerRequest(_ValidationModel):
    """Validated list-by-owner request shape."""

    owner: str

    @field_validator("owner")
    @classmethod
    def _validate_owner(cls, value: str, info: ValidationInfo) -> str:
        """Require a base58 owner address."""
        return _normalize_address(value, info)


class OperatorRequest(_ValidationModel):
    """Validated list-by-operator request shape."""

    operator: str

    @field_validator("operator")
    @classmethod
    def _validate_operator(cls, value: str, info: ValidationInfo) -> str:
        """Require a base58 operator address."""
        return _normalize_address(value, info)


class ListEventsRequest(_ValidationModel):
    """Validated list-events request shape."""

    address: str
    event_kind: EventKind | None = None
    limit: int = Field(gt=0)

    @field_validator("address")
    @classmethod
    def _validate_address(cls, value: str, info: ValidationInfo) -> str:
        """Require a base58 account address."""
        return _normalize_address(value, info)
