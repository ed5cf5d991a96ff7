"""Component identity for the Account Indexer Service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_account_indexer"


def account_indexer_schema() -> str:
    """Return the Postgres schema owned by this service."""
    return SERVICE_COMPONENT_ID.removeprefix("service_")
