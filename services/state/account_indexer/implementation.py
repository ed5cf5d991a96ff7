"""Concrete Account Indexer Service implementation."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

from packages.mirror_shared.config import MirrorSettings
from packages.mirror_shared.envelope import (
    Envelope,
    EnvelopeMeta,
    failure,
    success,
    validate_meta,
)
from packages.mirror_shared.errors import (
    ErrorDetail,
    codes,
    dependency_error,
    internal_error,
    not_found_error,
    validation_error,
)
from packages.mirror_shared.locks import KeyedLock
from packages.mirror_shared.logging import get_logger, public_api_instrumented
from resources.adapters.ledger_rpc import (
    HttpLedgerRpcAdapter,
    LedgerRpcAdapter,
    LedgerRpcError,
    resolve_ledger_rpc_settings,
)
from resources.substrates.postgres.errors import is_database_error, normalize_postgres_error
from services.state.account_indexer.component import SERVICE_COMPONENT_ID
from services.state.account_indexer.config import (
    AccountIndexerSettings,
    resolve_account_indexer_settings,
)
from services.state.account_indexer.data import (
    AccountIndexerPostgresRuntime,
    AccountMirrorUnitOfWork,
    PostgresAccountRepository,
)
from services.state.account_indexer.domain import (
    AccountRecord,
    EventKind,
    EventRecord,
    HealthStatus,
    ReconcileOutcome,
    ReconcileStatus,
    TransactionRecord,
)
from services.state.account_indexer.interfaces import AccountRepository
from services.state.account_indexer.reader import LedgerAccountReader
from services.state.account_indexer.reconciler import Reconciler
from services.state.account_indexer.service import AccountIndexerService
from services.state.account_indexer.validation import (
    AddressRequest,
    ListEventsRequest,
    OperatorRequest,
    OwnerRequest,
    ReconcileRequest,
)

_LOGGER = get_logger(__name__)
_HEALTH_PROBE_ADDRESS = "__mirror_health_check__"


class DefaultAccountIndexerService(AccountIndexerService):
    """Default implementation with a Postgres mirror and live ledger reads."""

    def __init__(
        self,
        *,
        settings: AccountIndexerSettings,
        repository: AccountRepository,
        reconciler: Reconciler,
        ledger: LedgerRpcAdapter,
    ) -> None:
        self._settings = settings
        self._repository = repository
        self._reconciler = reconciler
        self._ledger = ledger

    @classmethod
    def from_settings(cls, settings: MirrorSettings) -> "DefaultAccountIndexerService":
        """Build the service from typed settings and owned resources."""
        service_settings = resolve_account_indexer_settings(settings)
        runtime = AccountIndexerPostgresRuntime.from_settings(settings)
        ledger = HttpLedgerRpcAdapter(settings=resolve_ledger_rpc_settings(settings))
        repository = PostgresAccountRepository(runtime.schema_sessions)
        return cls(
            settings=service_settings,
            repository=repository,
            reconciler=Reconciler(
                reader=LedgerAccountReader(adapter=ledger, settings=service_settings),
                repository=repository,
                unit_of_work=AccountMirrorUnitOfWork(runtime.schema_sessions),
                locks=KeyedLock(),
                settings=service_settings,
            ),
            ledger=ledger,
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return readiness of the mirror store and the ledger node."""
        errors = validate_meta(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            self._repository.account_exists(address=_HEALTH_PROBE_ADDRESS)
        except Exception as exc:  # noqa: BLE001
            if is_database_error(exc):
                return failure(meta=meta, errors=[normalize_postgres_error(exc)])
            return self._dependency_failure(meta=meta, operation="health", exc=exc)

        try:
            ledger = self._ledger.health()
            ledger_ready, ledger_detail = ledger.adapter_ready, ledger.detail
        except LedgerRpcError as exc:
            ledger_ready, ledger_detail = False, type(exc).__name__
        return success(
            meta=meta,
            payload=HealthStatus(
                service_ready=True,
                substrate_ready=True,
                ledger_ready=ledger_ready,
                detail="ok" if ledger_ready else f"ledger degraded: {ledger_detail}",
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("transaction_id",),
    )
    def reconcile_transaction(
        self,
        *,
        meta: EnvelopeMeta,
        transaction_id: str,
        transaction: TransactionRecord,
    ) -> Envelope[ReconcileOutcome]:
        """Apply one transaction and report what was recorded."""
        request, errors = self._validate_request(
            meta=meta,
            model=ReconcileRequest,
            payload={"transaction_id": transaction_id, "transaction": transaction},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, ReconcileRequest)

        outcome = self._reconciler.reconcile(request.transaction_id, request.transaction)
        if outcome.status is not ReconcileStatus.FAILED:
            return success(meta=meta, payload=outcome)

        metadata = {"transaction_id": outcome.transaction_id}
        if outcome.retryable:
            error = dependency_error(
                "reconcile failed",
                code=codes.DEPENDENCY_UNAVAILABLE,
                metadata=metadata,
            )
        else:
            error = internal_error(
                "reconcile failed",
                code=codes.UNEXPECTED_EXCEPTION,
                metadata=metadata,
            )
        return failure(meta=meta, errors=[error], payload=outcome)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("address",),
    )
    def get_account(self, *, meta: EnvelopeMeta, address: str) -> Envelope[AccountRecord]:
        """Read one mirrored account with its operators."""
        request, errors = self._validate_request(
            meta=meta,
            model=AddressRequest,
            payload={"address": address},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, AddressRequest)

        try:
            record = self._repository.get_account(address=request.address)
        except Exception as exc:  # noqa: BLE001
            return self._storage_failure(meta=meta, operation="get_account", exc=exc)
        if record is None:
            return failure(
                meta=meta,
                errors=[
                    not_found_error(
                        "account not found",
                        code=codes.RESOURCE_NOT_FOUND,
                        metadata={"address": request.address},
                    )
                ],
            )
        return success(meta=meta, payload=record)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("owner",),
    )
    def list_accounts_by_owner(
        self, *, meta: EnvelopeMeta, owner: str
    ) -> Envelope[list[AccountRecord]]:
        """List mirrored accounts owned by one address."""
        request, errors = self._validate_request(
            meta=meta,
            model=OwnerRequest,
            payload={"owner": owner},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, OwnerRequest)

        try:
            records = self._repository.list_accounts_by_owner(owner=request.owner)
        except Exception as exc:  # noqa: BLE001
            return self._storage_failure(meta=meta, operation="list_accounts_by_owner", exc=exc)
        return success(meta=meta, payload=records)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("operator",),
    )
    def list_accounts_by_operator(
        self, *, meta: EnvelopeMeta, operator: str
    ) -> Envelope[list[AccountRecord]]:
        """List mirrored accounts that delegate to one operator."""
        request, errors = self._validate_request(
            meta=meta,
            model=OperatorRequest,
            payload={"operator": operator},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, OperatorRequest)

        try:
            records = self._repository.list_accounts_by_operator(operator=request.operator)
        except Exception as exc:  # noqa: BLE001
            return self._storage_failure(
                meta=meta, operation="list_accounts_by_operator", exc=exc
            )
        return success(meta=meta, payload=records)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("address",),
    )
    def list_account_events(
        self,
        *,
        meta: EnvelopeMeta,
        address: str,
        event_kind: EventKind | None = None,
        limit: int | None = None,
    ) -> Envelope[list[EventRecord]]:
        """List one account's events newest first; unknown accounts yield none."""
        request, errors = self._validate_request(
            meta=meta,
            model=ListEventsRequest,
            payload={
                "address": address,
                "event_kind": event_kind,
                "limit": self._settings.default_event_list_limit if limit is None else limit,
            },
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, ListEventsRequest)

        if request.limit > self._settings.max_event_list_limit:
            return failure(
                meta=meta,
                errors=[
                    validation_error(
                        "limit exceeds max_event_list_limit",
                        code=codes.INVALID_ARGUMENT,
                        metadata={"field": "limit"},
                    )
                ],
            )

        try:
            events = self._repository.list_events(
                address=request.address,
                kind=request.event_kind,
                limit=request.limit,
            )
        except Exception as exc:  # noqa: BLE001
            return self._storage_failure(meta=meta, operation="list_account_events", exc=exc)
        return success(meta=meta, payload=events)

    def _validate_request(
        self,
        *,
        meta: EnvelopeMeta,
        model: type[BaseModel],
        payload: dict[str, Any] | None,
    ) -> tuple[BaseModel | None, list[ErrorDetail]]:
        """Validate envelope metadata and request payload model."""
        errors = validate_meta(meta)
        if errors:
            return None, errors

        data = payload or {}
        try:
            request = model.model_validate(data)
        except ValidationError as exc:
            return None, [
                validation_error(
                    f"request validation failed: {err['msg']}",
                    code=codes.INVALID_ARGUMENT,
                    metadata={"field": ".".join(str(p) for p in err["loc"])},
                )
                for err in exc.errors()
            ]

        return request, []

    def _storage_failure(
        self,
        *,
        meta: EnvelopeMeta,
        operation: str,
        exc: Exception,
    ) -> Envelope[Any]:
        """Map one storage exception into structured envelope errors."""
        if is_database_error(exc):
            _LOGGER.warning(
                "%s failed due to database error: exception_type=%s",
                operation,
                type(exc).__name__,
                exc_info=exc,
            )
            return failure(meta=meta, errors=[normalize_postgres_error(exc)])
        return self._dependency_failure(meta=meta, operation=operation, exc=exc)

    def _dependency_failure(
        self,
        *,
        meta: EnvelopeMeta,
        operation: str,
        exc: Exception,
    ) -> Envelope[Any]:
        """Map one dependency/runtime exception into structured envelope errors."""
        _LOGGER.warning(
            "%s failed due to dependency error: exception_type=%s",
            operation,
            type(exc).__name__,
            exc_info=exc,
        )
        return failure(
            meta=meta,
            errors=[
                dependency_error(
                    f"{operation} failed",
                    code=codes.DEPENDENCY_FAILURE,
                    metadata={"exception_type": type(exc).__name__},
                )
            ],
        )
