"""Account Indexer Service native package exports."""

from packages.mirror_shared.envelope import Envelope, EnvelopeKind, EnvelopeMeta
from packages.mirror_shared.errors import ErrorCategory, ErrorDetail
from services.state.account_indexer.component import SERVICE_COMPONENT_ID
from services.state.account_indexer.config import AccountIndexerSettings
from services.state.account_indexer.domain import (
    AccountRecord,
    AccountSnapshot,
    AccountStatus,
    EventKind,
    EventRecord,
    HealthStatus,
    OperatorRecord,
    ReconcileOutcome,
    ReconcileStatus,
    TokenBalance,
    TransactionRecord,
)
from services.state.account_indexer.implementation import DefaultAccountIndexerService
from services.state.account_indexer.reconciler import Reconciler
from services.state.account_indexer.service import (
    AccountIndexerService,
    build_account_indexer_service,
)

__all__ = [
    "SERVICE_COMPONENT_ID",
    "AccountIndexerService",
    "AccountIndexerSettings",
    "DefaultAccountIndexerService",
    "Reconciler",
    "build_account_indexer_service",
    "AccountRecord",
    "AccountSnapshot",
    "AccountStatus",
    "EventKind",
    "EventRecord",
    "HealthStatus",
    "OperatorRecord",
    "ReconcileOutcome",
    "ReconcileStatus",
    "TokenBalance",
    "TransactionRecord",
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "ErrorCategory",
    "ErrorDetail",
]
