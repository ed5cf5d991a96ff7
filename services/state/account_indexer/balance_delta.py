"""Counterparty and amount extraction from token balance changes."""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict

from services.state.account_indexer.domain import TokenBalance


class BalanceDelta(BaseModel):
    """Owner and absolute amount of the first changed token balance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    counterparty: str
    amount: int


def extract_balance_delta(
    pre: Iterable[TokenBalance],
    post: Iterable[TokenBalance],
) -> BalanceDelta | None:
    """Return the first changed balance in account-index order.

    A post entry without a pre entry counts from zero. Returns ``None`` when
    nothing changed.
    """
    before = {balance.account_index: balance.amount for balance in pre}
    for balance in sorted(post, key=lambda entry: entry.account_index):
        delta = balance.amount - before.get(balance.account_index, 0)
        if delta != 0:
            return BalanceDelta(counterparty=balance.owner, amount=abs(delta))
    return None
