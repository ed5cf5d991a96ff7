"""Operator-set differences between on-chain and mirrored state."""

from __future__ import annotations

from collections.abc import Collection, Sequence

from services.state.account_indexer.domain import OperatorSlot


def find_added_operator(
    slots: Sequence[OperatorSlot],
    mirrored: Collection[str],
) -> OperatorSlot | None:
    """Return the earliest on-chain operator slot missing from the mirror."""
    for slot in slots:
        if slot.address not in mirrored:
            return slot
    return None


def find_removed_operator(
    slots: Sequence[OperatorSlot],
    mirrored: Collection[str],
) -> str | None:
    """Return the one mirrored operator absent on-chain.

    Returns ``None`` when no operator or more than one operator is absent.
    """
    absent = stale_operators(slots, mirrored)
    return absent[0] if len(absent) == 1 else None


def stale_operators(
    slots: Sequence[OperatorSlot],
    mirrored: Collection[str],
) -> list[str]:
    """Return mirrored operators absent on-chain, in mirror order."""
    live = {slot.address for slot in slots}
    return [address for address in mirrored if address not in live]
