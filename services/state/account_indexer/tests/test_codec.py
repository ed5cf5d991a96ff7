"""Unit tests for managed-account binary decoding."""

from __future__ import annotations

import hashlib

from services.state.account_indexer.codec import (
    account_discriminator,
    decode_managed_account,
)
from services.state.account_indexer.tests.support import (
    ACCOUNT,
    MINT,
    OP1,
    OP2,
    OTHER_PROGRAM_ID,
    OWNER,
    PROGRAM_ID,
    account_info,
    encode_account,
)


def _decode(data: bytes, *, owner_program: str = PROGRAM_ID):
    return decode_managed_account(
        ACCOUNT,
        account_info(data, owner_program=owner_program),
        program_id=PROGRAM_ID,
        account_type_name="ManagedAccount",
    )


def test_discriminator_is_sha256_prefix_of_account_name() -> None:
    """Account-type prefix follows the ``account:<Name>`` convention."""
    expected = hashlib.sha256(b"account:ManagedAccount").digest()[:8]

    assert account_discriminator("ManagedAccount") == expected


def test_decode_reads_header_and_operator_slots() -> None:
    """All populated slots are returned in slot order."""
    data = encode_account(is_paused=True, operators=[(OP1, 100), (OP2, 2**64 - 1)])

    snapshot = _decode(data)

    assert snapshot is not None
    assert snapshot.address == ACCOUNT
    assert snapshot.owner == OWNER
    assert snapshot.mint == MINT
    assert snapshot.is_paused is True
    assert [(slot.address, slot.per_tx_limit) for slot in snapshot.operators] == [
        (OP1, 100),
        (OP2, 2**64 - 1),
    ]


def test_decode_ignores_trailing_padding() -> None:
    """Reserved space after the last slot is not interpreted."""
    snapshot = _decode(encode_account(operators=[(OP1, 1)], trailing=b"\x00" * 64))

    assert snapshot is not None
    assert len(snapshot.operators) == 1


def test_decode_rejects_other_owner_program() -> None:
    """Accounts owned by another program are not managed accounts."""
    assert _decode(encode_account(), owner_program=OTHER_PROGRAM_ID) is None


def test_decode_rejects_other_account_type() -> None:
    """A different discriminator means a different account type."""
    assert _decode(encode_account(type_name="Config")) is None


def test_decode_rejects_truncated_data() -> None:
    """Data shorter than the declared slots is not decodable."""
    data = encode_account(operators=[(OP1, 1), (OP2, 2)])

    assert _decode(data[:-1]) is None
    assert _decode(data[:20]) is None
    assert _decode(b"") is None
