"""Binary decoding of managed-account state read from the ledger."""

from __future__ import annotations

import hashlib
import struct

from solders.pubkey import Pubkey

from resources.adapters.ledger_rpc import LedgerAccountInfo
from services.state.account_indexer.domain import AccountSnapshot, OperatorSlot

DISCRIMINATOR_LENGTH = 8
PUBKEY_LENGTH = 32

# version u8, bump u8, owner [32], mint [32], is_paused u8, operator_count u8
_HEADER = struct.Struct("<BB32s32sBB")
# operator pubkey [32], per_tx_limit u64
_SLOT = struct.Struct("<32sQ")


def account_discriminator(type_name: str) -> bytes:
    """Return the 8-byte account-type prefix for ``type_name``."""
    return hashlib.sha256(f"account:{type_name}".encode("utf-8")).digest()[:DISCRIMINATOR_LENGTH]


def decode_managed_account(
    address: str,
    info: LedgerAccountInfo,
    *,
    program_id: str,
    account_type_name: str,
) -> AccountSnapshot | None:
    """Decode ``info`` as a managed account, or return ``None`` when it is not one.

    An account is rejected when another program owns it, its discriminator
    names another account type, or its data is shorter than the declared
    operator slots. Bytes past the last slot are ignored.
    """
    if info.owner_program != program_id:
        return None
    data = info.data
    if data[:DISCRIMINATOR_LENGTH] != account_discriminator(account_type_name):
        return None

    offset = DISCRIMINATOR_LENGTH
    if len(data) < offset + _HEADER.size:
        return None
    _version, _bump, owner, mint, is_paused, operator_count = _HEADER.unpack_from(data, offset)
    offset += _HEADER.size

    if len(data) < offset + operator_count * _SLOT.size:
        return None
    operators = []
    for _ in range(operator_count):
        operator, per_tx_limit = _SLOT.unpack_from(data, offset)
        offset += _SLOT.size
        operators.append(OperatorSlot(address=_address(operator), per_tx_limit=per_tx_limit))

    return AccountSnapshot(
        address=address,
        owner=_address(owner),
        mint=_address(mint),
        is_paused=bool(is_paused),
        operators=tuple(operators),
    )


def _address(raw: bytes) -> str:
    return str(Pubkey.from_bytes(raw))
