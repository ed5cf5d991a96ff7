"""Classify program log output into ordered account event kinds."""

from __future__ import annotations

import re
from collections.abc import Sequence

from services.state.account_indexer.domain import ClassifiedKind

INSTRUCTION_KINDS: dict[str, ClassifiedKind] = {
    "CreateAccount": ClassifiedKind.ACCOUNT_CREATED,
    "CloseAccount": ClassifiedKind.ACCOUNT_CLOSED,
    "Deposit": ClassifiedKind.DEPOSIT,
    "TransferFromAccount": ClassifiedKind.TRANSFER,
    "AddOperator": ClassifiedKind.OPERATOR_ADDED,
    "RemoveOperator": ClassifiedKind.OPERATOR_REMOVED,
    "TogglePause": ClassifiedKind.PAUSE_CHANGED,
}

_INVOKE_RE = re.compile(r"^Program (\S+) invoke \[\d+\]$")
_SUCCESS_RE = re.compile(r"^Program (\S+) success$")
_FAILED_RE = re.compile(r"^Program (\S+) failed")
_INSTRUCTION_RE = re.compile(r"^Program log: Instruction: (\w+)")


def classify_logs(
    log_messages: Sequence[str] | None,
    program_id: str,
) -> list[ClassifiedKind]:
    """Return the kinds announced by ``program_id`` in log order.

    Frames are tracked with an invocation stack, so an instruction line is
    only attributed to ``program_id`` while its frame is innermost. Lines
    logged by programs it calls, or by programs that call it, are ignored.
    Unknown instruction names are skipped.
    """
    if not log_messages:
        return []

    kinds: list[ClassifiedKind] = []
    frames: list[str] = []
    for line in log_messages:
        invoked = _INVOKE_RE.match(line)
        if invoked is not None:
            frames.append(invoked.group(1))
            continue

        returned = _SUCCESS_RE.match(line) or _FAILED_RE.match(line)
        if returned is not None:
            _pop_frame(frames, returned.group(1))
            continue

        if not frames or frames[-1] != program_id:
            continue
        instruction = _INSTRUCTION_RE.match(line)
        if instruction is None:
            continue
        kind = INSTRUCTION_KINDS.get(instruction.group(1))
        if kind is not None:
            kinds.append(kind)
    return kinds


def _pop_frame(frames: list[str], program: str) -> None:
    # Truncated logs can drop a frame's return line; unwind to the matching frame.
    for depth in range(len(frames) - 1, -1, -1):
        if frames[depth] == program:
            del frames[depth:]
            return
