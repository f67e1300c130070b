"""Transaction status state machine."""

from __future__ import annotations

from collections.abc import Iterable

from .models import FileApplyStatus, TransactionStatus

S = TransactionStatus

# Administrative and simulation edges
VALID_TRANSITIONS: dict[TransactionStatus, list[TransactionStatus]] = {
    S.PENDING: [S.APPLYING, S.REVERTED],
    S.APPLYING: [S.APPLIED, S.PARTIALLY_APPLIED, S.FAILED],
    S.APPLIED: [S.COMMITTED, S.REVERTED],
    S.PARTIALLY_APPLIED: [S.REVERTED],
    S.FAILED: [],
    S.COMMITTED: [],
    S.REVERTED: [],
}

# Extra edges only the reapply path may take
REAPPLY_TRANSITIONS: dict[TransactionStatus, list[TransactionStatus]] = {
    S.FAILED: [S.APPLIED, S.PARTIALLY_APPLIED],
    S.PARTIALLY_APPLIED: [S.APPLIED],
}

TERMINAL_STATES = frozenset({S.COMMITTED, S.REVERTED})

TERMINAL_FILE_STATES = frozenset({FileApplyStatus.APPLIED, FileApplyStatus.FAILED})


def can_transition(current: TransactionStatus, new: TransactionStatus, *, reapply: bool = False) -> bool:
    if new in VALID_TRANSITIONS.get(current, []):
        return True
    return reapply and new in REAPPLY_TRANSITIONS.get(current, [])


def aggregate_file_status(statuses: Iterable[FileApplyStatus]) -> TransactionStatus:
    """Collapse terminal per-file outcomes into one transaction status.

    All applied (or no files) -> APPLIED, all failed -> FAILED, otherwise
    PARTIALLY_APPLIED. Callers must only pass terminal file states.
    """
    statuses = list(statuses)
    pending = [s for s in statuses if s not in TERMINAL_FILE_STATES]
    if pending:
        raise ValueError(f"Cannot aggregate non-terminal file states: {pending}")
    failed = sum(1 for s in statuses if s is FileApplyStatus.FAILED)
    if failed == 0:
        return S.APPLIED
    if failed == len(statuses):
        return S.FAILED
    return S.PARTIALLY_APPLIED
