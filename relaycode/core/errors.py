"""Domain errors raised by the transaction core."""

from __future__ import annotations

from .models import TransactionStatus


class RelaycodeError(Exception):
    """Base class for errors reported to the immediate caller."""


class TransactionNotFound(RelaycodeError):
    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class FileNotFound(RelaycodeError):
    def __init__(self, transaction_id: str, file_path: str):
        self.transaction_id = transaction_id
        self.file_path = file_path
        super().__init__(f"File {file_path} not found in transaction {transaction_id}")


class InvalidStatusTransition(RelaycodeError):
    def __init__(self, transaction_id: str, current: TransactionStatus, requested: TransactionStatus):
        self.transaction_id = transaction_id
        self.current = current
        self.requested = requested
        super().__init__(f"Transaction {transaction_id} cannot move from {current.value} to {requested.value}")


class SimulationConflict(RelaycodeError):
    """Simulation requested on a transaction that is busy or in the wrong state."""

    def __init__(self, transaction_id: str, reason: str):
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(f"Cannot simulate transaction {transaction_id}: {reason}")
