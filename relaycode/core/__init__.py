"""Transaction core: store, broadcaster, simulation engine and chain grouping."""

from .broadcaster import EventBroadcaster
from .chains import GroupStrategy, ThreadedTransaction, TransactionGroup, group_transactions
from .errors import FileNotFound, InvalidStatusTransition, RelaycodeError, SimulationConflict, TransactionNotFound
from .models import (
    FileApplyStatus,
    FileStatusEvent,
    Prompt,
    SimulationScenario,
    Transaction,
    TransactionFile,
    TransactionStatus,
    TransactionStatusEvent,
)
from .simulation import SimulationEngine
from .store import TransactionStore

__all__ = [
    "EventBroadcaster",
    "FileApplyStatus",
    "FileNotFound",
    "FileStatusEvent",
    "GroupStrategy",
    "InvalidStatusTransition",
    "Prompt",
    "RelaycodeError",
    "SimulationConflict",
    "SimulationEngine",
    "SimulationScenario",
    "ThreadedTransaction",
    "Transaction",
    "TransactionFile",
    "TransactionGroup",
    "TransactionNotFound",
    "TransactionStatus",
    "TransactionStatusEvent",
    "TransactionStore",
    "group_transactions",
]
