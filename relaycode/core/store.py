"""In-memory transaction store.

Single source of truth for transaction status and per-file apply state. All
mutations go through this class; reads hand out deep copies so callers can
never change a stored transaction in place. Notifications are sent while the
store lock is held, so every subscriber observes mutations in store order.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable

from .broadcaster import EventBroadcaster, Subscriber
from .errors import FileNotFound, InvalidStatusTransition, TransactionNotFound
from .models import (
    FileApplyStatus,
    FileStatusEvent,
    Prompt,
    Transaction,
    TransactionFile,
    TransactionStatus,
    TransactionStatusEvent,
)
from .state_machine import can_transition

logger = logging.getLogger(__name__)


class TransactionStore:
    def __init__(self, broadcaster: EventBroadcaster | None = None):
        self.broadcaster = broadcaster or EventBroadcaster()
        self._transactions: dict[str, Transaction] = {}
        self._prompts: dict[str, Prompt] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, transactions: Iterable[Transaction], prompts: Iterable[Prompt] = ()) -> None:
        """Replace the whole table. Duplicate ids are rejected."""
        table: dict[str, Transaction] = {}
        for tx in transactions:
            if tx.id in table:
                raise ValueError(f"Duplicate transaction id: {tx.id}")
            table[tx.id] = tx.model_copy(deep=True)
        with self._lock:
            self._transactions = table
            self._prompts = {p.id: p.model_copy(deep=True) for p in prompts}
        logger.info("Loaded %d transactions and %d prompts", len(table), len(self._prompts))

    def add(self, transaction: Transaction) -> Transaction:
        with self._lock:
            if transaction.id in self._transactions:
                raise ValueError(f"Duplicate transaction id: {transaction.id}")
            self._transactions[transaction.id] = transaction.model_copy(deep=True)
            return transaction.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_transactions(
        self,
        page: int = 1,
        limit: int = 15,
        search: str | None = None,
        status: TransactionStatus | str | None = None,
    ) -> list[Transaction]:
        """Filter by status and search text, then paginate by offset."""
        wanted = None
        if status:
            wanted = (status.value if isinstance(status, TransactionStatus) else status).upper()
        with self._lock:
            result = list(self._transactions.values())
            if wanted:
                result = [t for t in result if t.status.value == wanted]
            if search:
                result = [t for t in result if t.matches(search)]
            start = max(page - 1, 0) * max(limit, 0)
            return [t.model_copy(deep=True) for t in result[start : start + max(limit, 0)]]

    def get(self, transaction_id: str) -> Transaction:
        with self._lock:
            return self._require(transaction_id).model_copy(deep=True)

    def prompts(self) -> list[Prompt]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._prompts.values()]

    def file_paths(self, transaction_id: str) -> list[str]:
        with self._lock:
            return self._require(transaction_id).file_paths()

    def failed_file_paths(self, transaction_id: str) -> list[str]:
        with self._lock:
            tx = self._require(transaction_id)
            return [f.path for f in tx.files if f.apply_status is FileApplyStatus.FAILED]

    def __len__(self) -> int:
        with self._lock:
            return len(self._transactions)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_status(
        self,
        transaction_id: str,
        status: TransactionStatus,
        *,
        reapply: bool = False,
    ) -> Transaction:
        """Move a transaction along a valid edge and notify subscribers."""
        with self._lock:
            tx = self._require(transaction_id)
            if not can_transition(tx.status, status, reapply=reapply):
                raise InvalidStatusTransition(transaction_id, tx.status, status)
            tx.status = status
            self.broadcaster.notify(TransactionStatusEvent(transaction_id=transaction_id, status=status))
            return tx.model_copy(deep=True)

    def update_status_bulk(self, ids: Iterable[str], status: TransactionStatus) -> list[str]:
        """Apply *status* to every known id with a valid edge; others are skipped."""
        updated: list[str] = []
        for transaction_id in ids:
            try:
                self.update_status(transaction_id, status)
            except (TransactionNotFound, InvalidStatusTransition) as e:
                logger.info("Bulk update skipped %s: %s", transaction_id, e)
                continue
            updated.append(transaction_id)
        return updated

    def update_file_apply_status(
        self,
        transaction_id: str,
        file_path: str,
        apply_status: FileApplyStatus,
        error_message: str | None = None,
    ) -> TransactionFile:
        """Set a file's apply sub-state and notify a file-level event."""
        if apply_status is not FileApplyStatus.FAILED:
            error_message = None
        with self._lock:
            tx = self._require(transaction_id)
            entries = tx.file_entries(file_path)
            if not entries:
                raise FileNotFound(transaction_id, file_path)
            for entry in entries:
                entry.apply_status = apply_status
                entry.error_message = error_message
            self.broadcaster.notify(
                FileStatusEvent(
                    transaction_id=transaction_id,
                    file_path=file_path,
                    apply_status=apply_status,
                    error_message=error_message,
                )
            )
            return entries[0].model_copy(deep=True)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.broadcaster.subscribe(callback)

    def _require(self, transaction_id: str) -> Transaction:
        tx = self._transactions.get(transaction_id)
        if tx is None:
            raise TransactionNotFound(transaction_id)
        return tx
