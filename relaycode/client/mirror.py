"""Client-side copy of the transaction table kept current from stream events."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from relaycode.core.chains import GroupStrategy, TransactionGroup, group_transactions
from relaycode.core.models import (
    ConnectedEvent,
    FileApplyStatus,
    FileStatusEvent,
    Prompt,
    StoreEvent,
    Transaction,
    TransactionStatusEvent,
)

logger = logging.getLogger(__name__)


class TransactionMirror:
    def __init__(self, transactions: Iterable[Transaction] = (), prompts: Iterable[Prompt] = ()):
        self._transactions: dict[str, Transaction] = {}
        self._prompts: list[Prompt] = []
        self.replace(transactions, prompts)

    def replace(self, transactions: Iterable[Transaction], prompts: Iterable[Prompt] | None = None) -> None:
        """Swap in a freshly fetched list, e.g. after a reconnect."""
        self._transactions = {tx.id: tx.model_copy(deep=True) for tx in transactions}
        if prompts is not None:
            self._prompts = [p.model_copy(deep=True) for p in prompts]

    def get(self, transaction_id: str) -> Transaction | None:
        return self._transactions.get(transaction_id)

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions.values())

    def apply(self, event: ConnectedEvent | StoreEvent) -> bool:
        """Fold one event into the mirror. Returns whether anything changed."""
        if isinstance(event, TransactionStatusEvent):
            tx = self._transactions.get(event.transaction_id)
            if tx is None:
                logger.debug("Ignoring status event for unknown transaction %s", event.transaction_id)
                return False
            tx.status = event.status
            return True
        if isinstance(event, FileStatusEvent):
            tx = self._transactions.get(event.transaction_id)
            entries = tx.file_entries(event.file_path) if tx else []
            if not entries:
                logger.debug("Ignoring file event for %s:%s", event.transaction_id, event.file_path)
                return False
            error = event.error_message if event.apply_status is FileApplyStatus.FAILED else None
            for entry in entries:
                entry.apply_status = event.apply_status
                entry.error_message = error
            return True
        return False

    def groups(self, strategy: GroupStrategy = GroupStrategy.PROMPT, now: datetime | None = None) -> list[TransactionGroup]:
        return group_transactions(self.transactions, self._prompts, strategy, now)
