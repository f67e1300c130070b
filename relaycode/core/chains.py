"""Group and thread transactions for presentation.

Pure functions over store snapshots: nothing here touches the store or
the live stream.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .models import Prompt, Transaction


class GroupStrategy(str, Enum):
    PROMPT = "prompt"
    DATE = "date"
    AUTHOR = "author"
    STATUS = "status"
    FILES = "files"
    NONE = "none"


@dataclass(frozen=True)
class ThreadedTransaction:
    transaction: Transaction
    depth: int

    @property
    def id(self) -> str:
        return self.transaction.id


@dataclass
class TransactionGroup:
    id: str
    label: str
    count: int
    transactions: list[ThreadedTransaction] = field(default_factory=list)

    def to_wire(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "count": self.count,
            "transactions": [{**t.transaction.to_wire(), "depth": t.depth} for t in self.transactions],
        }


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def relative_date_bucket(created_at: datetime, now: datetime) -> str:
    diff_days = (_as_utc(now) - _as_utc(created_at)).days
    if diff_days == 0:
        return "Today"
    if diff_days == 1:
        return "Yesterday"
    if diff_days < 7:
        return "This Week"
    if diff_days < 30:
        return "This Month"
    return "Older"


def _key_function(
    strategy: GroupStrategy,
    prompts: Iterable[Prompt],
    now: datetime,
) -> Callable[[Transaction], tuple[str, str]]:
    if strategy is GroupStrategy.PROMPT:
        titles = {p.id: p.title for p in prompts}
        return lambda tx: (tx.prompt_id, titles.get(tx.prompt_id) or "Orphaned")
    if strategy is GroupStrategy.DATE:

        def by_date(tx: Transaction) -> tuple[str, str]:
            bucket = relative_date_bucket(tx.created_at, now)
            return bucket, bucket

        return by_date
    if strategy is GroupStrategy.AUTHOR:
        return lambda tx: (tx.author or "?", f"@{tx.author}" if tx.author else "Unknown")
    if strategy is GroupStrategy.STATUS:
        return lambda tx: (tx.status.value, tx.status.value.capitalize())
    if strategy is GroupStrategy.FILES:

        def by_file(tx: Transaction) -> tuple[str, str]:
            path = tx.first_file_path()
            return path or "?", path or "No Files"

        return by_file
    return lambda tx: ("all", "All")


def thread_transactions(ordered: list[Transaction]) -> list[ThreadedTransaction]:
    """Rebuild parent/child chains inside one group.

    Roots are transactions whose parent is missing from *ordered*. A
    preorder walk assigns depth 0 to roots and parent depth + 1 below them.
    Anything left unreached (cycles, self parents) is appended at depth 0
    without walking its children, so every transaction appears exactly once.
    """
    by_id: dict[str, Transaction] = {}
    for tx in ordered:
        by_id.setdefault(tx.id, tx)

    children: dict[str, list[Transaction]] = defaultdict(list)
    for tx in by_id.values():
        if tx.parent_id and tx.parent_id != tx.id and tx.parent_id in by_id:
            children[tx.parent_id].append(tx)

    threaded: list[ThreadedTransaction] = []
    visited: set[str] = set()

    def walk(root: Transaction) -> None:
        stack = [(root, 0)]
        while stack:
            tx, depth = stack.pop()
            if tx.id in visited:
                continue
            visited.add(tx.id)
            threaded.append(ThreadedTransaction(tx, depth))
            for child in reversed(children.get(tx.id, [])):
                if child.id not in visited:
                    stack.append((child, depth + 1))

    for tx in by_id.values():
        if not tx.parent_id or tx.parent_id not in by_id:
            walk(tx)
    for tx in by_id.values():
        if tx.id not in visited:
            visited.add(tx.id)
            threaded.append(ThreadedTransaction(tx, 0))
    return threaded


def group_transactions(
    transactions: Iterable[Transaction],
    prompts: Iterable[Prompt] = (),
    strategy: GroupStrategy = GroupStrategy.PROMPT,
    now: datetime | None = None,
) -> list[TransactionGroup]:
    """Partition *transactions* by *strategy* and thread each group."""
    transactions = list(transactions)
    if strategy is GroupStrategy.NONE or not transactions:
        return [
            TransactionGroup(
                id="all",
                label="All Transactions",
                count=len(transactions),
                transactions=[ThreadedTransaction(tx, 0) for tx in transactions],
            )
        ]

    now = now or datetime.now(timezone.utc)
    key_of = _key_function(strategy, prompts, now)
    ordered = sorted(transactions, key=lambda tx: _as_utc(tx.created_at), reverse=True)

    buckets: dict[str, tuple[str, list[Transaction]]] = {}
    for tx in ordered:
        key, label = key_of(tx)
        if key not in buckets:
            buckets[key] = (label, [])
        buckets[key][1].append(tx)

    return [
        TransactionGroup(id=key, label=label, count=len(members), transactions=thread_transactions(members))
        for key, (label, members) in buckets.items()
    ]
