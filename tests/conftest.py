"""Pytest configuration for relaycode tests.

Ensures the project root is in sys.path so imports work correctly, and
provides small builders shared by the core and web tests.
"""

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to sys.path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from relaycode.core import EventBroadcaster, Transaction, TransactionStore  # noqa: E402


def _make_transaction(
    tx_id: str,
    status: str = "PENDING",
    paths: tuple[str, ...] = ("src/a.py",),
    prompt_id: str = "p1",
    parent_id: str | None = None,
    author: str = "mara",
    created_at: datetime | None = None,
    description: str = "",
    notes: tuple[str, ...] = (),
) -> Transaction:
    blocks = [{"type": "markdown", "content": note} for note in notes]
    blocks += [{"type": "file", "file": {"path": p, "status": "modified", "diff": "+x"}} for p in paths]
    return Transaction.model_validate(
        {
            "id": tx_id,
            "status": status,
            "description": description or f"change {tx_id}",
            "createdAt": (created_at or datetime(2026, 10, 19, 12, tzinfo=timezone.utc)).isoformat(),
            "promptId": prompt_id,
            "parentId": parent_id,
            "author": author,
            "blocks": blocks,
        }
    )


@pytest.fixture
def make_transaction():
    return _make_transaction


@pytest.fixture
def store():
    return TransactionStore(EventBroadcaster())


@pytest.fixture
def recorded(store):
    """Every event the store publishes, in order."""
    events = []
    store.subscribe(events.append)
    return events


class FakeRandom:
    """Picks the low end of every window and replays scripted failure draws."""

    def __init__(self, draws=()):
        self.draws = list(draws)

    def uniform(self, a, b):
        return a

    def random(self):
        return self.draws.pop(0) if self.draws else 0.99


@pytest.fixture
def fake_random():
    return FakeRandom


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def instant_sleep(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)
        await asyncio.sleep(0)

    return _sleep
