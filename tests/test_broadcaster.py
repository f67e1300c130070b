"""Tests for EventBroadcaster fan-out."""

from relaycode.core.broadcaster import EventBroadcaster
from relaycode.core.models import TransactionStatus, TransactionStatusEvent


def _event(tx_id="t1"):
    return TransactionStatusEvent(transaction_id=tx_id, status=TransactionStatus.APPLYING)


def test_delivers_in_registration_order():
    b = EventBroadcaster()
    seen = []
    b.subscribe(lambda e: seen.append("first"))
    b.subscribe(lambda e: seen.append("second"))
    b.notify(_event())
    assert seen == ["first", "second"]


def test_failing_subscriber_is_isolated(caplog):
    b = EventBroadcaster()
    seen = []

    def boom(event):
        raise RuntimeError("boom")

    b.subscribe(boom)
    b.subscribe(seen.append)
    b.notify(_event())

    assert len(seen) == 1
    assert "failed handling transaction event" in caplog.text


def test_unsubscribe_removes_only_that_registration():
    b = EventBroadcaster()
    seen = []
    unsubscribe = b.subscribe(seen.append)
    b.subscribe(seen.append)
    assert b.subscriber_count == 2

    unsubscribe()
    unsubscribe()
    assert b.subscriber_count == 1

    b.notify(_event())
    assert len(seen) == 1


def test_unsubscribe_during_notify_does_not_skip_others():
    b = EventBroadcaster()
    seen = []
    handles = {}

    def once(event):
        seen.append("once")
        handles["once"]()

    handles["once"] = b.subscribe(once)
    b.subscribe(lambda e: seen.append("other"))

    b.notify(_event())
    b.notify(_event())
    assert seen == ["once", "other", "other"]
