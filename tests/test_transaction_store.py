"""Tests for TransactionStore reads, mutations and notifications."""

import pytest

from relaycode.core import (
    FileApplyStatus,
    FileNotFound,
    FileStatusEvent,
    InvalidStatusTransition,
    TransactionNotFound,
    TransactionStatus,
    TransactionStatusEvent,
)


@pytest.fixture
def loaded(store, make_transaction):
    store.load(
        [
            make_transaction("t1", description="Fix login redirect", author="mara", paths=("src/auth.py",)),
            make_transaction("t2", status="APPLIED", author="devon", paths=("src/db.py", "src/models.py")),
            make_transaction("t3", notes=("Touches the billing cron",), author="ines"),
            make_transaction("t4", status="FAILED"),
        ]
    )
    return store


class TestLoad:
    def test_duplicate_ids_rejected(self, store, make_transaction):
        with pytest.raises(ValueError):
            store.load([make_transaction("t1"), make_transaction("t1")])

    def test_files_derived_from_blocks(self, loaded):
        assert loaded.get("t2").file_paths() == ["src/db.py", "src/models.py"]

    def test_duplicate_file_paths_rejected(self, make_transaction):
        with pytest.raises(ValueError):
            make_transaction("t9", paths=("a.py", "a.py"))


class TestList:
    def test_pagination_by_offset(self, loaded):
        assert [t.id for t in loaded.list_transactions(page=1, limit=3)] == ["t1", "t2", "t3"]
        assert [t.id for t in loaded.list_transactions(page=2, limit=3)] == ["t4"]
        assert loaded.list_transactions(page=3, limit=3) == []

    def test_status_filter(self, loaded):
        assert [t.id for t in loaded.list_transactions(status=TransactionStatus.APPLIED)] == ["t2"]
        assert [t.id for t in loaded.list_transactions(status="failed")] == ["t4"]

    def test_search_is_case_insensitive(self, loaded):
        assert [t.id for t in loaded.list_transactions(search="LOGIN")] == ["t1"]
        assert [t.id for t in loaded.list_transactions(search="devon")] == ["t2"]
        assert [t.id for t in loaded.list_transactions(search="billing")] == ["t3"]
        assert [t.id for t in loaded.list_transactions(search="models.py")] == ["t2"]

    def test_no_match_is_empty(self, loaded):
        assert loaded.list_transactions(search="nothing-like-this") == []

    def test_reads_are_snapshots(self, loaded):
        snapshot = loaded.get("t1")
        snapshot.status = TransactionStatus.COMMITTED
        snapshot.files[0].apply_status = FileApplyStatus.FAILED
        fresh = loaded.get("t1")
        assert fresh.status is TransactionStatus.PENDING
        assert fresh.files[0].apply_status is FileApplyStatus.PENDING


class TestUpdateStatus:
    def test_valid_edge_notifies(self, loaded, recorded):
        tx = loaded.update_status("t1", TransactionStatus.REVERTED)
        assert tx.status is TransactionStatus.REVERTED
        assert len(recorded) == 1
        assert isinstance(recorded[0], TransactionStatusEvent)
        assert recorded[0].transaction_id == "t1"
        assert recorded[0].status is TransactionStatus.REVERTED

    def test_unknown_id(self, loaded, recorded):
        with pytest.raises(TransactionNotFound):
            loaded.update_status("missing", TransactionStatus.REVERTED)
        assert recorded == []

    def test_invalid_edge(self, loaded, recorded):
        with pytest.raises(InvalidStatusTransition) as exc_info:
            loaded.update_status("t2", TransactionStatus.PENDING)
        assert exc_info.value.current is TransactionStatus.APPLIED
        assert loaded.get("t2").status is TransactionStatus.APPLIED
        assert recorded == []

    def test_bulk_skips_unknown_and_invalid(self, loaded, recorded):
        updated = loaded.update_status_bulk(["t2", "missing", "t4", "t1"], TransactionStatus.REVERTED)
        assert updated == ["t2", "t1"]
        assert [e.transaction_id for e in recorded] == ["t2", "t1"]


class TestFileApplyStatus:
    def test_updates_files_and_blocks(self, loaded, recorded):
        loaded.update_file_apply_status("t2", "src/db.py", FileApplyStatus.FAILED, "conflict")
        tx = loaded.get("t2")
        assert tx.find_file("src/db.py").error_message == "conflict"
        assert [e.error_message for e in tx.file_entries("src/db.py")] == ["conflict", "conflict"]
        assert isinstance(recorded[0], FileStatusEvent)
        assert recorded[0].file_path == "src/db.py"

    def test_error_cleared_unless_failed(self, loaded):
        loaded.update_file_apply_status("t2", "src/db.py", FileApplyStatus.APPLIED, "ignored")
        assert loaded.get("t2").find_file("src/db.py").error_message is None

    def test_unknown_file(self, loaded):
        with pytest.raises(FileNotFound):
            loaded.update_file_apply_status("t2", "nope.py", FileApplyStatus.APPLIED)

    def test_failed_file_paths(self, loaded):
        loaded.update_file_apply_status("t2", "src/models.py", FileApplyStatus.FAILED, "x")
        assert loaded.failed_file_paths("t2") == ["src/models.py"]
