"""Tests for the JSON snapshot state store."""

import json
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from receipt_ledger.errors import DuplicatePending, PersistenceError, RecordNotFound
from receipt_ledger.state_store import (
    TransactionRecord,
    TransactionStatus,
    TransactionStore,
    json_store,
)


def make_record(
    record_id: str = "11111111-aaaa",
    owner_id: str = "owner-1",
    created_at: str = "2024-11-18T12:00:00+00:00",
    **overrides,
) -> TransactionRecord:
    values = dict(
        id=record_id,
        owner_id=owner_id,
        channel_id="group-1",
        category="credito",
        amount="R$ 10,00",
        installments=1,
        last_four_digits="1234",
        payer_label="",
        source_text="CREDITO R$ 10,00",
        created_at=created_at,
    )
    values.update(overrides)
    return TransactionRecord(**values)


def fail_writes(store, monkeypatch):
    def _boom(path, payload):
        raise OSError("disk full")

    monkeypatch.setattr(store, "_write_json", _boom)


class TestTransactionRecord:
    """Tests for record serialization."""

    def test_to_dict_uses_status_value(self):
        data = make_record().to_dict()
        assert data["status"] == "pending"
        assert data["asset_ref"] is None

    def test_from_dict_roundtrip(self):
        record = make_record(asset_ref="img/1.jpg", status=TransactionStatus.CONFIRMED)
        assert TransactionRecord.from_dict(record.to_dict()) == record

    def test_from_dict_defaults(self):
        record = TransactionRecord.from_dict(
            {"id": "x", "owner_id": "o", "created_at": "2024-11-18T12:00:00+00:00"}
        )
        assert record.installments == 1
        assert record.status is TransactionStatus.PENDING

    def test_short_id_and_datetime(self):
        record = make_record(record_id="abcdef0123456789")
        assert record.short_id == "abcdef01"
        assert record.created_datetime == datetime(2024, 11, 18, 12, 0, tzinfo=timezone.utc)

    def test_terminal_statuses(self):
        assert not TransactionStatus.PENDING.is_terminal
        assert TransactionStatus.CONFIRMED.is_terminal
        assert TransactionStatus.CANCELLED.is_terminal


class TestStoreBasics:
    """Tests for adding and querying records."""

    def test_creates_data_dir(self, data_dir):
        assert not data_dir.exists()
        TransactionStore(data_dir)
        assert data_dir.is_dir()

    def test_add_and_get(self, store):
        store.add_pending(make_record())

        assert store.get_pending("11111111-aaaa").owner_id == "owner-1"
        assert store.get_pending_by_owner("owner-1").id == "11111111-aaaa"
        assert store.counts() == (1, 0)

    def test_missing_lookups(self, store):
        assert store.get_pending("nope") is None
        assert store.get_pending_by_owner("nobody") is None

    def test_one_pending_per_owner(self, store):
        """Second add for the same owner is rejected and nothing changes."""
        store.add_pending(make_record())

        with pytest.raises(DuplicatePending) as exc_info:
            store.add_pending(make_record(record_id="22222222-bbbb"))

        assert exc_info.value.existing.id == "11111111-aaaa"
        assert store.get_pending("22222222-bbbb") is None
        assert store.counts() == (1, 0)

    def test_different_owners(self, store):
        store.add_pending(make_record())
        store.add_pending(make_record(record_id="22222222-bbbb", owner_id="owner-2"))
        assert store.counts() == (2, 0)

    def test_only_pending_can_be_added(self, store):
        with pytest.raises(ValueError):
            store.add_pending(make_record(status=TransactionStatus.CONFIRMED))

    def test_returned_records_are_copies(self, store):
        """Mutating a returned record does not touch the store."""
        store.add_pending(make_record())

        record = store.get_pending("11111111-aaaa")
        record.amount = "R$ 999,99"

        assert store.get_pending("11111111-aaaa").amount == "R$ 10,00"


class TestStoreTransitions:
    """Tests for update and close."""

    def test_update_pending(self, store):
        store.add_pending(make_record())

        updated = store.update_pending("11111111-aaaa", lambda r: replace(r, amount="R$ 5,00"))

        assert updated.amount == "R$ 5,00"
        assert store.get_pending("11111111-aaaa").amount == "R$ 5,00"

    def test_update_missing(self, store):
        with pytest.raises(RecordNotFound):
            store.update_pending("nope", lambda r: r)

    def test_update_cannot_change_owner(self, store):
        store.add_pending(make_record())
        with pytest.raises(ValueError):
            store.update_pending("11111111-aaaa", lambda r: replace(r, owner_id="other"))

    def test_close_as_confirmed(self, store):
        store.add_pending(make_record())

        store.close_pending(
            "11111111-aaaa", lambda r: replace(r, status=TransactionStatus.CONFIRMED)
        )

        assert store.get_pending("11111111-aaaa") is None
        assert store.get_pending_by_owner("owner-1") is None
        assert [r.id for r in store.list_confirmed()] == ["11111111-aaaa"]

    def test_close_as_cancelled_is_dropped(self, store):
        store.add_pending(make_record())

        store.close_pending(
            "11111111-aaaa", lambda r: replace(r, status=TransactionStatus.CANCELLED)
        )

        assert store.counts() == (0, 0)

    def test_close_must_be_terminal(self, store):
        store.add_pending(make_record())
        with pytest.raises(ValueError):
            store.close_pending("11111111-aaaa", lambda r: r)
        assert store.get_pending("11111111-aaaa") is not None

    def test_finalize_error_aborts(self, store):
        store.add_pending(make_record())

        def reject(record):
            raise RuntimeError("no")

        with pytest.raises(RuntimeError):
            store.close_pending("11111111-aaaa", reject)
        assert store.counts() == (1, 0)

    def test_owner_can_add_after_close(self, store):
        store.add_pending(make_record())
        store.close_pending(
            "11111111-aaaa", lambda r: replace(r, status=TransactionStatus.CANCELLED)
        )

        store.add_pending(make_record(record_id="22222222-bbbb"))
        assert store.get_pending_by_owner("owner-1").id == "22222222-bbbb"

    def test_remove_older_than(self, store):
        store.add_pending(make_record(created_at="2024-11-17T10:00:00+00:00"))
        store.add_pending(
            make_record(
                record_id="22222222-bbbb",
                owner_id="owner-2",
                created_at="2024-11-18T11:00:00+00:00",
            )
        )

        cutoff = datetime(2024, 11, 18, 0, 0, tzinfo=timezone.utc)
        removed = store.remove_pending_older_than(cutoff)

        assert [r.id for r in removed] == ["11111111-aaaa"]
        assert removed[0].status is TransactionStatus.CANCELLED
        assert store.get_pending_by_owner("owner-1") is None
        assert store.get_pending_by_owner("owner-2") is not None

    def test_remove_nothing_skips_write(self, store, monkeypatch):
        fail_writes(store, monkeypatch)
        assert store.remove_pending_older_than(datetime.now(timezone.utc)) == []


class TestPersistence:
    """Tests for the snapshot file."""

    def test_snapshot_written(self, store, data_dir):
        store.add_pending(make_record())

        snapshot = json.loads((data_dir / TransactionStore.SNAPSHOT_FILE).read_text())

        assert [d["id"] for d in snapshot["pending"]] == ["11111111-aaaa"]
        assert snapshot["confirmed"] == []

    def test_confirm_moves_record_in_one_file(self, store, data_dir):
        store.add_pending(make_record())
        store.close_pending(
            "11111111-aaaa", lambda r: replace(r, status=TransactionStatus.CONFIRMED)
        )

        snapshot = json.loads((data_dir / TransactionStore.SNAPSHOT_FILE).read_text())

        assert snapshot["pending"] == []
        assert [d["id"] for d in snapshot["confirmed"]] == ["11111111-aaaa"]

    def test_no_temp_files_left(self, store, data_dir):
        store.add_pending(make_record())
        names = sorted(p.name for p in data_dir.iterdir())
        assert names == [TransactionStore.SNAPSHOT_FILE]

    def test_reload(self, store, data_dir):
        """A new store over the same directory sees the same state."""
        store.add_pending(make_record())
        store.add_pending(make_record(record_id="22222222-bbbb", owner_id="owner-2"))
        store.close_pending(
            "22222222-bbbb", lambda r: replace(r, status=TransactionStatus.CONFIRMED)
        )

        reloaded = TransactionStore(data_dir)

        assert reloaded.get_pending_by_owner("owner-1").id == "11111111-aaaa"
        assert reloaded.get_pending_by_owner("owner-2") is None
        assert reloaded.list_confirmed()[0].status is TransactionStatus.CONFIRMED

    def test_skip_load(self, store, data_dir):
        store.add_pending(make_record())
        assert TransactionStore(data_dir, load=False).counts() == (0, 0)

    def test_corrupt_snapshot(self, data_dir):
        data_dir.mkdir(parents=True)
        (data_dir / TransactionStore.SNAPSHOT_FILE).write_text("{not json")

        with pytest.raises(PersistenceError):
            TransactionStore(data_dir)

    def test_snapshot_must_be_object(self, data_dir):
        data_dir.mkdir(parents=True)
        (data_dir / TransactionStore.SNAPSHOT_FILE).write_text('[{"id": "x"}]')

        with pytest.raises(PersistenceError):
            TransactionStore(data_dir)

    def test_sections_must_be_arrays(self, data_dir):
        data_dir.mkdir(parents=True)
        (data_dir / TransactionStore.SNAPSHOT_FILE).write_text(
            '{"pending": {"id": "x"}, "confirmed": []}'
        )

        with pytest.raises(PersistenceError):
            TransactionStore(data_dir)

    def test_malformed_record(self, data_dir):
        data_dir.mkdir(parents=True)
        (data_dir / TransactionStore.SNAPSHOT_FILE).write_text(
            '{"pending": [{"owner_id": "o"}], "confirmed": []}'
        )

        with pytest.raises(PersistenceError):
            TransactionStore(data_dir)

    def test_legacy_duplicates_indexed_newest(self, data_dir):
        """Duplicate owners in an old snapshot load; newest wins the index."""
        data_dir.mkdir(parents=True)
        older = make_record(created_at="2024-11-17T10:00:00+00:00")
        newer = make_record(record_id="22222222-bbbb", created_at="2024-11-18T10:00:00+00:00")
        (data_dir / TransactionStore.SNAPSHOT_FILE).write_text(
            json.dumps({"pending": [newer.to_dict(), older.to_dict()], "confirmed": []})
        )

        store = TransactionStore(data_dir)
        assert store.get_pending_by_owner("owner-1").id == "22222222-bbbb"

        store.close_pending(
            "22222222-bbbb", lambda r: replace(r, status=TransactionStatus.CANCELLED)
        )
        assert store.get_pending_by_owner("owner-1").id == "11111111-aaaa"


class TestWriteFailure:
    """Memory never runs ahead of disk."""

    def test_add_rolled_back(self, store, monkeypatch):
        fail_writes(store, monkeypatch)

        with pytest.raises(PersistenceError):
            store.add_pending(make_record())

        assert store.counts() == (0, 0)
        assert store.get_pending_by_owner("owner-1") is None

    def test_update_rolled_back(self, store, monkeypatch):
        store.add_pending(make_record())
        fail_writes(store, monkeypatch)

        with pytest.raises(PersistenceError):
            store.update_pending("11111111-aaaa", lambda r: replace(r, amount="R$ 1,00"))

        assert store.get_pending("11111111-aaaa").amount == "R$ 10,00"

    def test_close_rolled_back(self, store, monkeypatch):
        store.add_pending(make_record())
        fail_writes(store, monkeypatch)

        with pytest.raises(PersistenceError):
            store.close_pending(
                "11111111-aaaa", lambda r: replace(r, status=TransactionStatus.CONFIRMED)
            )

        assert store.get_pending_by_owner("owner-1").id == "11111111-aaaa"
        assert store.list_confirmed() == []

    def test_failed_confirm_survives_reload(self, store, data_dir, monkeypatch):
        """A confirm whose write fails leaves the record pending on disk too."""
        store.add_pending(make_record())

        def _fail_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(json_store.os, "replace", _fail_replace)

        with pytest.raises(PersistenceError):
            store.close_pending(
                "11111111-aaaa", lambda r: replace(r, status=TransactionStatus.CONFIRMED)
            )
        monkeypatch.undo()

        reloaded = TransactionStore(data_dir)
        assert reloaded.get_pending("11111111-aaaa") is not None
        assert reloaded.list_confirmed() == []
        assert store.get_pending("11111111-aaaa") is not None
        assert store.list_confirmed() == []
        assert sorted(p.name for p in data_dir.iterdir()) == [TransactionStore.SNAPSHOT_FILE]

    def test_expiry_rolled_back(self, store, monkeypatch):
        store.add_pending(make_record())
        fail_writes(store, monkeypatch)

        cutoff = datetime(2030, 1, 1, tzinfo=timezone.utc)
        with pytest.raises(PersistenceError):
            store.remove_pending_older_than(cutoff)

        assert store.counts() == (1, 0)

    def test_failed_write_keeps_previous_file(self, store, data_dir, monkeypatch):
        store.add_pending(make_record())
        before = (data_dir / TransactionStore.SNAPSHOT_FILE).read_text()
        fail_writes(store, monkeypatch)

        with pytest.raises(PersistenceError):
            store.update_pending("11111111-aaaa", lambda r: replace(r, amount="R$ 1,00"))

        assert (data_dir / TransactionStore.SNAPSHOT_FILE).read_text() == before
        assert TransactionStore(data_dir).get_pending("11111111-aaaa").amount == "R$ 10,00"
