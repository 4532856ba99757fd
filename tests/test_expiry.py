"""Tests for the background expiry sweeper."""

import time

from receipt_ledger.services import ExpirySweeper


class TestExpirySweeper:
    """Tests for ExpirySweeper."""

    def test_sweep_once(self, manager, clock, create_pending):
        create_pending(owner_id="a")
        clock.advance(hours=30)
        create_pending(owner_id="b")

        sweeper = ExpirySweeper(manager, ttl_hours=24)

        assert sweeper.sweep_once() == 1
        assert [r.owner_id for r in manager.list_pending()] == ["b"]

    def test_sweep_failure_is_logged(self, manager, monkeypatch, caplog):
        """A failing sweep does not raise."""

        def broken(ttl_hours=None):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(manager, "expire", broken)
        sweeper = ExpirySweeper(manager)

        assert sweeper.sweep_once() == 0
        assert "store unavailable" in caplog.text

    def test_start_and_stop(self, manager, clock, create_pending):
        create_pending()
        clock.advance(hours=48)

        sweeper = ExpirySweeper(manager, interval_seconds=3600)
        sweeper.start()
        try:
            assert sweeper.running
            # First sweep runs right after start
            deadline = time.monotonic() + 5
            while manager.list_pending() and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            sweeper.stop()

        assert not sweeper.running
        assert manager.list_pending() == []

    def test_start_is_idempotent(self, manager):
        sweeper = ExpirySweeper(manager, interval_seconds=3600)
        sweeper.start()
        thread = sweeper._thread
        try:
            sweeper.start()
            assert sweeper._thread is thread
        finally:
            sweeper.stop()
