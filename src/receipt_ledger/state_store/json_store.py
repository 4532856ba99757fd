"""
JSON snapshot state store.

Snapshot (under data_dir):
- transactions.json: {"pending": [...], "confirmed": [...]}

The whole snapshot is rewritten on every state-changing call and replaced
atomically (temp file + os.replace), so pending and confirmed records
never drift apart on disk. When a write fails the
in-memory change is rolled back and PersistenceError is raised, so memory
never runs ahead of disk.

Indices:
- id -> record for pending records
- owner_id -> id, at most one pending record per owner

All index updates happen under one lock, together with the snapshot write.
"""

import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from ..errors import DuplicatePending, PersistenceError, RecordNotFound

logger = logging.getLogger(__name__)


class TransactionStatus(str, Enum):
    """Lifecycle status of a transaction."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


@dataclass
class TransactionRecord:
    """A transaction recovered from one receipt."""

    id: str
    owner_id: str
    channel_id: str
    category: str
    amount: str
    installments: int
    last_four_digits: str
    payer_label: str
    source_text: str  # raw OCR text, kept for audit
    created_at: str  # ISO timestamp (UTC)
    asset_ref: str | None = None
    status: TransactionStatus = TransactionStatus.PENDING

    @property
    def short_id(self) -> str:
        return self.id[:8]

    @property
    def created_datetime(self) -> datetime:
        return datetime.fromisoformat(self.created_at)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransactionRecord":
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            channel_id=data.get("channel_id", ""),
            category=data.get("category", ""),
            amount=data.get("amount", ""),
            installments=int(data.get("installments", 1)),
            last_four_digits=data.get("last_four_digits", ""),
            payer_label=data.get("payer_label", ""),
            source_text=data.get("source_text", ""),
            created_at=data["created_at"],
            asset_ref=data.get("asset_ref"),
            status=TransactionStatus(data.get("status", TransactionStatus.PENDING.value)),
        )


class TransactionStore:
    """
    Authoritative index of pending and confirmed transactions.

    Construct once and pass it to whoever needs it. Records handed out are
    copies; the only way to change state is through the store methods.
    """

    SNAPSHOT_FILE = "transactions.json"

    def __init__(self, data_dir: Path | str, load: bool = True):
        """
        Initialize the store.

        Args:
            data_dir: Directory holding the snapshot file (created if missing)
            load: Whether to load an existing snapshot

        Raises:
            PersistenceError: If the directory cannot be created or the
                snapshot cannot be read
        """
        self.data_dir = Path(data_dir)
        self._lock = threading.RLock()
        self._pending: dict[str, TransactionRecord] = {}
        self._pending_by_owner: dict[str, str] = {}
        self._confirmed: list[TransactionRecord] = []

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create data directory {self.data_dir}: {e}") from e

        if load:
            self._load()

    @property
    def snapshot_path(self) -> Path:
        return self.data_dir / self.SNAPSHOT_FILE

    # === Loading and saving ===

    def _read_snapshot(self) -> dict[str, list[dict[str, Any]]]:
        path = self.snapshot_path
        if not path.exists():
            return {"pending": [], "confirmed": []}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read snapshot {path}: {e}") from e

        if not isinstance(data, dict):
            raise PersistenceError(f"Snapshot {path} is not a JSON object")
        for section in ("pending", "confirmed"):
            if not isinstance(data.get(section, []), list):
                raise PersistenceError(f"Snapshot {path}: '{section}' is not an array")
        return data

    def _load(self) -> None:
        data = self._read_snapshot()
        try:
            pending = [TransactionRecord.from_dict(d) for d in data.get("pending", [])]
            confirmed = [TransactionRecord.from_dict(d) for d in data.get("confirmed", [])]
        except (KeyError, ValueError, TypeError) as e:
            raise PersistenceError(f"Malformed record in snapshot: {e}") from e

        with self._lock:
            self._pending = {}
            self._pending_by_owner = {}
            for record in sorted(pending, key=lambda r: r.created_at):
                self._pending[record.id] = record
                previous = self._pending_by_owner.get(record.owner_id)
                if previous:
                    logger.warning(
                        "Snapshot has several pending transactions for owner %s; "
                        "indexing newest %s over %s",
                        record.owner_id,
                        record.short_id,
                        previous[:8],
                    )
                self._pending_by_owner[record.owner_id] = record.id
            self._confirmed = confirmed

        logger.info(
            "Loaded %d pending and %d confirmed transactions from %s",
            len(self._pending),
            len(self._confirmed),
            self.snapshot_path,
        )

    def _write_json(self, path: Path, payload: dict[str, Any]) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=self.data_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def save(self) -> None:
        """
        Write the full snapshot.

        Pending and confirmed records share one file, so a single
        os.replace moves both collections forward together.

        Raises:
            PersistenceError: If the snapshot cannot be written
        """
        with self._lock:
            payload = {
                "pending": [r.to_dict() for r in self._pending.values()],
                "confirmed": [r.to_dict() for r in self._confirmed],
            }
            try:
                self._write_json(self.snapshot_path, payload)
            except OSError as e:
                logger.error("Failed to save transaction snapshot: %s", e)
                raise PersistenceError(f"Cannot write snapshot to {self.snapshot_path}: {e}") from e
            logger.debug(
                "Snapshot saved: %d pending, %d confirmed",
                len(self._pending),
                len(self._confirmed),
            )

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        """Apply a change and persist it, restoring memory if the write fails."""
        with self._lock:
            pending = dict(self._pending)
            by_owner = dict(self._pending_by_owner)
            confirmed = list(self._confirmed)
            try:
                yield
                self.save()
            except BaseException:
                self._pending = pending
                self._pending_by_owner = by_owner
                self._confirmed = confirmed
                raise

    # === Queries ===

    def get_pending(self, record_id: str) -> TransactionRecord | None:
        with self._lock:
            record = self._pending.get(record_id)
            return replace(record) if record else None

    def get_pending_by_owner(self, owner_id: str) -> TransactionRecord | None:
        with self._lock:
            record_id = self._pending_by_owner.get(owner_id)
            if record_id is None:
                return None
            return replace(self._pending[record_id])

    def list_pending(self) -> list[TransactionRecord]:
        with self._lock:
            return [replace(r) for r in self._pending.values()]

    def list_confirmed(self) -> list[TransactionRecord]:
        with self._lock:
            return [replace(r) for r in self._confirmed]

    def counts(self) -> tuple[int, int]:
        """Return (pending, confirmed) counts."""
        with self._lock:
            return len(self._pending), len(self._confirmed)

    # === Mutations ===

    def add_pending(self, record: TransactionRecord) -> TransactionRecord:
        """
        Insert a pending record if its owner has none.

        The owner check and both index updates run in one critical section.

        Raises:
            DuplicatePending: If the owner already has a pending record
            PersistenceError: If the snapshot write fails (nothing is kept)
        """
        if record.status is not TransactionStatus.PENDING:
            raise ValueError("Only pending records can be added")

        with self._lock:
            existing_id = self._pending_by_owner.get(record.owner_id)
            if existing_id is not None:
                raise DuplicatePending(record.owner_id, replace(self._pending[existing_id]))

            with self._mutation():
                stored = replace(record)
                self._pending[stored.id] = stored
                self._pending_by_owner[stored.owner_id] = stored.id
            return replace(stored)

    def update_pending(
        self,
        record_id: str,
        change: Callable[[TransactionRecord], TransactionRecord],
    ) -> TransactionRecord:
        """
        Replace a pending record with ``change(record)``.

        ``change`` receives a copy and must return the new record; id,
        owner and status must not change.

        Raises:
            RecordNotFound: If no pending record has this id
            PersistenceError: If the snapshot write fails
        """
        with self._lock:
            current = self._pending.get(record_id)
            if current is None:
                raise RecordNotFound(record_id)

            updated = change(replace(current))
            if (
                updated.id != current.id
                or updated.owner_id != current.owner_id
                or updated.status is not TransactionStatus.PENDING
            ):
                raise ValueError("update_pending cannot change id, owner or status")

            with self._mutation():
                self._pending[record_id] = replace(updated)
            return replace(updated)

    def close_pending(
        self,
        record_id: str,
        finalize: Callable[[TransactionRecord], TransactionRecord],
    ) -> TransactionRecord:
        """
        Move a pending record to a terminal status.

        ``finalize`` gets a copy of the pending record and returns the
        terminal version. It may raise to abort, in which case nothing
        changes. Confirmed records are appended to the confirmed log;
        cancelled ones are dropped.

        Raises:
            RecordNotFound: If no pending record has this id
            PersistenceError: If the snapshot write fails (record stays pending)
        """
        with self._lock:
            current = self._pending.get(record_id)
            if current is None:
                raise RecordNotFound(record_id)

            final = finalize(replace(current))
            if not final.status.is_terminal or final.id != current.id:
                raise ValueError("close_pending must produce a terminal record with the same id")

            with self._mutation():
                self._remove_pending(current)
                if final.status is TransactionStatus.CONFIRMED:
                    self._confirmed.append(replace(final))
            return replace(final)

    def remove_pending_older_than(self, cutoff: datetime) -> list[TransactionRecord]:
        """
        Drop pending records created before ``cutoff``.

        Returns:
            The removed records, with status CANCELLED
        """
        with self._lock:
            expired = [r for r in self._pending.values() if r.created_datetime < cutoff]
            if not expired:
                return []
            with self._mutation():
                for record in expired:
                    self._remove_pending(record)
            return [replace(r, status=TransactionStatus.CANCELLED) for r in expired]

    def _remove_pending(self, record: TransactionRecord) -> None:
        del self._pending[record.id]
        if self._pending_by_owner.get(record.owner_id) == record.id:
            del self._pending_by_owner[record.owner_id]
            # Re-index an older duplicate left over from a legacy snapshot
            for other in self._pending.values():
                if other.owner_id == record.owner_id:
                    self._pending_by_owner[record.owner_id] = other.id
                    break
