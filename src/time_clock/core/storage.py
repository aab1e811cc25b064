"""Storage gateways for time entries and session records.

Both stores keep the same JSON-compatible state document::

    {"entries": {<id>: <entry dict>}, "sessions": [<session dict>, ...]}

Every public method is built on two primitives, ``_read`` (a snapshot of the
document) and ``_transact`` (an exclusive read-modify-write). A mutator that
raises leaves the stored document untouched.
"""

import asyncio
import json
import logging
import os
import shutil
import sys
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from time_clock.core.aggregation import finalize_entry
from time_clock.core.errors import EntryNotFound, NotClockedIn, StorageError
from time_clock.core.models import EntryStatus, OvertimePolicy, SessionRecord, TimeEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_SESSIONS = 100


def _empty_state() -> dict[str, Any]:
    return {"entries": {}, "sessions": []}


def _lock_file(file_obj: Any, exclusive: bool = True) -> None:
    """Lock a file in a cross-platform way.

    Args:
        file_obj: File object to lock
        exclusive: If True, acquire exclusive lock; if False, acquire shared lock
    """
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        mode = msvcrt.LK_LOCK if exclusive else msvcrt.LK_RLCK
        msvcrt.locking(file_obj.fileno(), mode, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(file_obj.fileno(), mode)


def _unlock_file(file_obj: Any) -> None:
    """Unlock a file in a cross-platform way."""
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        msvcrt.locking(file_obj.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        fcntl.flock(file_obj.fileno(), fcntl.LOCK_UN)


class StorageGateway(ABC):
    """Asynchronous record store for time entries and engine sessions."""

    @abstractmethod
    async def _read(self) -> dict[str, Any]:
        """Return a snapshot of the state document."""

    @abstractmethod
    async def _transact(self, mutate: Callable[[dict[str, Any]], T]) -> T:
        """Apply ``mutate`` to the state document atomically and persist it."""

    @staticmethod
    def _entries(state: dict[str, Any]) -> list[TimeEntry]:
        return [TimeEntry.from_dict(data) for data in state["entries"].values()]

    async def find_by_id(self, entry_id: str) -> Optional[TimeEntry]:
        state = await self._read()
        data = state["entries"].get(entry_id)
        return TimeEntry.from_dict(data) if data else None

    async def find_active_entries(self, user_id: Optional[str] = None) -> list[TimeEntry]:
        """Active entries, oldest first (optionally for one user)."""
        state = await self._read()
        active = [
            e
            for e in self._entries(state)
            if e.is_active and (user_id is None or e.user_id == user_id)
        ]
        return sorted(active, key=lambda e: e.created_at)

    async def load_active_entry(self, user_id: str) -> Optional[TimeEntry]:
        """The user's active entry; the most recently created one wins."""
        active = await self.find_active_entries(user_id)
        return active[-1] if active else None

    async def find_entries(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[TimeEntry]:
        """Entries for ``user_id`` whose clock-in falls within [start, end]."""
        state = await self._read()
        found = [
            e
            for e in self._entries(state)
            if e.user_id == user_id and start <= e.clock_in <= end
        ]
        return sorted(found, key=lambda e: e.clock_in)

    async def find_stale_entries(self, before: datetime) -> list[TimeEntry]:
        """Active entries (any user) that clocked in before ``before``."""
        return [e for e in await self.find_active_entries() if e.clock_in < before]

    async def save_entry(self, entry: TimeEntry) -> None:
        """Insert or replace an entry.

        Raises:
            ValidationError: If the entry violates its invariants
        """
        entry.validate()
        data = entry.to_dict()

        def mutate(state: dict[str, Any]) -> None:
            state["entries"][entry.id] = data

        await self._transact(mutate)

    async def create_entry_if_none_active(self, entry: TimeEntry) -> bool:
        """Insert ``entry`` only if its user has no active entry.

        The check and the insert happen in one transaction.

        Returns:
            True if the entry was created, False if another active entry exists
        """
        entry.validate()
        data = entry.to_dict()

        def mutate(state: dict[str, Any]) -> bool:
            for existing in state["entries"].values():
                if (
                    existing["user_id"] == entry.user_id
                    and existing["status"] == EntryStatus.ACTIVE.value
                    and not existing.get("clock_out")
                ):
                    return False
            state["entries"][entry.id] = data
            return True

        return await self._transact(mutate)

    async def close_entry(
        self,
        entry_id: str,
        clock_out: datetime,
        policy: Optional[OvertimePolicy] = None,
        notes: Optional[str] = None,
    ) -> TimeEntry:
        """Close an active entry at ``clock_out`` and freeze its totals.

        Raises:
            EntryNotFound: If no entry has that id
            NotClockedIn: If the entry is already closed
            ValidationError: If ``clock_out`` is not after clock-in
        """

        def mutate(state: dict[str, Any]) -> TimeEntry:
            data = state["entries"].get(entry_id)
            if data is None:
                raise EntryNotFound(context={"entry_id": entry_id})
            entry = TimeEntry.from_dict(data)
            if not entry.is_active:
                raise NotClockedIn("This time entry is already closed", {"entry_id": entry_id})
            finalize_entry(entry, clock_out, policy, notes)
            state["entries"][entry_id] = entry.to_dict()
            return entry

        return await self._transact(mutate)

    async def save_session(self, record: SessionRecord) -> None:
        """Store a session record, keeping only the most recent ones."""
        data = record.to_dict()

        def mutate(state: dict[str, Any]) -> None:
            sessions = [s for s in state["sessions"] if s["id"] != record.id]
            sessions.append(data)
            state["sessions"] = sessions[-MAX_SESSIONS:]

        await self._transact(mutate)

    async def load_last_session(self, user_id: Optional[str] = None) -> Optional[SessionRecord]:
        state = await self._read()
        for data in reversed(state["sessions"]):
            if user_id is None or data["user_id"] == user_id:
                return SessionRecord.from_dict(data)
        return None

    async def load_sessions(self) -> list[SessionRecord]:
        state = await self._read()
        return [SessionRecord.from_dict(s) for s in state["sessions"]]


class MemoryStore(StorageGateway):
    """In-process store.

    Records are kept as serialized dictionaries, so callers never share
    objects with the store. Several engine instances may share one store.
    """

    def __init__(self) -> None:
        self._state = _empty_state()
        self._lock = asyncio.Lock()

    async def _read(self) -> dict[str, Any]:
        return json.loads(json.dumps(self._state))

    async def _transact(self, mutate: Callable[[dict[str, Any]], T]) -> T:
        async with self._lock:
            working = json.loads(json.dumps(self._state))
            result = mutate(working)
            self._state = working
            return result


class JsonFileStore(StorageGateway):
    """JSON file store with atomic writes and cross-process locking.

    Read-modify-write cycles hold an exclusive lock on a sidecar lock file,
    which makes ``create_entry_if_none_active`` a conditional write across
    processes sharing the same data directory.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize file store.

        Args:
            data_dir: Custom data directory. Defaults to ~/.time-clock/data
        """
        if data_dir is None:
            data_dir = Path.home() / ".time-clock" / "data"

        self.data_dir = Path(data_dir).expanduser()
        self.data_file = self.data_dir / "time_clock.json"
        self.lock_path = self.data_dir / ".time_clock.lock"
        self.backup_dir = self.data_dir.parent / "backups"

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        if not self.data_file.exists():
            self._write_atomic(_empty_state())

    def _write_atomic(self, state: dict[str, Any]) -> None:
        """Write the state document using a temporary file and rename."""
        temp_file = self.data_file.with_suffix(".tmp")

        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(state, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            temp_file.replace(self.data_file)
        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise

    def _load(self) -> dict[str, Any]:
        if not self.data_file.exists():
            return _empty_state()
        with open(self.data_file, encoding="utf-8") as f:
            try:
                state = json.load(f)
            except json.JSONDecodeError as e:
                raise StorageError(
                    context={"path": str(self.data_file), "reason": str(e)}
                ) from e
        state.setdefault("entries", {})
        state.setdefault("sessions", [])
        return state

    def _read_sync(self) -> dict[str, Any]:
        with open(self.lock_path, "a+", encoding="utf-8") as lock:
            _lock_file(lock, exclusive=False)
            try:
                return self._load()
            finally:
                _unlock_file(lock)

    def _transact_sync(self, mutate: Callable[[dict[str, Any]], T]) -> T:
        with open(self.lock_path, "a+", encoding="utf-8") as lock:
            _lock_file(lock, exclusive=True)
            try:
                state = self._load()
                result = mutate(state)
                self._write_atomic(state)
                return result
            finally:
                _unlock_file(lock)

    async def _read(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._read_sync)

    async def _transact(self, mutate: Callable[[dict[str, Any]], T]) -> T:
        return await asyncio.to_thread(self._transact_sync, mutate)

    def backup(self, label: Optional[str] = None) -> Path:
        """Create backup of the data file.

        Args:
            label: Optional label for backup. Defaults to timestamp

        Returns:
            Path to backup directory
        """
        if label is None:
            label = datetime.now().strftime("%Y%m%d_%H%M%S")

        backup_path = self.backup_dir / label
        backup_path.mkdir(parents=True, exist_ok=True)
        if self.data_file.exists():
            shutil.copy2(self.data_file, backup_path / self.data_file.name)
        logger.info(f"Backed up {self.data_file} to {backup_path}")
        return backup_path
