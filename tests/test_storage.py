"""Tests for storage gateways."""

import asyncio
import tempfile
from datetime import timedelta
from pathlib import Path

import pytest  # type: ignore[import-not-found]

from conftest import START, make_entry
from time_clock.core.errors import EntryNotFound, NotClockedIn, StorageError, ValidationError
from time_clock.core.models import EntryStatus, SessionRecord, TimeEntry
from time_clock.core.storage import MAX_SESSIONS, JsonFileStore, MemoryStore, StorageGateway


@pytest.fixture  # type: ignore[misc]
def temp_dir() -> Path:
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(params=["memory", "json"])  # type: ignore[misc]
def gateway(request: pytest.FixtureRequest, temp_dir: Path) -> StorageGateway:
    """Each storage implementation."""
    if request.param == "memory":
        return MemoryStore()
    return JsonFileStore(temp_dir / "data")


class TestStorageGateway:
    """Behavior shared by every store."""

    def test_save_and_find(self, gateway: StorageGateway) -> None:
        """Test saving and loading an entry."""
        entry = make_entry(START, hours=8.0, break_minutes=30)

        async def run() -> None:
            await gateway.save_entry(entry)
            assert await gateway.find_by_id(entry.id) == entry
            assert await gateway.find_by_id("missing") is None

        asyncio.run(run())

    def test_returned_entries_are_copies(self, gateway: StorageGateway) -> None:
        """Test mutating a loaded entry does not change the store."""
        entry = TimeEntry(user_id="alice", clock_in=START)

        async def run() -> None:
            await gateway.save_entry(entry)
            loaded = await gateway.find_by_id(entry.id)
            assert loaded is not None
            loaded.notes = "changed"
            reloaded = await gateway.find_by_id(entry.id)
            assert reloaded is not None
            assert reloaded.notes is None

        asyncio.run(run())

    def test_save_rejects_invalid_entry(self, gateway: StorageGateway) -> None:
        """Test invalid entries are never stored."""
        entry = TimeEntry(user_id="alice", clock_in=START, clock_out=START)

        with pytest.raises(ValidationError):
            asyncio.run(gateway.save_entry(entry))

    def test_create_if_none_active(self, gateway: StorageGateway) -> None:
        """Test the conditional create refuses a second active entry."""
        first = TimeEntry(user_id="alice", clock_in=START)
        second = TimeEntry(user_id="alice", clock_in=START + timedelta(minutes=1))
        other_user = TimeEntry(user_id="bob", clock_in=START)

        async def run() -> None:
            assert await gateway.create_entry_if_none_active(first)
            assert not await gateway.create_entry_if_none_active(second)
            assert await gateway.create_entry_if_none_active(other_user)
            active = await gateway.load_active_entry("alice")
            assert active is not None
            assert active.id == first.id

        asyncio.run(run())

    def test_close_entry(self, gateway: StorageGateway) -> None:
        """Test closing freezes totals and rejects a second close."""
        entry = TimeEntry(user_id="alice", clock_in=START)

        async def run() -> None:
            await gateway.save_entry(entry)
            closed = await gateway.close_entry(entry.id, START + timedelta(hours=10))
            assert closed.status == EntryStatus.COMPLETED
            assert closed.total_hours == pytest.approx(10.0)
            assert closed.overtime_hours == pytest.approx(2.0)
            assert await gateway.load_active_entry("alice") is None

            with pytest.raises(NotClockedIn):
                await gateway.close_entry(entry.id, START + timedelta(hours=11))
            with pytest.raises(EntryNotFound):
                await gateway.close_entry("missing", START + timedelta(hours=11))

        asyncio.run(run())

    def test_find_entries_by_range(self, gateway: StorageGateway) -> None:
        """Test range queries match clock-in and user."""
        entries = [
            make_entry(START, hours=8.0),
            make_entry(START + timedelta(days=1), hours=8.0),
            make_entry(START + timedelta(days=3), hours=8.0),
            make_entry(START, hours=8.0, user_id="bob"),
        ]

        async def run() -> None:
            for entry in entries:
                await gateway.save_entry(entry)
            found = await gateway.find_entries(
                "alice", START - timedelta(hours=1), START + timedelta(days=2)
            )
            assert [e.id for e in found] == [entries[0].id, entries[1].id]

        asyncio.run(run())

    def test_stale_and_active_entries(self, gateway: StorageGateway) -> None:
        """Test stale queries only return old active entries."""
        old = TimeEntry(user_id="alice", clock_in=START - timedelta(days=2))
        fresh = TimeEntry(user_id="bob", clock_in=START)

        async def run() -> None:
            await gateway.save_entry(old)
            await gateway.save_entry(fresh)
            stale = await gateway.find_stale_entries(START - timedelta(days=1))
            assert [e.id for e in stale] == [old.id]
            assert len(await gateway.find_active_entries()) == 2

        asyncio.run(run())

    def test_sessions(self, gateway: StorageGateway) -> None:
        """Test session records are kept newest last and capped."""

        async def run() -> None:
            for i in range(MAX_SESSIONS + 5):
                await gateway.save_session(
                    SessionRecord(user_id="alice" if i % 2 else "bob", start_time=START)
                )
            sessions = await gateway.load_sessions()
            assert len(sessions) == MAX_SESSIONS
            last = await gateway.load_last_session("alice")
            assert last is not None
            assert last.user_id == "alice"
            assert (await gateway.load_last_session()).id == sessions[-1].id

        asyncio.run(run())


class TestJsonFileStore:
    """File-specific behavior."""

    def test_creates_data_file(self, temp_dir: Path) -> None:
        """Test initialization creates directories and the data file."""
        store = JsonFileStore(temp_dir / "data")

        assert store.data_file.exists()
        assert store.backup_dir.exists()

    def test_data_survives_new_instance(self, temp_dir: Path) -> None:
        """Test a second store on the same directory sees saved entries."""
        entry = make_entry(START, hours=8.0)
        asyncio.run(JsonFileStore(temp_dir / "data").save_entry(entry))

        loaded = asyncio.run(JsonFileStore(temp_dir / "data").find_by_id(entry.id))

        assert loaded == entry

    def test_corrupt_file_raises_storage_error(self, temp_dir: Path) -> None:
        """Test unreadable data surfaces as a storage error."""
        store = JsonFileStore(temp_dir / "data")
        store.data_file.write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError):
            asyncio.run(store.find_active_entries())

    def test_no_temp_file_left_behind(self, temp_dir: Path) -> None:
        """Test atomic writes clean up their temporary file."""
        store = JsonFileStore(temp_dir / "data")
        asyncio.run(store.save_entry(TimeEntry(user_id="alice", clock_in=START)))

        assert not store.data_file.with_suffix(".tmp").exists()

    def test_backup(self, temp_dir: Path) -> None:
        """Test creating a labeled backup."""
        store = JsonFileStore(temp_dir / "data")
        backup_path = store.backup("before-upgrade")

        assert (backup_path / store.data_file.name).exists()

    def test_concurrent_creates_admit_one(self, temp_dir: Path) -> None:
        """Test two stores racing to clock in the same user."""
        first = JsonFileStore(temp_dir / "data")
        second = JsonFileStore(temp_dir / "data")

        async def run() -> list[bool]:
            return list(
                await asyncio.gather(
                    first.create_entry_if_none_active(TimeEntry(user_id="alice", clock_in=START)),
                    second.create_entry_if_none_active(TimeEntry(user_id="alice", clock_in=START)),
                )
            )

        assert sorted(asyncio.run(run())) == [False, True]


class TestMemoryStore:
    """Memory-specific behavior."""

    def test_shared_between_users(self) -> None:
        """Test one memory store serves several users."""
        store = MemoryStore()

        async def run() -> None:
            await store.save_entry(TimeEntry(user_id="alice", clock_in=START))
            await store.save_entry(TimeEntry(user_id="bob", clock_in=START))
            assert await store.load_active_entry("alice") is not None
            assert await store.load_active_entry("carol") is None

        asyncio.run(run())
