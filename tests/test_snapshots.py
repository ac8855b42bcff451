"""Tests for snapshot naming."""

from datetime import datetime, timedelta, timezone

import pytest

from revsync.exceptions import SnapshotNotFoundError
from revsync.sync.snapshots import SnapshotNamer


class TestSnapshotNames:

    def test_encode_format(self):
        instant = datetime(2024, 3, 1, 12, 30, 5, 123456, tzinfo=timezone.utc)
        assert SnapshotNamer.encode(instant) == "2024-03-01T12_30_05.123Z"

    def test_encode_converts_to_utc(self):
        instant = datetime(2024, 3, 1, 14, 30, 5, tzinfo=timezone(timedelta(hours=2)))
        assert SnapshotNamer.encode(instant) == "2024-03-01T12_30_05.000Z"

    def test_naive_instants_are_utc(self):
        assert SnapshotNamer.encode(datetime(2024, 3, 1)) == "2024-03-01T00_00_00.000Z"

    @pytest.mark.parametrize("instant", [
        datetime(1999, 12, 31, 23, 59, 59, 999000, tzinfo=timezone.utc),
        datetime(2024, 2, 29, 0, 0, 0, tzinfo=timezone.utc),
        datetime(2024, 3, 1, 12, 30, 5, 1000, tzinfo=timezone.utc),
        datetime(9999, 1, 1, 1, 1, 1, 500000, tzinfo=timezone.utc),
    ])
    def test_round_trip(self, instant):
        assert SnapshotNamer.decode(SnapshotNamer.encode(instant)) == instant

    def test_names_sort_like_instants(self):
        earlier = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        later = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
        assert SnapshotNamer.encode(earlier) < SnapshotNamer.encode(later)

    @pytest.mark.parametrize("name", [
        "notes.txt",
        "lost+found",
        "2024",
        "2024-03-01",
        "2024-03-01T12_30_05Z",
        "2024-03-01T12_30_05.123456Z",
        "2024-13-01T12_30_05.123Z",
    ])
    def test_foreign_names_do_not_decode(self, name):
        with pytest.raises(ValueError):
            SnapshotNamer.decode(name)
        assert SnapshotNamer.try_decode(name) is None

    def test_new_name_uses_clock(self, fs):
        namer = SnapshotNamer(fs, clock=lambda: datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc))
        assert namer.new_name() == "2024-05-06T07_08_09.000Z"


class TestLatestSnapshot:

    @pytest.mark.asyncio
    async def test_latest_name_ignores_foreign_entries(self, tmp_path, fs):
        for name in ("2024-01-01T00_00_00.000Z", "2024-06-01T00_00_00.000Z",
                     "2024-03-01T00_00_00.000Z", "zzz-not-a-snapshot"):
            (tmp_path / name).mkdir()
        (tmp_path / "README.txt").write_text("foreign")

        namer = SnapshotNamer(fs)

        assert await namer.latest_name(tmp_path) == "2024-06-01T00_00_00.000Z"
        names = [info.name for info in await namer.list_snapshots(tmp_path)]
        assert names == [
            "2024-06-01T00_00_00.000Z",
            "2024-03-01T00_00_00.000Z",
            "2024-01-01T00_00_00.000Z",
        ]

    @pytest.mark.asyncio
    async def test_latest_name_without_snapshots(self, tmp_path, fs):
        (tmp_path / "foreign").mkdir()

        with pytest.raises(SnapshotNotFoundError):
            await SnapshotNamer(fs).latest_name(tmp_path)

    @pytest.mark.asyncio
    async def test_files_with_snapshot_names_are_ignored(self, tmp_path, fs):
        (tmp_path / "2024-01-01T00_00_00.000Z").mkdir()
        (tmp_path / "2024-06-01T00_00_00.000Z").write_text("not a snapshot")

        namer = SnapshotNamer(fs)

        assert await namer.latest_name(tmp_path) == "2024-01-01T00_00_00.000Z"
        assert [info.name for info in await namer.list_snapshots(tmp_path)] == ["2024-01-01T00_00_00.000Z"]
