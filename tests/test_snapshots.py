"""
Tests for snapshot resolution.
"""

from pathlib import Path

import pytest

from snaprestore.core.errors import SnapshotIncomplete, SnapshotNotFound
from snaprestore.core.models.snapshot import SnapshotStrategy
from snaprestore.core.services.snapshots import resolve_snapshot


class TestResolveSnapshot:
    def test_current_follows_symlink(self, data_dir: Path, make_snapshot):
        make_snapshot("20240101T000000")
        make_snapshot("20240202T000000")
        snapshot = resolve_snapshot(data_dir)
        assert snapshot.id == "20240202T000000"

    def test_explicit_id(self, data_dir: Path, make_snapshot):
        make_snapshot("20240101T000000")
        make_snapshot("20240202T000000")
        snapshot = resolve_snapshot(data_dir, "20240101T000000")
        assert snapshot.id == "20240101T000000"
        assert snapshot.path == str((data_dir / "20240101T000000").resolve())

    def test_reads_metadata(self, data_dir: Path, make_snapshot):
        make_snapshot(strategy="cluster", version="2.10.3", uuid="abc-123",
                      sentinel=True, elasticsearch=True)
        snapshot = resolve_snapshot(data_dir)
        assert snapshot.strategy == SnapshotStrategy.CLUSTER
        assert snapshot.instance_version == "2.10.3"
        assert snapshot.has_uuid
        assert snapshot.uuid == "abc-123"
        assert snapshot.has_audit_migration_sentinel
        assert snapshot.has_elasticsearch

    def test_optional_files_absent(self, data_dir: Path, make_snapshot):
        make_snapshot()
        snapshot = resolve_snapshot(data_dir)
        assert not snapshot.has_uuid
        assert snapshot.uuid is None
        assert not snapshot.has_audit_migration_sentinel
        assert not snapshot.has_elasticsearch

    def test_missing_strategy_defaults_to_tarball(self, data_dir: Path, make_snapshot):
        make_snapshot(strategy=None)
        assert resolve_snapshot(data_dir).strategy == SnapshotStrategy.TARBALL

    def test_file_path(self, data_dir: Path, make_snapshot):
        make_snapshot()
        snapshot = resolve_snapshot(data_dir)
        assert snapshot.file("redis.rdb").endswith("/20240101T000000/redis.rdb")

    def test_no_current(self, data_dir: Path):
        with pytest.raises(SnapshotNotFound) as exc:
            resolve_snapshot(data_dir)
        assert exc.value.hint

    def test_unknown_id(self, data_dir: Path, make_snapshot):
        make_snapshot()
        with pytest.raises(SnapshotNotFound):
            resolve_snapshot(data_dir, "19990101T000000")

    def test_incomplete(self, data_dir: Path, make_snapshot):
        make_snapshot(incomplete=True)
        with pytest.raises(SnapshotIncomplete):
            resolve_snapshot(data_dir)

    def test_missing_version(self, data_dir: Path, make_snapshot):
        make_snapshot(version=None)
        with pytest.raises(SnapshotIncomplete):
            resolve_snapshot(data_dir)

    def test_unknown_strategy(self, data_dir: Path, make_snapshot):
        make_snapshot(strategy="floppy")
        with pytest.raises(SnapshotIncomplete, match="floppy"):
            resolve_snapshot(data_dir)
