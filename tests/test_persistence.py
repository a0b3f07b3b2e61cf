"""
Tests for persistence — in-progress marker and audit ledger.
"""

import json
from pathlib import Path

from snaprestore.core.models.state import RestoreProgress
from snaprestore.core.persistence.audit import AuditEntry, AuditWriter
from snaprestore.core.persistence.state_file import (
    clear_progress,
    load_progress,
    progress_path,
    save_progress,
)


class TestProgressMarker:
    def test_save_and_load(self, tmp_path: Path):
        path = progress_path(tmp_path)
        save_progress(RestoreProgress(operation_id="op-1", target_host="ghe.example",
                                      snapshot_id="20240101T000000"), path)
        assert path.name == "in-progress-restore"

        loaded = load_progress(path)
        assert loaded.operation_id == "op-1"
        assert loaded.target_host == "ghe.example"
        assert loaded.pid > 0

    def test_saved_file_is_json(self, tmp_path: Path):
        path = progress_path(tmp_path)
        save_progress(RestoreProgress(operation_id="op-1"), path)
        assert json.loads(path.read_text())["operation_id"] == "op-1"

    def test_no_temp_files_left(self, tmp_path: Path):
        save_progress(RestoreProgress(), progress_path(tmp_path))
        assert [p.name for p in tmp_path.iterdir()] == ["in-progress-restore"]

    def test_load_missing(self, tmp_path: Path):
        assert load_progress(progress_path(tmp_path)) is None

    def test_load_corrupt(self, tmp_path: Path):
        path = progress_path(tmp_path)
        path.write_text("not json {{{")
        assert load_progress(path) is None

    def test_clear(self, tmp_path: Path):
        path = progress_path(tmp_path)
        save_progress(RestoreProgress(), path)
        clear_progress(path)
        assert not path.exists()
        clear_progress(path)


class TestAuditLedger:
    def test_write_and_read(self, tmp_path: Path):
        writer = AuditWriter(data_dir=tmp_path)
        writer.write(AuditEntry(operation_id="op-1", host="ghe.example", status="complete"))
        writer.write(AuditEntry(operation_id="op-2", host="ghe.example", status="failed",
                                errors=["Restore step 'mysql' failed"]))

        assert writer.path == tmp_path / "restore-audit.ndjson"
        entries = writer.read_all()
        assert [e.operation_id for e in entries] == ["op-1", "op-2"]
        assert entries[1].errors == ["Restore step 'mysql' failed"]

    def test_append_only(self, tmp_path: Path):
        writer = AuditWriter(data_dir=tmp_path)
        for i in range(3):
            writer.write(AuditEntry(operation_id=f"op-{i}"))
        assert len(writer.path.read_text().splitlines()) == 3
        assert [e.operation_id for e in writer.read_all()] == ["op-0", "op-1", "op-2"]

    def test_corrupt_lines_skipped(self, tmp_path: Path):
        writer = AuditWriter(data_dir=tmp_path)
        writer.write(AuditEntry(operation_id="op-1"))
        with writer.path.open("a") as f:
            f.write("garbage\n\n")
        writer.write(AuditEntry(operation_id="op-2"))
        assert [e.operation_id for e in writer.read_all()] == ["op-1", "op-2"]

    def test_read_missing(self, tmp_path: Path):
        assert AuditWriter(data_dir=tmp_path).read_all() == []
