"""
Tests for the version gate — version parsing and step eligibility.
"""

import pytest

from snaprestore.core.engine.version_gate import (
    audit_migration_required,
    evaluate,
    parse_version,
)
from snaprestore.core.errors import UnsupportedVersion


class TestParseVersion:
    def test_full_version(self):
        assert parse_version("2.13.0") == (2, 13, 0)

    def test_missing_components_are_zero(self):
        assert parse_version("2.13") == (2, 13, 0)
        assert parse_version("3") == (3, 0, 0)

    def test_leading_v_and_suffix(self):
        assert parse_version("v2.12.9") == (2, 12, 9)
        assert parse_version("2.14.0-rc1") == (2, 14, 0)

    def test_numeric_not_lexical(self):
        assert parse_version("2.10.0") > parse_version("2.9.9")

    @pytest.mark.parametrize("value", ["", "latest", "x.y.z"])
    def test_malformed(self, value):
        with pytest.raises(UnsupportedVersion):
            parse_version(value)


class TestEvaluate:
    def test_standalone_2_12_5(self):
        gate = evaluate("2.12.5", is_cluster=False)
        assert gate.legacy_repositories
        assert not gate.unified_repositories
        assert not gate.audit_logs

    def test_standalone_2_12_9_gets_audit_logs(self):
        gate = evaluate("2.12.9", is_cluster=False)
        assert gate.audit_logs
        assert gate.legacy_repositories

    def test_standalone_2_13_0(self):
        gate = evaluate("2.13.0", is_cluster=False)
        assert gate.unified_repositories
        assert gate.audit_logs

    def test_cluster_always_unified(self):
        gate = evaluate("2.9.0", is_cluster=True)
        assert gate.unified_repositories
        assert gate.audit_logs


class TestAuditMigrationRequired:
    def test_unmigrated_2_10_onto_2_11(self):
        assert audit_migration_required("2.10.3", False, "2.11.0")

    def test_unmigrated_2_9_onto_newer(self):
        assert audit_migration_required("2.9.1", False, "2.13.2")

    def test_sentinel_means_migrated(self):
        assert not audit_migration_required("2.10.3", True, "2.11.0")

    def test_older_target_needs_nothing(self):
        assert not audit_migration_required("2.10.3", False, "2.10.5")

    def test_other_source_versions(self):
        assert not audit_migration_required("2.11.0", False, "2.13.0")
        assert not audit_migration_required("2.8.4", False, "2.13.0")
