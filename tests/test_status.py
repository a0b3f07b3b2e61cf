"""
Tests for the status protocol and cluster membership queries.
"""

import json

import pytest

from snaprestore.core.engine.session import RemoteSession
from snaprestore.core.errors import StatusPublishError
from snaprestore.core.models.context import RemotePaths
from snaprestore.core.models.state import RestoreState
from snaprestore.core.services.cluster import cleanup_node, list_other_nodes, parse_server_uuids
from snaprestore.core.services.status import StatusPublisher, write_line_argv

STATUS_FILE = "/data/user/common/ghe-restore-status"


def _publisher(target, is_cluster: bool = False) -> StatusPublisher:
    return StatusPublisher(RemoteSession(target.registry, "ghe.example"), RemotePaths(), is_cluster)


class TestWriteLineArgv:
    def test_value_and_path_are_parameters(self):
        argv = write_line_argv("restoring", STATUS_FILE)
        assert argv[:3] == ["sudo", "sh", "-c"]
        assert argv[-2:] == ["restoring", STATUS_FILE]
        assert "restoring" not in argv[3]


class TestStatusPublisher:
    def test_restoring_then_complete(self, target):
        publisher = _publisher(target)
        publisher.publish(RestoreState.RESTORING)
        publisher.publish(RestoreState.COMPLETE)
        assert target.status_writes == ["restoring", "complete"]
        assert publisher.current is RestoreState.COMPLETE

    def test_status_file_location(self, target):
        _publisher(target).publish(RestoreState.RESTORING)
        assert target.ssh.call_log[0].action.argv[-1] == STATUS_FILE

    def test_standalone_is_single_write(self, target):
        _publisher(target).publish(RestoreState.RESTORING)
        assert target.status_broadcasts == [False]

    def test_cluster_is_broadcast(self, target):
        publisher = _publisher(target, is_cluster=True)
        publisher.publish(RestoreState.RESTORING)
        publisher.publish(RestoreState.FAILED)
        assert target.status_broadcasts == [True, True]

    def test_terminal_state_is_final(self, target):
        publisher = _publisher(target)
        publisher.publish(RestoreState.RESTORING)
        publisher.publish(RestoreState.COMPLETE)
        assert publisher.publish(RestoreState.FAILED) is None
        assert publisher.publish(RestoreState.COMPLETE) is None
        assert target.status_writes == ["restoring", "complete"]

    def test_terminal_requires_restoring_first(self, target):
        assert _publisher(target).publish(RestoreState.COMPLETE) is None
        assert target.status_writes == []

    def test_restoring_failure_raises(self, target):
        target.ssh.set_failure("ghe-restore-status", error="Read-only file system")
        with pytest.raises(StatusPublishError, match="Read-only"):
            _publisher(target).publish(RestoreState.RESTORING)

    def test_failed_failure_is_swallowed(self, target):
        publisher = _publisher(target)
        publisher.publish(RestoreState.RESTORING)
        target.ssh.set_failure("ghe-restore-status")
        receipt = publisher.publish(RestoreState.FAILED)
        assert receipt.failed
        assert publisher.published == [RestoreState.RESTORING]


class TestClusterMembership:
    def test_parse_server_uuids(self):
        payload = json.dumps([
            {"host": "git-server-aaa"},
            {"host": "git-server-bbb"},
            {"host": "pages-server-ccc"},
            {"host": "git-server-aaa"},
        ])
        assert parse_server_uuids(payload) == ["aaa", "bbb"]

    def test_parse_empty(self):
        assert parse_server_uuids("") == []

    def test_list_other_nodes_excludes_restored(self, target):
        target.configure(nodes=["aaa", "bbb", "ccc"])
        nodes = list_other_nodes(RemoteSession(target.registry, "ghe.example"), "bbb")
        assert nodes == ["aaa", "ccc"]

    def test_list_other_nodes_unreadable(self, target):
        target.ssh.set_output("ghe-spokes", "not json")
        assert list_other_nodes(RemoteSession(target.registry, "ghe.example"), "aaa") is None

    @pytest.mark.parametrize("payload", ["null", "5", "\"git-server-aaa\"", "true"])
    def test_parse_rejects_non_list(self, payload):
        with pytest.raises(ValueError, match="list of servers"):
            parse_server_uuids(payload)

    @pytest.mark.parametrize("payload", ["null", "5"])
    def test_list_other_nodes_non_list_inventory(self, target, payload):
        target.ssh.set_output("ghe-spokes", payload)
        assert list_other_nodes(RemoteSession(target.registry, "ghe.example"), "aaa") is None

    def test_list_other_nodes_failure(self, target):
        target.ssh.set_failure("ghe-spokes")
        assert list_other_nodes(RemoteSession(target.registry, "ghe.example"), "aaa") is None

    def test_cleanup_node(self, target):
        receipt = cleanup_node(RemoteSession(target.registry, "ghe.example"), "aaa")
        assert receipt.ok
        assert target.ssh.commands == [
            "sudo /usr/local/share/enterprise/ghe-cluster-cleanup-node aaa"
        ]
