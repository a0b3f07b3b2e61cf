"""
Cluster membership — which nodes the target still believes in.

A standalone appliance restored from a snapshot of another appliance
may remember the nodes of its previous life. Those are listed from the
spokes server inventory and removed one by one.
"""

from __future__ import annotations

import json
import logging

from snaprestore.core.engine.session import RemoteSession
from snaprestore.core.models.action import Receipt

logger = logging.getLogger(__name__)

CLEANUP_NODE = "/usr/local/share/enterprise/ghe-cluster-cleanup-node"
_GIT_SERVER_PREFIX = "git-server-"


def parse_server_uuids(payload: str) -> list[str]:
    """Extract node UUIDs from ``ghe-spokes server show --json`` output.

    Only entries whose ``host`` names a git server count; the UUID is
    the host name without its ``git-server-`` prefix.

    Raises:
        ValueError: If the payload is not JSON or not a list of servers.
    """
    if not payload.strip():
        return []
    data = json.loads(payload)
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError(f"expected a list of servers, got {type(data).__name__}")

    uuids: list[str] = []
    for server in data:
        if not isinstance(server, dict):
            continue
        host = str(server.get("host", ""))
        if "git-server" not in host:
            continue
        uuid = host.removeprefix(_GIT_SERVER_PREFIX)
        if uuid and uuid not in uuids:
            uuids.append(uuid)
    return uuids


def list_other_nodes(session: RemoteSession, exclude_uuid: str) -> list[str] | None:
    """UUIDs of every node except ``exclude_uuid``.

    Returns None when the inventory cannot be read.
    """
    receipt = session.remote(
        ["ghe-spokes", "server", "show", "--json"], name="list-nodes", capture=True
    )
    if receipt.failed:
        logger.warning("Could not list cluster nodes on %s: %s", session.host, receipt.error)
        return None

    try:
        uuids = parse_server_uuids(receipt.output)
    except ValueError as e:
        logger.warning("Unreadable node inventory from %s: %s", session.host, e)
        return None

    return [uuid for uuid in uuids if uuid != exclude_uuid]


def cleanup_node(session: RemoteSession, uuid: str) -> Receipt:
    """Remove a leftover node from the target's inventory."""
    return session.remote(["sudo", CLEANUP_NODE, uuid], name=f"cleanup-node-{uuid[:8]}")
