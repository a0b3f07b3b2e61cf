"""
Domain models — Pydantic types for the restore engine.

All models are re-exported here for convenient access:

    from snaprestore.core.models import RunContext, Snapshot, TargetTopology
"""

from snaprestore.core.models.action import Action, Receipt
from snaprestore.core.models.context import GateDecision, RemotePaths, RunContext
from snaprestore.core.models.snapshot import Snapshot, SnapshotStrategy
from snaprestore.core.models.state import RestoreProgress, RestoreState
from snaprestore.core.models.topology import RestoreRequest, TargetTopology

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # context.py
    "GateDecision",
    "RemotePaths",
    "RunContext",
    # snapshot.py
    "Snapshot",
    "SnapshotStrategy",
    # state.py
    "RestoreProgress",
    "RestoreState",
    # topology.py
    "RestoreRequest",
    "TargetTopology",
]
