# spotify_cleanup/safety/__init__.py
"""
Safe mutation package
Recovery snapshots, verification and scope-by-scope removal
"""

from .models import (
    RunState,
    RemovalPlan,
    RecoverySnapshot,
    FailureRecord,
    ExecutionResult,
    ArchiveDeleteResult
)
from .orchestrator import SafeMutationOrchestrator, build_snapshot_name
from .archives import list_archives, delete_archives

__all__ = [
    'RunState',
    'RemovalPlan',
    'RecoverySnapshot',
    'FailureRecord',
    'ExecutionResult',
    'ArchiveDeleteResult',
    'SafeMutationOrchestrator',
    'build_snapshot_name',
    'list_archives',
    'delete_archives',
]
