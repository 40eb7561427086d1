"""
Inventory snapshot reconciliation.

Validates machine inventory snapshots and upserts them into the relational
inventory store, one transaction per snapshot.
"""

from .config import ImportConfig
from .orchestrator import SnapshotImportOrchestrator
from .schema import SchemaDescriptor, discover_schema
from .validator import validate_snapshot

__all__ = [
    'ImportConfig',
    'SchemaDescriptor',
    'SnapshotImportOrchestrator',
    'discover_schema',
    'validate_snapshot',
]
