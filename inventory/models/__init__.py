from .outcome import BatchSummary, ImportOutcome, ImportState
from .snapshot import SnapshotDocument

__all__ = ['BatchSummary', 'ImportOutcome', 'ImportState', 'SnapshotDocument']
