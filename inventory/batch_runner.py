"""
Batch runner for folders of inventory snapshots.

Enumerates snapshot files, discovers the target schema once, imports each
file sequentially through the orchestrator, and aggregates a BatchSummary.
Only environment-level problems (missing folder, unreachable database,
missing tables) abort the run; every per-file problem lands in the summary.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from database.adapters.database_adapter import DatabaseAdapter

from .exceptions import FatalRunError
from .models.outcome import BatchSummary
from .orchestrator import SnapshotImportOrchestrator, utc_now
from .schema import discover_schema

logger = logging.getLogger(__name__)

SNAPSHOT_PATTERN = "*.json"


def find_snapshot_files(folder: Union[str, Path],
                        pattern: str = SNAPSHOT_PATTERN) -> List[Path]:
    """List snapshot files in ``folder`` sorted by name."""
    path = Path(folder)
    if not path.is_dir():
        raise FatalRunError(f"Snapshot folder not found: {folder}")

    try:
        files = sorted(p for p in path.glob(pattern) if p.is_file())
    except OSError as e:
        raise FatalRunError(f"Cannot enumerate snapshot folder {folder}: {e}") from e

    if not files:
        logger.warning(f"No files matching '{pattern}' found in {folder}")
    return files


class SnapshotBatchRunner:
    """Imports every snapshot file in a folder, one file at a time."""

    def __init__(self, db_adapter: DatabaseAdapter, folder: Union[str, Path],
                 db_schema: Optional[str] = None,
                 clock: Callable[[], datetime] = utc_now):
        """
        Args:
            db_adapter: Connected database adapter
            folder: Folder containing snapshot JSON files
            db_schema: Schema holding the inventory tables (None for default)
            clock: Source of scan timestamps
        """
        self.db_adapter = db_adapter
        self.folder = str(folder)
        self.db_schema = db_schema
        self.clock = clock

    def run(self) -> BatchSummary:
        files = find_snapshot_files(self.folder)
        summary = BatchSummary(folder=self.folder)
        logger.info(f"🚀 Starting import of {len(files)} snapshot file(s) from {self.folder}")

        try:
            schema = discover_schema(self.db_adapter.engine, self.db_schema)
        except SQLAlchemyError as e:
            raise FatalRunError(f"Cannot read target schema: {e}") from e

        orchestrator = SnapshotImportOrchestrator(
            self.db_adapter.engine, schema, clock=self.clock
        )

        try:
            for index, path in enumerate(files, start=1):
                logger.info(f"📥 [{index}/{len(files)}] {path.name}")
                summary.record(orchestrator.import_file(path))
        except KeyboardInterrupt:
            # The in-flight file's transaction has already been rolled back
            summary.interrupted = True
            logger.warning("⚠️  Import interrupted; reporting files processed so far")
        finally:
            summary.finish()

        for line in summary.format_report().splitlines():
            logger.info(line)
        return summary
