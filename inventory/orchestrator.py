"""
Transaction and failure-isolation orchestrator.

Drives one snapshot file from disk to a committed (or rolled back)
transaction and converts every per-file failure into an ImportOutcome so
the batch keeps going.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import DatabaseWriteError, SnapshotLoadError, StructuralValidationError
from .models.outcome import UNKNOWN_ASSET, ImportOutcome, ImportState
from .models.snapshot import SnapshotDocument
from .schema import SchemaDescriptor
from .upsert_engine import EntityUpsertEngine
from .validator import recover_asset_number, validate_snapshot

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def load_snapshot_document(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read and decode one snapshot file.

    PowerShell's Out-File writes a UTF-8 BOM, so the file is read with
    ``utf-8-sig``.
    """
    try:
        with open(path, "r", encoding="utf-8-sig") as fh:
            document = json.load(fh)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SnapshotLoadError(f"Cannot read snapshot {path}: {e}") from e

    if not isinstance(document, dict):
        raise SnapshotLoadError(f"Snapshot {path} is not a JSON object")
    return document


class SnapshotImportOrchestrator:
    """
    Imports snapshots one at a time, each in its own transaction.

    States per file: LOADED -> VALIDATED -> TRANSACTION_OPEN ->
    WRITING_SYSTEM .. WRITING_SOFTWARE -> COMMITTED, or ROLLED_BACK from any
    state after the transaction opens. Files that cannot be loaded or fail
    validation end REJECTED without touching the database.
    """

    def __init__(
        self,
        engine: Engine,
        schema: SchemaDescriptor,
        clock: Callable[[], datetime] = utc_now,
        upsert_engine_factory: Callable[..., EntityUpsertEngine] = EntityUpsertEngine,
    ):
        """
        Args:
            engine: SQLAlchemy engine for the target store
            schema: Run-scoped schema descriptor
            clock: Source of the scan timestamp written to each system row
            upsert_engine_factory: Builds the per-file upsert engine from
                (connection, schema, scan_date)
        """
        self.engine = engine
        self.schema = schema
        self.clock = clock
        self.upsert_engine_factory = upsert_engine_factory

    def import_file(self, path: Union[str, Path]) -> ImportOutcome:
        outcome = ImportOutcome(source_file=str(path))

        try:
            document = load_snapshot_document(path)
        except SnapshotLoadError as e:
            logger.error(f"❌ {e}")
            return self._reject(outcome, ImportState.LOADED, e)

        return self.import_document(document, outcome)

    def import_document(self, document: Dict[str, Any],
                        outcome: Optional[ImportOutcome] = None) -> ImportOutcome:
        """Validate and write an already decoded snapshot."""
        if outcome is None:
            outcome = ImportOutcome(source_file="<memory>")
        outcome.asset_number = recover_asset_number(document) or UNKNOWN_ASSET

        validation = validate_snapshot(document)
        if not validation.is_valid:
            error = StructuralValidationError(
                validation.missing_paths, validation.invalid_paths
            )
            logger.warning(f"⚠️  {outcome.source_file} (asset {outcome.asset_number}): {error}")
            return self._reject(outcome, ImportState.VALIDATED, error)

        snapshot = SnapshotDocument.from_dict(document)
        outcome.state = ImportState.VALIDATED

        upserts = None
        try:
            with self.engine.connect() as conn:
                with conn.begin():
                    outcome.state = ImportState.TRANSACTION_OPEN
                    upserts = self.upsert_engine_factory(conn, self.schema, self.clock())
                    self._write(upserts, snapshot, outcome)
        except Exception as e:
            return self._roll_back(outcome, e)

        outcome.state = ImportState.COMMITTED
        outcome.rows_inserted = upserts.counts.inserted
        outcome.rows_updated = upserts.counts.updated
        logger.info(
            f"✅ Imported asset {snapshot.asset_number} from {outcome.source_file} "
            f"({outcome.rows_inserted} inserted, {outcome.rows_updated} updated)"
        )
        return outcome

    def _write(self, upserts: EntityUpsertEngine, snapshot: SnapshotDocument,
               outcome: ImportOutcome) -> None:
        outcome.state = ImportState.WRITING_SYSTEM
        upserts.upsert_system(snapshot)

        outcome.state = ImportState.WRITING_HARDWARE
        hardware_id = upserts.upsert_hardware(snapshot)

        outcome.state = ImportState.WRITING_DISKS
        upserts.upsert_disks(hardware_id, snapshot.disks)

        outcome.state = ImportState.WRITING_NETWORK
        upserts.upsert_network(snapshot.asset_number, snapshot.network)

        outcome.state = ImportState.WRITING_SOFTWARE
        upserts.upsert_software(snapshot)

    def _reject(self, outcome: ImportOutcome, stage: ImportState,
                error: Exception) -> ImportOutcome:
        outcome.state = ImportState.REJECTED
        outcome.failed_stage = stage
        outcome.error_message = str(error)
        return outcome

    def _roll_back(self, outcome: ImportOutcome, error: Exception) -> ImportOutcome:
        stage = outcome.state
        if isinstance(error, SQLAlchemyError):
            error = DatabaseWriteError(
                f"{stage.value}: {getattr(error, 'orig', None) or error}"
            )

        logger.error(
            f"❌ Rolled back asset {outcome.asset_number} from {outcome.source_file} "
            f"during {stage.value}: {error}"
        )
        outcome.state = ImportState.ROLLED_BACK
        outcome.failed_stage = stage
        outcome.error_message = str(error)
        return outcome
