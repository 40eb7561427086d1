from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import pandas as pd

UNKNOWN_ASSET = "UNKNOWN"


class ImportState(str, Enum):
    """Lifecycle of one snapshot file through the importer."""
    LOADED = "loaded"
    VALIDATED = "validated"
    TRANSACTION_OPEN = "transaction_open"
    WRITING_SYSTEM = "writing_system"
    WRITING_HARDWARE = "writing_hardware"
    WRITING_DISKS = "writing_disks"
    WRITING_NETWORK = "writing_network"
    WRITING_SOFTWARE = "writing_software"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    REJECTED = "rejected"


@dataclass
class ImportOutcome:
    """Result of importing one snapshot file."""
    source_file: str
    asset_number: str = UNKNOWN_ASSET
    state: ImportState = ImportState.LOADED
    error_message: Optional[str] = None
    failed_stage: Optional[ImportState] = None
    rows_inserted: int = 0
    rows_updated: int = 0

    @property
    def success(self) -> bool:
        return self.state == ImportState.COMMITTED


@dataclass
class BatchSummary:
    """Run-level aggregate of per-file import outcomes."""
    folder: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    outcomes: List[ImportOutcome] = field(default_factory=list)
    interrupted: bool = False

    def record(self, outcome: ImportOutcome) -> None:
        self.outcomes.append(outcome)

    def finish(self) -> None:
        self.completed_at = datetime.now(timezone.utc)

    @property
    def total_files(self) -> int:
        return len(self.outcomes)

    @property
    def success_assets(self) -> List[str]:
        return [o.asset_number for o in self.outcomes if o.success]

    @property
    def failed_assets(self) -> List[ImportOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def duration_seconds(self) -> float:
        end = self.completed_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "folder": self.folder,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": round(self.duration_seconds, 2),
            "total_files": self.total_files,
            "succeeded": len(self.success_assets),
            "failed": len(self.failed_assets),
            "interrupted": self.interrupted,
            "success_assets": self.success_assets,
            "failed_files": [
                {
                    "source_file": o.source_file,
                    "asset_number": o.asset_number,
                    "error": o.error_message,
                }
                for o in self.failed_assets
            ],
        }

    def to_dataframe(self) -> pd.DataFrame:
        """One row per processed file, suitable for CSV export."""
        columns = [
            "source_file", "asset_number", "status", "failed_stage",
            "rows_inserted", "rows_updated", "error_message",
        ]
        rows = [
            {
                "source_file": o.source_file,
                "asset_number": o.asset_number,
                "status": o.state.value,
                "failed_stage": o.failed_stage.value if o.failed_stage else None,
                "rows_inserted": o.rows_inserted,
                "rows_updated": o.rows_updated,
                "error_message": o.error_message,
            }
            for o in self.outcomes
        ]
        return pd.DataFrame(rows, columns=columns)

    def format_report(self) -> str:
        """Human-readable end-of-run report."""
        lines = [
            "=" * 80,
            "📊 INVENTORY SNAPSHOT IMPORT SUMMARY",
            "=" * 80,
            f"   Folder: {self.folder}",
            f"   Started: {self.started_at.isoformat()}",
            f"   Completed: {self.completed_at.isoformat() if self.completed_at else '-'}",
            f"   Duration: {self.duration_seconds:.2f} seconds",
            f"   Files Processed: {self.total_files}",
            f"   ✅ Succeeded: {len(self.success_assets)}",
            f"   ❌ Failed: {len(self.failed_assets)}",
        ]
        if self.interrupted:
            lines.append("   ⚠️  Run was interrupted before all files were processed")
        for outcome in self.failed_assets:
            lines.append(
                f"   - {outcome.source_file} (asset {outcome.asset_number}): "
                f"{outcome.error_message}"
            )
        lines.append("=" * 80)
        return "\n".join(lines)
