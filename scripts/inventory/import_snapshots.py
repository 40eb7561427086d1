#!/usr/bin/env python3
"""
Inventory Snapshot Import

Reads every machine inventory snapshot (*.json) in a folder and reconciles
it into the inventory store:
- Systems (one row per AssetNumber, updated on every import)
- Hardware (CPU, memory and GPU summary, 1:1 with Systems)
- Disks (keyed by HardwareID + DeviceID)
- Network (keyed by AssetNumber + MacAddress)
- Software (installed applications and hotfixes)

Each snapshot is written in its own transaction. A snapshot that fails
validation or hits a database error is rolled back and reported at the end
of the run without stopping the remaining files.

Exit status: 0 when every file imported, 2 when some files failed,
1 on a fatal error (folder or database unavailable).
"""

import argparse
import logging
import os
import sys

from database.adapters.database_adapter import create_database_adapter
from inventory.batch_runner import SnapshotBatchRunner
from inventory.config import ImportConfig
from inventory.exceptions import FatalRunError

logger = logging.getLogger(__name__)

LOG_DIR = "logs/inventory"


def _configure_logging() -> None:
    os.makedirs(LOG_DIR, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(f"{LOG_DIR}/import_snapshots.log"),
            logging.StreamHandler(sys.stdout),
        ],
        force=True,  # Override any existing configuration
    )


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import machine inventory snapshots into the inventory store"
    )
    parser.add_argument(
        "--folder",
        type=str,
        help="Folder containing snapshot JSON files (default: $INVENTORY_SNAPSHOT_FOLDER)",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        help="SQLAlchemy database URL (default: $DATABASE_URL)",
    )
    parser.add_argument(
        "--schema",
        type=str,
        help="Database schema holding the inventory tables (default: $INVENTORY_DB_SCHEMA)",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing inventory tables before importing",
    )
    parser.add_argument(
        "--report-csv",
        type=str,
        help="Write per-file import outcomes to this CSV file",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point for snapshot import."""
    args = _parse_args(argv)
    _configure_logging()

    adapter = None
    try:
        config = ImportConfig.from_env(
            database_url=args.database_url,
            snapshot_folder=args.folder,
            db_schema=args.schema,
        )

        adapter = create_database_adapter(config)
        if args.create_tables:
            adapter.create_tables(config.db_schema)

        runner = SnapshotBatchRunner(adapter, config.snapshot_folder, config.db_schema)
        summary = runner.run()

        if args.report_csv:
            summary.to_dataframe().to_csv(args.report_csv, index=False)
            logger.info(f"📝 Wrote import report to {args.report_csv}")

        return 0 if not summary.failed_assets else 2

    except (FatalRunError, ValueError) as e:
        logger.error(f"❌ Fatal error: {e}")
        return 1
    finally:
        if adapter:
            adapter.close()


if __name__ == "__main__":
    sys.exit(main())
