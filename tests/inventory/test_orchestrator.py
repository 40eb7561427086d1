"""
Tests for per-snapshot transactions and failure isolation.

Covers the fresh import, re-import, singleton network and schema drift
scenarios, plus idempotence, atomicity and write ordering.
"""

import logging
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from conftest import count_rows, fetch_rows
from database.adapters.database_adapter import DatabaseAdapter
from inventory.exceptions import SchemaDriftWarning
from inventory.models.outcome import ImportState
from inventory.orchestrator import SnapshotImportOrchestrator, load_snapshot_document
from inventory.schema import discover_schema
from inventory.tables import DISKS, HARDWARE, NETWORK, SOFTWARE, SYSTEMS, TABLE_NAMES
from inventory.upsert_engine import EntityUpsertEngine, UpsertCounts

ASSET = "07001010001"


@pytest.fixture
def orchestrator(inventory_db, schema, clock):
    return SnapshotImportOrchestrator(inventory_db.engine, schema, clock=clock)


def dump_store(adapter):
    """All rows of every inventory table, for whole-store comparisons."""
    order = {SYSTEMS: "AssetNumber", HARDWARE: "HardwareID", DISKS: "DeviceID",
             NETWORK: "MacAddress", SOFTWARE: "SoftwareID"}
    return {
        table: fetch_rows(adapter, table, order[table]).to_dict("records")
        for table in TABLE_NAMES
    }


class TestScenarios:
    """End-to-end import scenarios."""

    def test_fresh_import(self, inventory_db, orchestrator, make_document):
        outcome = orchestrator.import_document(make_document())

        assert outcome.success
        assert outcome.state is ImportState.COMMITTED
        assert outcome.asset_number == ASSET

        systems = fetch_rows(inventory_db, SYSTEMS, "AssetNumber", AssetNumber=ASSET)
        assert len(systems) == 1
        assert systems.iloc[0]["HostName"] == "PT-A1"
        assert count_rows(inventory_db, HARDWARE, AssetNumber=ASSET) == 1

        disks = fetch_rows(inventory_db, DISKS, "DeviceID")
        assert disks["DeviceID"].tolist() == ["C:"]
        assert float(disks.iloc[0]["SizeGB"]) == 256.0

        network = fetch_rows(inventory_db, NETWORK, "MacAddress", AssetNumber=ASSET)
        assert network["MacAddress"].tolist() == ["AA:BB:CC:DD:EE:01"]
        assert network.iloc[0]["SubnetMask"] == "255.255.255.0"

    def test_reimport_with_change(self, inventory_db, orchestrator, make_document):
        orchestrator.import_document(make_document())
        before = fetch_rows(inventory_db, SYSTEMS, "AssetNumber").iloc[0]

        document = make_document()
        document["System"]["HostName"] = "PT-A1-RENAMED"
        outcome = orchestrator.import_document(document)

        after = fetch_rows(inventory_db, SYSTEMS, "AssetNumber", AssetNumber=ASSET)
        assert outcome.success
        assert len(after) == 1
        assert after.iloc[0]["HostName"] == "PT-A1-RENAMED"
        assert after.iloc[0]["ScanDate"] > before["ScanDate"]

    def test_singleton_network_matches_sequence(self, tmp_path, make_document):
        adapter = {"Name": "Eth0", "MacAddress": "AA:BB:CC:DD:EE:01", "IPAddress": "10.0.0.15"}
        results = []

        for label, network in (("single", adapter), ("sequence", [adapter])):
            db = DatabaseAdapter(f"sqlite:///{tmp_path / f'{label}.db'}")
            db.create_tables()
            orchestrator = SnapshotImportOrchestrator(db.engine, discover_schema(db.engine))
            assert orchestrator.import_document(make_document(Network=network)).success
            results.append(fetch_rows(db, NETWORK, "MacAddress").to_dict("records"))
            db.close()

        assert len(results[0]) == 1
        assert results[0] == results[1]

    def test_schema_drift(self, drifted_db, make_document, caplog):
        with caplog.at_level(logging.WARNING):
            with pytest.warns(SchemaDriftWarning):
                schema = discover_schema(drifted_db.engine)
            outcome = SnapshotImportOrchestrator(drifted_db.engine, schema).import_document(
                make_document()
            )

        assert outcome.success
        hardware = fetch_rows(drifted_db, HARDWARE, "HardwareID").iloc[0]
        assert hardware["GPUName"] == "Intel(R) UHD Graphics 630"
        assert float(hardware["GPURAMGB"]) == 1.0
        assert "GPUDriverVersion" not in hardware.index

        drift_warnings = [
            r for r in caplog.records
            if r.levelno == logging.WARNING and "GPUDriverVersion" in r.getMessage()
        ]
        assert len(drift_warnings) == 1


class TestTransactionGuarantees:
    """Idempotence, atomicity and ordering."""

    def test_import_is_idempotent(self, inventory_db, schema, make_document):
        document = make_document(
            Software={
                "InstalledApps": [
                    {"DisplayName": "7-Zip 23.01 (x64)", "DisplayVersion": "23.01",
                     "Publisher": "Igor Pavlov", "InstallDate": "20230115"},
                    {"DisplayName": "Mozilla Firefox (x64 en-US)", "DisplayVersion": "126.0"},
                ],
                "Hotfixes": [{"HotFixID": "KB5034441", "Description": "Security Update",
                              "InstalledOn": "1/10/2024"}],
            }
        )
        orchestrator = SnapshotImportOrchestrator(
            inventory_db.engine, schema, clock=lambda: datetime(2024, 6, 1, 12, 0)
        )

        first = orchestrator.import_document(document)
        once = dump_store(inventory_db)
        second = orchestrator.import_document(document)

        assert first.success and second.success
        assert second.rows_inserted == 0
        assert second.rows_updated == first.rows_inserted
        assert dump_store(inventory_db) == once
        assert count_rows(inventory_db, SOFTWARE, AssetNumber=ASSET) == 3

    def test_failure_during_software_rolls_back_everything(self, inventory_db, orchestrator,
                                                           make_document):
        failure = OperationalError("INSERT INTO Software", {}, Exception("disk I/O error"))

        with patch.object(EntityUpsertEngine, "upsert_software", side_effect=failure):
            outcome = orchestrator.import_document(make_document())

        assert outcome.state is ImportState.ROLLED_BACK
        assert outcome.failed_stage is ImportState.WRITING_SOFTWARE
        assert "disk I/O error" in outcome.error_message
        for table in (SYSTEMS, HARDWARE, NETWORK):
            assert count_rows(inventory_db, table, AssetNumber=ASSET) == 0
        assert count_rows(inventory_db, DISKS) == 0

    def test_failed_reimport_keeps_prior_state(self, inventory_db, orchestrator, make_document):
        orchestrator.import_document(make_document())
        document = make_document()
        document["System"]["HostName"] = "PT-A1-RENAMED"

        with patch.object(EntityUpsertEngine, "upsert_software", side_effect=RuntimeError("boom")):
            outcome = orchestrator.import_document(document)

        assert not outcome.success
        row = fetch_rows(inventory_db, SYSTEMS, "AssetNumber").iloc[0]
        assert row["HostName"] == "PT-A1"

    def test_disks_written_after_hardware_id_known(self, inventory_db, schema, make_document):
        calls = []

        class RecordingUpsertEngine:
            def __init__(self, conn, schema, scan_date):
                self.counts = UpsertCounts()

            def upsert_system(self, snapshot):
                calls.append("system")

            def upsert_hardware(self, snapshot):
                calls.append("hardware")
                return 42

            def upsert_disks(self, hardware_id, disks):
                calls.append(("disks", hardware_id))

            def upsert_network(self, asset_number, adapters):
                calls.append("network")

            def upsert_software(self, snapshot):
                calls.append("software")

        orchestrator = SnapshotImportOrchestrator(
            inventory_db.engine, schema, upsert_engine_factory=RecordingUpsertEngine
        )
        outcome = orchestrator.import_document(make_document())

        assert outcome.success
        assert calls == ["system", "hardware", ("disks", 42), "network", "software"]


class TestRejection:
    """Files that never reach the database."""

    def test_invalid_document_never_opens_transaction(self, schema, make_document):
        engine = MagicMock()
        document = make_document()
        del document["System"]["BIOS"]["Serial"]
        del document["Hardware"]["Memory"]["TotalGB"]

        outcome = SnapshotImportOrchestrator(engine, schema).import_document(document)

        engine.connect.assert_not_called()
        assert outcome.state is ImportState.REJECTED
        assert outcome.failed_stage is ImportState.VALIDATED
        assert outcome.asset_number == ASSET
        assert "System.BIOS.Serial" in outcome.error_message
        assert "Hardware.Memory.TotalGB" in outcome.error_message

    def test_missing_asset_number_reported_unknown(self, orchestrator, make_document):
        document = make_document()
        del document["AssetNumber"]

        outcome = orchestrator.import_document(document)

        assert outcome.asset_number == "UNKNOWN"
        assert "AssetNumber" in outcome.error_message

    def test_unreadable_file(self, orchestrator, write_snapshot):
        path = write_snapshot("broken.json", "{ not json")

        outcome = orchestrator.import_file(path)

        assert outcome.state is ImportState.REJECTED
        assert outcome.failed_stage is ImportState.LOADED
        assert outcome.source_file == str(path)

    def test_load_accepts_byte_order_mark(self, tmp_path):
        path = tmp_path / "bom.json"
        path.write_text('{"AssetNumber": "07001010001"}', encoding="utf-8-sig")

        assert load_snapshot_document(path) == {"AssetNumber": "07001010001"}


class TestNaturalKeys:
    """Distinct entities are never merged by truncating their keys."""

    def test_overlong_asset_numbers_are_rejected_not_merged(self, inventory_db, orchestrator,
                                                            make_document):
        first = orchestrator.import_document(make_document(AssetNumber="A" * 50 + "-ONE"))
        second = orchestrator.import_document(make_document(AssetNumber="A" * 50 + "-TWO"))

        for outcome in (first, second):
            assert outcome.state is ImportState.REJECTED
            assert outcome.failed_stage is ImportState.VALIDATED
            assert "AssetNumber (longer than 50 characters)" in outcome.error_message
        assert count_rows(inventory_db, SYSTEMS) == 0

    def test_long_distinct_device_ids_do_not_collapse(self, inventory_db, orchestrator,
                                                      make_document):
        document = make_document()
        document["Hardware"]["Disks"] = [
            {"DeviceID": "\\\\?\\Volume{1111}\\", "SizeGB": 1},
            {"DeviceID": "\\\\?\\Volume{2222}\\", "SizeGB": 2},
        ]

        outcome = orchestrator.import_document(document)

        assert outcome.state is ImportState.ROLLED_BACK
        assert outcome.failed_stage is ImportState.WRITING_DISKS
        assert "Disks.DeviceID" in outcome.error_message
        assert count_rows(inventory_db, DISKS) == 0
        assert count_rows(inventory_db, SYSTEMS, AssetNumber=ASSET) == 0


class TestConnectionHandling:
    """Each file's connection is released before the next file starts."""

    def test_connection_released_after_commit(self, inventory_db, orchestrator, make_document):
        assert orchestrator.import_document(make_document()).success
        assert inventory_db.engine.pool.checkedout() == 0

    def test_connection_released_after_rollback(self, inventory_db, orchestrator, make_document):
        with patch.object(EntityUpsertEngine, "upsert_network", side_effect=RuntimeError("boom")):
            outcome = orchestrator.import_document(make_document())

        assert outcome.state is ImportState.ROLLED_BACK
        assert inventory_db.engine.pool.checkedout() == 0
