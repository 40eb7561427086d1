"""Shared fixtures for inventory import tests."""

import copy
import json
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from database.adapters.database_adapter import DatabaseAdapter
from inventory.schema import discover_schema
from inventory.tables import HARDWARE, build_metadata

BASE_DOCUMENT = {
    "AssetNumber": "07001010001",
    "UUID": "4C4C4544-0052-3510-8048-B4C04F4E3332",
    "PSVersion": "5.1.19041.4894",
    "System": {
        "HostName": "PT-A1",
        "OS": "Microsoft Windows 11 Pro",
        "Version": "10.0.22631",
        "Architecture": "64-bit",
        "Build": "22631",
        "Manufacturer": "Dell Inc.",
        "Model": "OptiPlex 7090",
        "BootTime": "2024-05-01T08:30:00",
        "BIOS": {"Version": "1.21.0", "Serial": "5R1H0X2"},
    },
    "Hardware": {
        "CPU": {
            "Name": "Intel(R) Core(TM) i7-10700 CPU @ 2.90GHz",
            "Cores": 8,
            "Threads": 16,
            "ClockSpeed": 2904,
        },
        "Memory": {"TotalGB": 15.79, "PageFileGB": 2.38, "Sticks": 2},
        "Disks": [
            {"DeviceID": "C:", "VolumeName": "OS", "SizeGB": 256, "FreeGB": 100, "Type": "Fixed"}
        ],
        "GPU": {"Name": "Intel(R) UHD Graphics 630", "AdapterRAMGB": 1, "DriverVersion": "31.0.101.2111"},
    },
    "Network": {
        "Name": "Eth0",
        "MacAddress": "AA:BB:CC:DD:EE:01",
        "IPAddress": ["10.0.0.15", "fe80::1c2d:3e4f:5a6b:7c8d"],
        "SubnetMask": "24",
        "DefaultGateway": "10.0.0.1",
        "DNSServers": ["10.0.0.2", "10.0.0.3"],
        "DHCPEnabled": "True",
        "DHCPServer": "10.0.0.2",
    },
    "Software": {
        "InstalledApps": [],
        "Hotfixes": [],
    },
}


@pytest.fixture
def make_document():
    """Return a fresh valid snapshot document, with top-level overrides applied."""
    def _make(**overrides):
        document = copy.deepcopy(BASE_DOCUMENT)
        document.update(copy.deepcopy(overrides))
        return document
    return _make


@pytest.fixture
def write_snapshot(tmp_path):
    """Write a document (or raw text) into the snapshot folder."""
    folder = tmp_path / "snapshots"
    folder.mkdir()

    def _write(name, document):
        path = folder / name
        if isinstance(document, str):
            path.write_text(document, encoding="utf-8")
        else:
            path.write_text(json.dumps(document), encoding="utf-8")
        return path

    _write.folder = folder
    return _write


@pytest.fixture
def db_adapter(tmp_path):
    adapter = DatabaseAdapter(f"sqlite:///{tmp_path / 'inventory.db'}")
    yield adapter
    adapter.close()


@pytest.fixture
def inventory_db(db_adapter):
    """Adapter whose database holds the full inventory schema."""
    db_adapter.create_tables()
    return db_adapter


@pytest.fixture
def schema(inventory_db):
    return discover_schema(inventory_db.engine)


@pytest.fixture
def clock():
    """Clock returning one day later on every call, starting 2024-06-01 UTC."""
    state = {"now": datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)}

    def _tick():
        current = state["now"]
        state["now"] = current + timedelta(days=1)
        return current

    return _tick


def count_rows(adapter, table, **where):
    clause = " AND ".join(f'"{col}" = :{col}' for col in where) or "1 = 1"
    df = adapter.query_to_dataframe(
        f'SELECT COUNT(*) AS n FROM "{table}" WHERE {clause}', where
    )
    return int(df.iloc[0]["n"])


def fetch_rows(adapter, table, order_by, **where):
    clause = " AND ".join(f'"{col}" = :{col}' for col in where) or "1 = 1"
    return adapter.query_to_dataframe(
        f'SELECT * FROM "{table}" WHERE {clause} ORDER BY "{order_by}"', where
    )


HARDWARE_WITHOUT_GPU_DRIVER_DDL = """
CREATE TABLE "Hardware" (
    "HardwareID" INTEGER NOT NULL PRIMARY KEY,
    "AssetNumber" VARCHAR(50) NOT NULL UNIQUE REFERENCES "Systems" ("AssetNumber"),
    "CPUName" VARCHAR(200),
    "CPUCores" INTEGER,
    "CPUThreads" INTEGER,
    "CPUClockSpeedMHz" INTEGER,
    "TotalRAMGB" NUMERIC(10, 2),
    "PageFileGB" NUMERIC(10, 2),
    "RAMSticks" INTEGER,
    "GPUName" VARCHAR(200),
    "GPURAMGB" NUMERIC(5, 2)
)
"""


@pytest.fixture
def drifted_db(db_adapter):
    """Adapter whose Hardware table predates the GPUDriverVersion column."""
    metadata = build_metadata()
    others = [t for t in metadata.sorted_tables if t.name != HARDWARE]
    with db_adapter.engine.begin() as conn:
        conn.execute(text(HARDWARE_WITHOUT_GPU_DRIVER_DDL))
        metadata.create_all(conn, tables=others)
    return db_adapter
