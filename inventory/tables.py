"""
Target table catalog for reconciled inventory data.

The column types declared here are the single source of truth for how
values are bound (string lengths, decimal precision/scale), and are used to
create the schema for fresh deployments and tests.
"""

from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Engine,
    ForeignKey,
    ForeignKeyConstraint,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
)

SYSTEMS = "Systems"
HARDWARE = "Hardware"
DISKS = "Disks"
NETWORK = "Network"
SOFTWARE = "Software"

# Dependency order; writes within a snapshot follow it.
TABLE_NAMES = (SYSTEMS, HARDWARE, DISKS, NETWORK, SOFTWARE)

ASSET_NUMBER_LENGTH = 50


def build_metadata(schema: Optional[str] = None) -> MetaData:
    """Declare the five inventory tables, optionally inside a named schema."""
    metadata = MetaData(schema=schema)
    prefix = f"{schema}." if schema else ""

    Table(
        SYSTEMS, metadata,
        Column("AssetNumber", String(ASSET_NUMBER_LENGTH), primary_key=True),
        Column("HostName", String(100)),
        Column("UUID", String(50)),
        Column("SerialNumber", String(100)),
        Column("OSName", String(200)),
        Column("OSVersion", String(50)),
        Column("OSArchitecture", String(20)),
        Column("OSBuild", String(20)),
        Column("Manufacturer", String(100)),
        Column("Model", String(100)),
        Column("BootTime", DateTime),
        Column("BIOSVersion", String(100)),
        Column("ScanDate", DateTime),
        Column("PSVersion", String(20)),
    )

    Table(
        HARDWARE, metadata,
        Column("HardwareID", Integer, primary_key=True, autoincrement=True),
        Column("AssetNumber", String(ASSET_NUMBER_LENGTH),
               ForeignKey(f"{prefix}{SYSTEMS}.AssetNumber"),
               unique=True, nullable=False),
        Column("CPUName", String(200)),
        Column("CPUCores", Integer),
        Column("CPUThreads", Integer),
        Column("CPUClockSpeedMHz", Integer),
        Column("TotalRAMGB", Numeric(10, 2)),
        Column("PageFileGB", Numeric(10, 2)),
        Column("RAMSticks", Integer),
        Column("GPUName", String(200)),
        Column("GPURAMGB", Numeric(5, 2)),
        Column("GPUDriverVersion", String(50)),
    )

    Table(
        DISKS, metadata,
        Column("HardwareID", Integer, primary_key=True),
        Column("DeviceID", String(10), primary_key=True),
        Column("VolumeName", String(100)),
        Column("SizeGB", Numeric(10, 2)),
        Column("FreeGB", Numeric(10, 2)),
        Column("DiskType", String(20)),
        ForeignKeyConstraint(["HardwareID"], [f"{prefix}{HARDWARE}.HardwareID"]),
    )

    Table(
        NETWORK, metadata,
        Column("AssetNumber", String(ASSET_NUMBER_LENGTH),
               ForeignKey(f"{prefix}{SYSTEMS}.AssetNumber"), primary_key=True),
        Column("MacAddress", String(20), primary_key=True),
        Column("AdapterName", String(200)),
        Column("IPAddress", String(200)),
        Column("SubnetMask", String(100)),
        Column("DefaultGateway", String(100)),
        Column("DNSServers", String(255)),
        Column("DHCPEnabled", Boolean),
        Column("DHCPServer", String(50)),
    )

    Table(
        SOFTWARE, metadata,
        Column("SoftwareID", Integer, primary_key=True, autoincrement=True),
        Column("AssetNumber", String(ASSET_NUMBER_LENGTH),
               ForeignKey(f"{prefix}{SYSTEMS}.AssetNumber"), nullable=False),
        Column("IsApplication", Boolean, nullable=False),
        Column("AppName", String(255)),
        Column("AppVersion", String(100)),
        Column("Publisher", String(255)),
        Column("InstallDate", DateTime),
        Column("HotFixID", String(50)),
        Column("HotFixDescription", String(255)),
        Column("InstalledOn", DateTime),
    )

    return metadata


def get_table(metadata: MetaData, name: str) -> Table:
    key = f"{metadata.schema}.{name}" if metadata.schema else name
    return metadata.tables[key]


def create_tables(engine: Engine, schema: Optional[str] = None) -> MetaData:
    """Create any missing inventory tables and return the metadata used."""
    metadata = build_metadata(schema)
    metadata.create_all(engine)
    return metadata
