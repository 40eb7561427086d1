"""
Entity upsert engine.

Writes one snapshot's rows into the five inventory tables using an
existence check on each entity's natural key followed by either an UPDATE
or an INSERT. All statements run on the caller's connection so they share
its transaction; the engine itself never commits.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import Connection, String, Table, text
from sqlalchemy.sql.elements import TextClause

from .exceptions import DatabaseWriteError
from .models.snapshot import DiskInfo, Hotfix, InstalledApp, NetworkAdapter, SnapshotDocument
from .normalizer import (
    as_list,
    bind_row,
    blank_to_none,
    cidr_to_netmask,
    join_list,
    to_bool,
    to_text,
)
from .schema import SchemaDescriptor
from .tables import DISKS, HARDWARE, NETWORK, SOFTWARE, SYSTEMS, get_table

logger = logging.getLogger(__name__)


class UpsertAction(str, Enum):
    INSERT = "insert"
    UPDATE = "update"


@dataclass
class UpsertCounts:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0

    def add(self, action: UpsertAction) -> None:
        if action is UpsertAction.INSERT:
            self.inserted += 1
        else:
            self.updated += 1


def normalize_mac(mac: Any) -> Optional[str]:
    """Uppercase a MAC address and use ':' separators ("aa-bb-.." -> "AA:BB:..")."""
    value = blank_to_none(mac)
    if value is None:
        return None
    return value.upper().replace("-", ":")


class EntityUpsertEngine:
    """
    Upserts the entities of one snapshot on an open connection.

    Call order matters: ``upsert_system`` first, then ``upsert_hardware``
    (which returns the HardwareID that disks are keyed by), then disks,
    network adapters and software.
    """

    def __init__(self, conn: Connection, schema: SchemaDescriptor, scan_date: datetime):
        self.conn = conn
        self.schema = schema
        self.scan_date = scan_date
        self.counts = UpsertCounts()
        self._preparer = conn.dialect.identifier_preparer

    # ========================================================================
    # STATEMENT TEMPLATES
    # ========================================================================

    def _table(self, name: str) -> Table:
        return get_table(self.schema.metadata, name)

    def _quote(self, column: str) -> str:
        return self._preparer.quote(column)

    def _where(self, key: Dict[str, Any]) -> str:
        return " AND ".join(f"{self._quote(col)} = :{col}" for col in key)

    def _lookup(self, table_name: str, key: Dict[str, Any],
                column: Optional[str] = None) -> Optional[Any]:
        """
        Look up a row by its natural key.

        Returns the value of ``column`` (or 1 when no column is given) for
        the matching row, or None when no row exists.
        """
        table = self._table(table_name)
        selected = self._quote(column) if column else "1"
        statement = text(
            f"SELECT {selected} FROM {self._preparer.format_table(table)} "
            f"WHERE {self._where(key)}"
        ).bindparams(*bind_row(table, key))
        row = self.conn.execute(statement).first()
        return None if row is None else row[0]

    def _statement(self, action: UpsertAction, table: Table,
                   key: Dict[str, Any], row: Dict[str, Any]) -> Optional[TextClause]:
        table_sql = self._preparer.format_table(table)

        if action is UpsertAction.INSERT:
            columns = ", ".join(self._quote(col) for col in row)
            values = ", ".join(f":{col}" for col in row)
            return text(f"INSERT INTO {table_sql} ({columns}) VALUES ({values})")

        assignments = ", ".join(
            f"{self._quote(col)} = :{col}" for col in row if col not in key
        )
        if not assignments:
            return None
        return text(f"UPDATE {table_sql} SET {assignments} WHERE {self._where(key)}")

    def _check_key(self, table: Table, key: Dict[str, Any]) -> None:
        """Natural-key values are never truncated; an over-long key fails the write."""
        for column, value in key.items():
            column_type = table.c[column].type
            if not isinstance(column_type, String) or not column_type.length:
                continue
            text_value = to_text(value)
            if text_value is not None and len(text_value) > column_type.length:
                raise DatabaseWriteError(
                    f"Key {table.name}.{column}={text_value!r} is longer than "
                    f"{column_type.length} characters"
                )

    def _upsert(self, table_name: str, key: Dict[str, Any],
                values: Dict[str, Any]) -> UpsertAction:
        table = self._table(table_name)
        self._check_key(table, key)
        action = (
            UpsertAction.INSERT
            if self._lookup(table_name, key) is None
            else UpsertAction.UPDATE
        )

        row = self.schema.narrow(table_name, {**key, **values})
        row.update(key)
        statement = self._statement(action, table, key, row)
        if statement is not None:
            self.conn.execute(statement.bindparams(*bind_row(table, row)))

        self.counts.add(action)
        logger.debug(f"{action.value} {table_name} {key}")
        return action

    # ========================================================================
    # ENTITY WRITES
    # ========================================================================

    def upsert_system(self, snapshot: SnapshotDocument) -> UpsertAction:
        system = snapshot.system
        return self._upsert(
            SYSTEMS,
            {"AssetNumber": snapshot.asset_number},
            {
                "HostName": system.host_name,
                "UUID": snapshot.uuid,
                "SerialNumber": system.bios_serial,
                "OSName": system.os,
                "OSVersion": system.version,
                "OSArchitecture": system.architecture,
                "OSBuild": system.build,
                "Manufacturer": system.manufacturer,
                "Model": system.model,
                "BootTime": system.boot_time,
                "BIOSVersion": system.bios_version,
                "ScanDate": self.scan_date,
                "PSVersion": snapshot.ps_version,
            },
        )

    def upsert_hardware(self, snapshot: SnapshotDocument) -> int:
        """Upsert the hardware row and return its HardwareID."""
        gpu = snapshot.primary_gpu
        key = {"AssetNumber": snapshot.asset_number}
        self._upsert(
            HARDWARE,
            key,
            {
                "CPUName": snapshot.cpu.name,
                "CPUCores": snapshot.cpu.cores,
                "CPUThreads": snapshot.cpu.threads,
                "CPUClockSpeedMHz": snapshot.cpu.clock_speed,
                "TotalRAMGB": snapshot.memory.total_gb,
                "PageFileGB": snapshot.memory.page_file_gb,
                "RAMSticks": snapshot.memory.sticks,
                "GPUName": gpu.name if gpu else None,
                "GPURAMGB": gpu.adapter_ram_gb if gpu else None,
                "GPUDriverVersion": gpu.driver_version if gpu else None,
            },
        )

        hardware_id = self._lookup(HARDWARE, key, "HardwareID")
        if hardware_id is None:
            raise DatabaseWriteError(
                f"Hardware row for asset {snapshot.asset_number} not found after upsert"
            )
        return int(hardware_id)

    def upsert_disks(self, hardware_id: int, disks: List[DiskInfo]) -> int:
        written = 0
        for disk in disks:
            device_id = blank_to_none(disk.device_id)
            if device_id is None:
                logger.warning(
                    f"Skipping disk without DeviceID for HardwareID {hardware_id}"
                )
                self.counts.skipped += 1
                continue

            self._upsert(
                DISKS,
                {"HardwareID": hardware_id, "DeviceID": device_id},
                {
                    "VolumeName": disk.volume_name,
                    "SizeGB": disk.size_gb,
                    "FreeGB": disk.free_gb,
                    "DiskType": disk.type,
                },
            )
            written += 1
        return written

    def _dhcp_enabled(self, adapter: NetworkAdapter) -> bool:
        if adapter.dhcp_enabled is not None:
            return to_bool(adapter.dhcp_enabled)
        config_type = blank_to_none(adapter.ip_config_type)
        return config_type is not None and config_type.lower() == "dhcp"

    def upsert_network(self, asset_number: str, adapters: List[NetworkAdapter]) -> int:
        written = 0
        for adapter in adapters:
            mac = normalize_mac(adapter.mac_address)
            if mac is None:
                # Validation rejects these; guard for callers that skip it
                logger.warning(f"Skipping network adapter without MAC for {asset_number}")
                self.counts.skipped += 1
                continue

            self._upsert(
                NETWORK,
                {"AssetNumber": asset_number, "MacAddress": mac},
                {
                    "AdapterName": adapter.name,
                    "IPAddress": join_list(adapter.ip_address),
                    "SubnetMask": join_list(
                        [cidr_to_netmask(m) for m in as_list(adapter.subnet_mask)]
                    ),
                    "DefaultGateway": join_list(adapter.default_gateway),
                    "DNSServers": join_list(adapter.dns_servers),
                    "DHCPEnabled": self._dhcp_enabled(adapter),
                    "DHCPServer": adapter.dhcp_server,
                },
            )
            written += 1
        return written

    def upsert_applications(self, asset_number: str, apps: List[InstalledApp]) -> int:
        written = 0
        for app in apps:
            name = blank_to_none(app.display_name)
            if name is None:
                logger.debug(f"Skipping application without DisplayName for {asset_number}")
                self.counts.skipped += 1
                continue

            self._upsert(
                SOFTWARE,
                {"AssetNumber": asset_number, "IsApplication": True, "AppName": name},
                {
                    "AppVersion": app.display_version,
                    "Publisher": app.publisher,
                    "InstallDate": app.install_date,
                },
            )
            written += 1
        return written

    def upsert_hotfixes(self, asset_number: str, hotfixes: List[Hotfix]) -> int:
        written = 0
        for hotfix in hotfixes:
            hotfix_id = blank_to_none(hotfix.hotfix_id)
            if hotfix_id is None:
                logger.debug(f"Skipping hotfix without HotFixID for {asset_number}")
                self.counts.skipped += 1
                continue

            self._upsert(
                SOFTWARE,
                {"AssetNumber": asset_number, "IsApplication": False, "HotFixID": hotfix_id},
                {
                    "HotFixDescription": hotfix.description,
                    "InstalledOn": hotfix.installed_on,
                },
            )
            written += 1
        return written

    def upsert_software(self, snapshot: SnapshotDocument) -> int:
        """Applications first, then hotfixes."""
        return (
            self.upsert_applications(snapshot.asset_number, snapshot.installed_apps)
            + self.upsert_hotfixes(snapshot.asset_number, snapshot.hotfixes)
        )
