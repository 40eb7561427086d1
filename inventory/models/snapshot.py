"""
Typed view of a collector snapshot document.

``SnapshotDocument.from_dict`` is the deserialization boundary: fields that
collectors emit as either one object or a list (GPU, Network) are always
lists here, so the upsert code never has to check shapes. Values are kept
as received; coercion happens when rows are bound.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..normalizer import as_list, first_or_none


def _section(data: Any, key: str) -> Dict[str, Any]:
    value = data.get(key) if isinstance(data, dict) else None
    return value if isinstance(value, dict) else {}


@dataclass
class SystemInfo:
    host_name: Any = None
    os: Any = None
    version: Any = None
    architecture: Any = None
    build: Any = None
    manufacturer: Any = None
    model: Any = None
    boot_time: Any = None
    bios_version: Any = None
    bios_serial: Any = None


@dataclass
class CpuInfo:
    name: Any = None
    cores: Any = None
    threads: Any = None
    clock_speed: Any = None


@dataclass
class MemoryInfo:
    total_gb: Any = None
    page_file_gb: Any = None
    sticks: Any = None


@dataclass
class DiskInfo:
    device_id: Any = None
    volume_name: Any = None
    size_gb: Any = None
    free_gb: Any = None
    type: Any = None


@dataclass
class GpuInfo:
    name: Any = None
    adapter_ram_gb: Any = None
    driver_version: Any = None


@dataclass
class NetworkAdapter:
    name: Any = None
    mac_address: Any = None
    ip_address: Any = None
    subnet_mask: Any = None
    default_gateway: Any = None
    dns_servers: Any = None
    ip_config_type: Any = None
    dhcp_enabled: Any = None
    dhcp_server: Any = None


@dataclass
class InstalledApp:
    display_name: Any = None
    display_version: Any = None
    publisher: Any = None
    install_date: Any = None


@dataclass
class Hotfix:
    hotfix_id: Any = None
    description: Any = None
    installed_on: Any = None


@dataclass
class SnapshotDocument:
    """One point-in-time inventory document for one asset."""
    asset_number: str
    uuid: Any = None
    ps_version: Any = None
    system: SystemInfo = field(default_factory=SystemInfo)
    cpu: CpuInfo = field(default_factory=CpuInfo)
    memory: MemoryInfo = field(default_factory=MemoryInfo)
    disks: List[DiskInfo] = field(default_factory=list)
    gpus: List[GpuInfo] = field(default_factory=list)
    network: List[NetworkAdapter] = field(default_factory=list)
    installed_apps: List[InstalledApp] = field(default_factory=list)
    hotfixes: List[Hotfix] = field(default_factory=list)

    @property
    def primary_gpu(self) -> Optional[GpuInfo]:
        """The GPU stored on the hardware row; additional GPUs are not persisted."""
        return first_or_none(self.gpus, field=f"{self.asset_number} GPU")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SnapshotDocument":
        system = _section(data, "System")
        bios = _section(system, "BIOS")
        hardware = _section(data, "Hardware")
        cpu = _section(hardware, "CPU")
        memory = _section(hardware, "Memory")
        software = _section(data, "Software")

        return cls(
            asset_number=str(data["AssetNumber"]).strip(),
            uuid=data.get("UUID"),
            ps_version=data.get("PSVersion"),
            system=SystemInfo(
                host_name=system.get("HostName"),
                os=system.get("OS"),
                version=system.get("Version"),
                architecture=system.get("Architecture"),
                build=system.get("Build"),
                manufacturer=system.get("Manufacturer"),
                model=system.get("Model"),
                boot_time=system.get("BootTime"),
                bios_version=bios.get("Version"),
                bios_serial=bios.get("Serial"),
            ),
            cpu=CpuInfo(
                name=cpu.get("Name"),
                cores=cpu.get("Cores"),
                threads=cpu.get("Threads"),
                clock_speed=cpu.get("ClockSpeed"),
            ),
            memory=MemoryInfo(
                total_gb=memory.get("TotalGB"),
                page_file_gb=memory.get("PageFileGB"),
                sticks=memory.get("Sticks"),
            ),
            disks=[
                DiskInfo(
                    device_id=d.get("DeviceID"),
                    volume_name=d.get("VolumeName"),
                    size_gb=d.get("SizeGB"),
                    free_gb=d.get("FreeGB"),
                    type=d.get("Type"),
                )
                for d in as_list(hardware.get("Disks")) if isinstance(d, dict)
            ],
            gpus=[
                GpuInfo(
                    name=g.get("Name"),
                    adapter_ram_gb=g.get("AdapterRAMGB"),
                    driver_version=g.get("DriverVersion"),
                )
                for g in as_list(hardware.get("GPU")) if isinstance(g, dict)
            ],
            network=[
                NetworkAdapter(
                    name=n.get("Name"),
                    mac_address=n.get("MacAddress"),
                    ip_address=n.get("IPAddress"),
                    subnet_mask=n.get("SubnetMask"),
                    default_gateway=n.get("DefaultGateway"),
                    dns_servers=n.get("DNSServers"),
                    ip_config_type=n.get("IPConfigType"),
                    dhcp_enabled=n.get("DHCPEnabled"),
                    dhcp_server=n.get("DHCPServer"),
                )
                for n in as_list(data.get("Network")) if isinstance(n, dict)
            ],
            installed_apps=[
                InstalledApp(
                    display_name=a.get("DisplayName"),
                    display_version=a.get("DisplayVersion"),
                    publisher=a.get("Publisher"),
                    install_date=a.get("InstallDate"),
                )
                for a in as_list(software.get("InstalledApps")) if isinstance(a, dict)
            ],
            hotfixes=[
                Hotfix(
                    hotfix_id=h.get("HotFixID"),
                    description=h.get("Description"),
                    installed_on=h.get("InstalledOn"),
                )
                for h in as_list(software.get("Hotfixes")) if isinstance(h, dict)
            ],
        )
