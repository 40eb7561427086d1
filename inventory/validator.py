"""
Structural validation of decoded snapshot documents.

Runs before any database work. Reports every missing required field in one
result so a collector bug can be fixed in a single pass.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .normalizer import as_list
from .tables import ASSET_NUMBER_LENGTH

REQUIRED_SECTIONS = ("System", "Hardware", "Network", "Software")


@dataclass
class ValidationResult:
    missing_paths: List[str] = field(default_factory=list)
    invalid_paths: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.missing_paths and not self.invalid_paths


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _get(data: Any, key: str) -> Any:
    return data.get(key) if isinstance(data, dict) else None


def validate_snapshot(document: Dict[str, Any]) -> ValidationResult:
    """
    Check a decoded snapshot for structural completeness.

    Args:
        document: Snapshot as decoded from JSON

    Returns:
        ValidationResult listing every missing required path and every
        value that cannot be stored as given
    """
    missing: List[str] = []
    invalid: List[str] = []

    if not isinstance(document, dict):
        return ValidationResult(["<document>"])

    for section in REQUIRED_SECTIONS:
        if document.get(section) is None:
            missing.append(section)

    asset_number = document.get("AssetNumber")
    if _is_missing(asset_number):
        missing.append("AssetNumber")
    elif len(str(asset_number).strip()) > ASSET_NUMBER_LENGTH:
        invalid.append(f"AssetNumber (longer than {ASSET_NUMBER_LENGTH} characters)")

    system = document.get("System")
    if system is not None:
        for key in ("HostName", "OS"):
            if _is_missing(_get(system, key)):
                missing.append(f"System.{key}")
        bios = _get(system, "BIOS")
        if bios is None:
            missing.append("System.BIOS")
        elif _is_missing(_get(bios, "Serial")):
            missing.append("System.BIOS.Serial")

    hardware = document.get("Hardware")
    if hardware is not None:
        if _is_missing(_get(_get(hardware, "CPU"), "Name")):
            missing.append("Hardware.CPU.Name")
        if _is_missing(_get(_get(hardware, "Memory"), "TotalGB")):
            missing.append("Hardware.Memory.TotalGB")

    for index, adapter in enumerate(as_list(document.get("Network"))):
        for key in ("MacAddress", "Name"):
            if _is_missing(_get(adapter, key)):
                missing.append(f"Network[{index}].{key}")

    return ValidationResult(missing, invalid)


def recover_asset_number(document: Optional[Dict[str, Any]]) -> Optional[str]:
    """Best-effort asset number for reporting, even from invalid documents."""
    if not isinstance(document, dict):
        return None
    value = document.get("AssetNumber")
    return None if _is_missing(value) else str(value).strip()
