"""
Data models for Device Inventory Tool.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")

# Per-backend status strings shown in reports
STATUS_FOUND = "Found"
STATUS_NOT_FOUND = "Not Found"
STATUS_MULTIPLE = "Multiple Matches"
STATUS_ERROR = "Error"
STATUS_NO_SERIAL = "No Serial Number"
STATUS_NOT_ATTEMPTED = "Not Attempted"
STATUS_DELETED = "Deleted"
STATUS_DELETE_FAILED = "Delete Failed"
STATUS_WOULD_DELETE = "Would Delete"
STATUS_SKIPPED_EMPTY = "Skipped - Empty"


@dataclass(frozen=True)
class DirectoryComputer:
    """Computer account object in the on-premises directory."""
    distinguished_name: str
    name: str
    dns_host_name: Optional[str] = None
    operating_system: Optional[str] = None
    when_changed: Optional[str] = None


@dataclass(frozen=True)
class ManagedDevice:
    """Intune managed device."""
    id: str
    device_name: str
    serial_number: Optional[str] = None
    user_principal_name: Optional[str] = None
    operating_system: Optional[str] = None
    os_version: Optional[str] = None
    compliance_state: Optional[str] = None
    last_sync: Optional[str] = None
    model: Optional[str] = None
    manufacturer: Optional[str] = None


@dataclass(frozen=True)
class AutopilotDevice:
    """Windows Autopilot device identity."""
    id: str
    serial_number: str
    model: Optional[str] = None
    manufacturer: Optional[str] = None
    group_tag: Optional[str] = None
    managed_device_id: Optional[str] = None
    enrollment_state: Optional[str] = None


@dataclass(frozen=True)
class DetectedApp:
    """Application detected on a managed device."""
    name: str
    version: Optional[str] = None
    publisher: Optional[str] = None
    size_in_bytes: Optional[int] = None


@dataclass
class BackendMatch(Generic[T]):
    """
    Result of one adapter lookup: zero, one or many records, or an error.

    More than one record is an ambiguity and is never resolved automatically.
    """
    backend: str
    records: List[T] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def ambiguous(self) -> bool:
        return not self.failed and len(self.records) > 1

    @property
    def single(self) -> Optional[T]:
        if self.failed or len(self.records) != 1:
            return None
        return self.records[0]

    @property
    def status(self) -> str:
        if self.failed:
            return STATUS_ERROR
        if not self.records:
            return STATUS_NOT_FOUND
        if len(self.records) > 1:
            return STATUS_MULTIPLE
        return STATUS_FOUND


@dataclass(frozen=True)
class DevicePresenceRecord:
    """Presence of one device name across the directory, Intune and Autopilot."""
    input_name: str
    legacy_directory_found: bool = False
    legacy_directory_name: Optional[str] = None
    legacy_distinguished_name: Optional[str] = None
    management_found: bool = False
    management_device_name: Optional[str] = None
    management_serial_number: Optional[str] = None
    management_device_id: Optional[str] = None
    provisioning_found: bool = False
    provisioning_serial_number: Optional[str] = None
    provisioning_device_id: Optional[str] = None
    legacy_status: str = STATUS_NOT_FOUND
    management_status: str = STATUS_NOT_FOUND
    provisioning_status: str = STATUS_NOT_FOUND


@dataclass
class DeletionOutcome:
    """Result of the per-device deletion sequence."""
    input_name: str
    legacy_status: str = STATUS_NOT_FOUND
    management_status: str = STATUS_NOT_FOUND
    provisioning_status: str = STATUS_NOT_ATTEMPTED
    stages: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReportRow:
    computer_name: str
    active_directory: str
    intune: str
    autopilot: str


@dataclass
class BatchReport:
    """Ordered, append-only rows handed to the report sink."""
    mode: str
    rows: List[ReportRow] = field(default_factory=list)

    def append(self, row: ReportRow) -> None:
        self.rows.append(row)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)
