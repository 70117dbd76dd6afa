"""
Backend query adapters.

Each adapter translates a device identifier into its backend's native query
and returns a typed BackendMatch. Backend failures are caught here and
recorded on the match so one backend never aborts the others.
"""

from __future__ import annotations

import logging
from typing import Optional

from .directory_client import DirectoryClient, DirectoryError
from .graph_client import DataModelError, GraphApiError, GraphClient, GraphRequestError
from .models import AutopilotDevice, BackendMatch, DirectoryComputer, ManagedDevice
from .session import Session

BACKEND_ERRORS = (GraphRequestError, GraphApiError, DataModelError, DirectoryError)

LEGACY_DIRECTORY = "ActiveDirectory"
MANAGEMENT = "Intune"
PROVISIONING = "Autopilot"


class LegacyDirectoryAdapter:
    backend = LEGACY_DIRECTORY

    def __init__(self, client: DirectoryClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def find_by_name(self, name: str) -> BackendMatch[DirectoryComputer]:
        try:
            return BackendMatch(self.backend, self.client.find_computers(name))
        except BACKEND_ERRORS as exc:
            self.logger.warning("%s lookup failed for %s: %s", self.backend, name, exc)
            return BackendMatch(self.backend, error=str(exc))

    def delete(self, record: DirectoryComputer) -> Optional[str]:
        """Delete the computer account; returns an error message on failure."""
        try:
            self.client.delete_computer(record.distinguished_name)
            return None
        except BACKEND_ERRORS as exc:
            self.logger.error("%s delete failed for %s: %s", self.backend, record.distinguished_name, exc)
            return str(exc)


class ManagementAdapter:
    backend = MANAGEMENT

    def __init__(self, client: GraphClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def find_by_name(self, name: str) -> BackendMatch[ManagedDevice]:
        try:
            return BackendMatch(self.backend, self.client.find_managed_devices_by_name(name))
        except BACKEND_ERRORS as exc:
            self.logger.warning("%s lookup failed for %s: %s", self.backend, name, exc)
            return BackendMatch(self.backend, error=str(exc))

    def delete(self, record: ManagedDevice) -> Optional[str]:
        try:
            self.client.delete_managed_device(record.id)
            return None
        except BACKEND_ERRORS as exc:
            self.logger.error("%s delete failed for %s (%s): %s", self.backend, record.device_name, record.id, exc)
            return str(exc)


class ProvisioningAdapter:
    backend = PROVISIONING

    def __init__(self, client: GraphClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def find_by_serial(self, serial_number: str) -> BackendMatch[AutopilotDevice]:
        try:
            return BackendMatch(self.backend, self.client.find_autopilot_devices_by_serial(serial_number))
        except BACKEND_ERRORS as exc:
            self.logger.warning("%s lookup failed for serial %s: %s", self.backend, serial_number, exc)
            return BackendMatch(self.backend, error=str(exc))

    def delete(self, record: AutopilotDevice) -> Optional[str]:
        try:
            self.client.delete_autopilot_device(record.id)
            return None
        except BACKEND_ERRORS as exc:
            self.logger.error("%s delete failed for serial %s: %s", self.backend, record.serial_number, exc)
            return str(exc)


class BackendAdapters:
    """The three adapters bound to one session."""

    def __init__(
        self,
        legacy: LegacyDirectoryAdapter,
        management: ManagementAdapter,
        provisioning: ProvisioningAdapter,
    ):
        self.legacy = legacy
        self.management = management
        self.provisioning = provisioning

    @classmethod
    def from_session(cls, session: Session, logger: Optional[logging.Logger] = None) -> "BackendAdapters":
        if session.directory is None:
            raise ValueError("Session was opened without a directory connection")
        return cls(
            LegacyDirectoryAdapter(session.directory, logger),
            ManagementAdapter(session.graph, logger),
            ProvisioningAdapter(session.graph, logger),
        )
