"""
Microsoft Graph client for Intune managed devices and Autopilot identities.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import msal
import requests

from .config import GraphAuth
from .models import AutopilotDevice, DetectedApp, ManagedDevice
from .utils import odata_literal

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
GRAPH_BETA_URL = "https://graph.microsoft.com/beta"
GRAPH_SCOPE = ["https://graph.microsoft.com/.default"]
AUTHORITY_TEMPLATE = "https://login.microsoftonline.com/{tenant}"

MANAGED_DEVICE_FIELDS = (
    "id,deviceName,serialNumber,userPrincipalName,operatingSystem,osVersion,"
    "complianceState,lastSyncDateTime,model,manufacturer"
)


def _encode_filter(odata_filter: str) -> str:
    return quote(odata_filter, safe="'(),:")


class GraphRequestError(Exception):
    """Raised when a Graph request cannot be sent or returns an HTTP error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GraphApiError(Exception):
    """Raised when Graph returns malformed data or it cannot be parsed."""


class DataModelError(Exception):
    """Raised when expected fields are missing in responses."""


class GraphClient:
    """
    Client responsible for fetching and deleting Intune and Autopilot objects.
    """

    def __init__(
        self,
        auth: Optional[GraphAuth] = None,
        logger: Optional[logging.Logger] = None,
        *,
        timeout: int = 30,
        debug_api: bool = False,
        msal_app: Optional[Any] = None,
    ):
        self.auth = (auth or GraphAuth()).from_env()
        self.logger = logger or logging.getLogger(__name__)
        self.timeout = timeout
        self.debug_api = debug_api
        self._msal_app = msal_app

        if not self.auth.bearer_token and not (self.auth.tenant_id and self.auth.client_id and self.auth.client_secret):
            raise GraphRequestError(
                "Graph credentials are incomplete. Set AZURE_TENANT_ID, AZURE_CLIENT_ID and "
                "AZURE_CLIENT_SECRET (or GRAPH_BEARER_TOKEN) before running."
            )

    # -------- Authentication --------
    def _get_msal_app(self) -> Any:
        if self._msal_app is None:
            self._msal_app = msal.ConfidentialClientApplication(
                client_id=self.auth.client_id,
                client_credential=self.auth.client_secret,
                authority=AUTHORITY_TEMPLATE.format(tenant=self.auth.tenant_id),
            )
        return self._msal_app

    def _get_token(self) -> str:
        if self.auth.bearer_token:
            return self.auth.bearer_token

        # MSAL serves the cached token until it nears expiry
        try:
            result = self._get_msal_app().acquire_token_for_client(scopes=GRAPH_SCOPE)
        except (requests.RequestException, ValueError) as exc:
            raise GraphRequestError(f"Failed to acquire Graph access token: {exc}", status_code=401) from exc
        token = result.get("access_token") if isinstance(result, dict) else None
        if not token:
            description = (result or {}).get("error_description") or (result or {}).get("error") or "unknown error"
            raise GraphRequestError(f"Failed to acquire Graph access token: {description}", status_code=401)
        return token

    def authenticate(self) -> None:
        """Acquire a token up front so credential problems surface before any device is processed."""
        self._get_token()
        self.logger.debug("Graph authentication succeeded")

    # -------- Transport --------
    def _call(
        self,
        path: str,
        method: str = "GET",
        body: Optional[Dict[str, Any]] = None,
        *,
        beta: bool = False,
    ) -> Dict[str, Any]:
        if path.startswith("https://"):
            url = path
        else:
            url = (GRAPH_BETA_URL if beta else GRAPH_BASE_URL) + path
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self._get_token()}",
        }

        try:
            resp = requests.request(method, url, json=body, headers=headers, timeout=self.timeout)

            if self.debug_api:
                self.logger.debug("API Response [%s %s]: Status=%d", method, path, resp.status_code)
                self.logger.debug("Response body: %s", (resp.text or "")[:5000])

        except requests.exceptions.Timeout as exc:
            raise GraphRequestError(f"Request timed out after {self.timeout}s for {url}") from exc
        except requests.RequestException as exc:
            raise GraphRequestError(f"HTTP request failed for {url}: {exc}") from exc

        if resp.status_code >= 400:
            error_msg = f"HTTP {resp.status_code} for {method} {url}"
            if resp.status_code == 401:
                error_msg += (
                    "\n\nAuthentication failed: token may be expired or invalid."
                    "\n\nPlease verify the app registration credentials are configured correctly."
                )
            elif resp.status_code == 403:
                error_msg += (
                    "\n\nForbidden: app registration lacks required permissions."
                    "\n\nPlease verify the application has these Graph permissions:"
                    "\n  - DeviceManagementManagedDevices.Read.All (ReadWrite.All to delete)"
                    "\n  - DeviceManagementServiceConfig.Read.All (ReadWrite.All to delete)"
                    "\n  - User.Read.All"
                )
            elif resp.status_code == 404:
                error_msg += f"\n\nResource not found: {path}"
            elif resp.status_code == 429:
                retry_after = resp.headers.get("Retry-After") if resp.headers else None
                error_msg += f"\n\nThrottled by Graph (Retry-After: {retry_after or 'unspecified'})."
            elif resp.status_code >= 500:
                error_msg += "\n\nServer error: Microsoft Graph returned an internal error. Please try again later."
            error_msg += f"\n\nServer response (first 500 chars): {(resp.text or '')[:500]}"
            raise GraphRequestError(error_msg, status_code=resp.status_code)

        if resp.status_code == 204 or not resp.text:
            return {}

        try:
            data = resp.json()
        except ValueError as exc:
            self.logger.error("Failed to parse JSON from response. Body: %s", resp.text[:1000])
            raise GraphApiError(f"Failed to parse JSON response for {url}") from exc
        if not isinstance(data, dict):
            raise GraphApiError(f"Unexpected response type for {url}: {type(data).__name__}")
        return data

    def _get_all(self, path: str, *, beta: bool = False) -> List[Dict[str, Any]]:
        """Follow @odata.nextLink until every page has been read."""
        items: List[Dict[str, Any]] = []
        next_path: Optional[str] = path
        page = 0
        while next_path:
            data = self._call(next_path, beta=beta)
            values = data.get("value")
            if values is None:
                raise DataModelError(f"Response for {path} has no 'value' collection")
            if not isinstance(values, list):
                raise GraphApiError(f"Unexpected 'value' type for {path}: {type(values).__name__}")
            items.extend(v for v in values if isinstance(v, dict))
            next_path = data.get("@odata.nextLink")
            page += 1
            self.logger.debug("Fetched page %d for %s (total: %d)", page, path, len(items))
        return items

    # -------- Parsing helpers --------
    @staticmethod
    def _parse_managed_device(item: Dict[str, Any]) -> ManagedDevice:
        device_id = item.get("id")
        if not device_id:
            raise DataModelError("Managed device record missing id")
        return ManagedDevice(
            id=str(device_id),
            device_name=item.get("deviceName") or "",
            serial_number=(item.get("serialNumber") or "").strip() or None,
            user_principal_name=item.get("userPrincipalName") or None,
            operating_system=item.get("operatingSystem"),
            os_version=item.get("osVersion"),
            compliance_state=item.get("complianceState"),
            last_sync=item.get("lastSyncDateTime"),
            model=item.get("model"),
            manufacturer=item.get("manufacturer"),
        )

    @staticmethod
    def _parse_autopilot_device(item: Dict[str, Any]) -> AutopilotDevice:
        device_id = item.get("id")
        serial = item.get("serialNumber")
        if not device_id or not serial:
            raise DataModelError("Autopilot record missing id or serialNumber")
        return AutopilotDevice(
            id=str(device_id),
            serial_number=str(serial),
            model=item.get("model"),
            manufacturer=item.get("manufacturer"),
            group_tag=item.get("groupTag") or None,
            managed_device_id=item.get("managedDeviceId") or None,
            enrollment_state=item.get("enrollmentState"),
        )

    # -------- Managed devices --------
    def list_managed_devices(self, odata_filter: Optional[str] = None) -> List[ManagedDevice]:
        path = f"/deviceManagement/managedDevices?$select={MANAGED_DEVICE_FIELDS}"
        if odata_filter:
            path += "&$filter=" + _encode_filter(odata_filter)
        return [self._parse_managed_device(item) for item in self._get_all(path)]

    def find_managed_devices_by_name(self, device_name: str) -> List[ManagedDevice]:
        devices = self.list_managed_devices(f"deviceName eq {odata_literal(device_name)}")
        # Filter again client-side; Graph compares case-insensitively
        return [d for d in devices if d.device_name.lower() == device_name.lower()]

    def list_user_managed_devices(self, user_principal_name: str) -> List[ManagedDevice]:
        path = f"/users/{quote(user_principal_name)}/managedDevices?$select={MANAGED_DEVICE_FIELDS}"
        return [self._parse_managed_device(item) for item in self._get_all(path)]

    def list_noncompliant_devices(self) -> List[ManagedDevice]:
        return self.list_managed_devices("complianceState eq 'noncompliant'")

    def list_devices_synced_before(self, cutoff: datetime) -> List[ManagedDevice]:
        stamp = cutoff.strftime("%Y-%m-%dT%H:%M:%SZ")
        return self.list_managed_devices(f"lastSyncDateTime le {stamp}")

    def list_detected_apps(self, managed_device_id: str) -> List[DetectedApp]:
        # detectedApps navigation on managedDevice is only exposed on beta
        items = self._get_all(f"/deviceManagement/managedDevices/{managed_device_id}/detectedApps", beta=True)
        apps: List[DetectedApp] = []
        for item in items:
            name = item.get("displayName")
            if not name:
                continue
            size = item.get("sizeInByte")
            apps.append(
                DetectedApp(
                    name=name,
                    version=item.get("version"),
                    publisher=item.get("publisher"),
                    size_in_bytes=int(size) if size is not None else None,
                )
            )
        self.logger.debug("Found %d applications for managed device %s", len(apps), managed_device_id)
        return apps

    def delete_managed_device(self, managed_device_id: str) -> None:
        self._call(f"/deviceManagement/managedDevices/{managed_device_id}", method="DELETE")
        self.logger.info("Deleted Intune managed device %s", managed_device_id)

    # -------- Autopilot --------
    def find_autopilot_devices_by_serial(self, serial_number: str) -> List[AutopilotDevice]:
        """
        Autopilot identities only support contains() on serialNumber, so exact
        equality is enforced on the returned records.
        """
        odata_filter = f"contains(serialNumber,{odata_literal(serial_number)})"
        path = "/deviceManagement/windowsAutopilotDeviceIdentities?$filter=" + _encode_filter(odata_filter)
        records = [self._parse_autopilot_device(item) for item in self._get_all(path)]
        wanted = serial_number.strip().lower()
        return [r for r in records if r.serial_number.strip().lower() == wanted]

    def delete_autopilot_device(self, autopilot_id: str) -> None:
        self._call(f"/deviceManagement/windowsAutopilotDeviceIdentities/{autopilot_id}", method="DELETE")
        self.logger.info("Deleted Autopilot device identity %s", autopilot_id)
