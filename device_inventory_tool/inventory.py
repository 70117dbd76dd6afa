"""
Intune inventory reports: devices per user, noncompliant devices, stale
devices and installed applications.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from .graph_client import GraphClient
from .models import ManagedDevice
from .utils import days_since


class DeviceResolutionError(Exception):
    """Raised when a device name does not resolve to exactly one managed device."""


def device_to_dict(device: ManagedDevice, now: Optional[datetime] = None) -> Dict[str, Any]:
    return {
        "id": device.id,
        "deviceName": device.device_name,
        "serialNumber": device.serial_number,
        "userPrincipalName": device.user_principal_name,
        "operatingSystem": device.operating_system,
        "osVersion": device.os_version,
        "complianceState": device.compliance_state,
        "lastSyncDateTime": device.last_sync,
        "daysSinceSync": days_since(device.last_sync, now),
        "model": device.model,
        "manufacturer": device.manufacturer,
    }


def _sorted_by_name(devices: List[ManagedDevice]) -> List[ManagedDevice]:
    return sorted(devices, key=lambda d: d.device_name.lower())


def list_user_devices(
    client: GraphClient,
    user_principal_name: str,
    logger: Optional[logging.Logger] = None,
) -> Tuple[Dict[str, Any], int]:
    """
    List managed devices whose primary user is the given UPN.

    Returns:
        Tuple of (results, exit_code); exit_code is 0 even when nothing matched.
    """
    log = logger or logging.getLogger(__name__)
    upn = user_principal_name.strip()
    if not upn:
        raise ValueError("User principal name cannot be empty")
    devices = _sorted_by_name(client.list_user_managed_devices(upn))
    log.info("Found %d devices for %s", len(devices), upn)
    return {
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "userPrincipalName": upn,
        "devices": [device_to_dict(d) for d in devices],
    }, 0


def list_noncompliant_devices(
    client: GraphClient,
    os_filter: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> Tuple[Dict[str, Any], int]:
    """
    List noncompliant devices, optionally limited to one operating system
    (case-insensitive, e.g. "Windows").
    """
    log = logger or logging.getLogger(__name__)
    devices = client.list_noncompliant_devices()
    if os_filter:
        wanted = os_filter.lower()
        devices = [d for d in devices if (d.operating_system or "").lower() == wanted]
    devices = _sorted_by_name(devices)
    log.info("Found %d noncompliant devices", len(devices))
    return {
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "operatingSystem": os_filter,
        "devices": [device_to_dict(d) for d in devices],
    }, 0


def list_stale_devices(
    client: GraphClient,
    days: int,
    logger: Optional[logging.Logger] = None,
    now: Optional[datetime] = None,
) -> Tuple[Dict[str, Any], int]:
    """
    List devices that have not synced with Intune for at least ``days`` days,
    oldest first.
    """
    log = logger or logging.getLogger(__name__)
    if days <= 0:
        raise ValueError(f"Invalid day count: {days}. Must be a positive integer.")
    current = now or datetime.now(timezone.utc)
    cutoff = current - timedelta(days=days)
    devices = client.list_devices_synced_before(cutoff)

    rows = [device_to_dict(d, current) for d in devices]
    # Guard against the server filter being looser than requested
    rows = [r for r in rows if r["daysSinceSync"] is None or r["daysSinceSync"] >= days]
    rows.sort(key=lambda r: (r["daysSinceSync"] is None, -(r["daysSinceSync"] or 0), (r["deviceName"] or "").lower()))
    log.info("Found %d devices not synced in %d days", len(rows), days)
    return {
        "generatedAt": current.isoformat(),
        "days": days,
        "cutoff": cutoff.isoformat(),
        "devices": rows,
    }, 0


def list_device_apps(
    client: GraphClient,
    device_name: str,
    logger: Optional[logging.Logger] = None,
) -> Tuple[Dict[str, Any], int]:
    """
    List detected applications for the single managed device named ``device_name``.

    Raises:
        DeviceResolutionError: when the name matches no device or several.
    """
    log = logger or logging.getLogger(__name__)
    matches = client.find_managed_devices_by_name(device_name)
    if not matches:
        raise DeviceResolutionError(f"No Intune device named '{device_name}'")
    if len(matches) > 1:
        ids = ", ".join(f"{d.device_name} ({d.serial_number or d.id})" for d in matches)
        raise DeviceResolutionError(f"'{device_name}' matches {len(matches)} Intune devices: {ids}")

    device = matches[0]
    apps = sorted(client.list_detected_apps(device.id), key=lambda a: a.name.lower())
    log.info("Found %d applications on %s", len(apps), device.device_name)
    return {
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "device": device_to_dict(device),
        "applications": [
            {"name": a.name, "version": a.version, "publisher": a.publisher, "sizeInBytes": a.size_in_bytes}
            for a in apps
        ],
    }, 0
