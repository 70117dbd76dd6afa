from datetime import datetime, timezone

import pytest

from fakes import managed

from device_inventory_tool.inventory import (
    DeviceResolutionError,
    list_device_apps,
    list_noncompliant_devices,
    list_stale_devices,
    list_user_devices,
)
from device_inventory_tool.models import DetectedApp

NOW = datetime(2024, 11, 22, 12, 0, 0, tzinfo=timezone.utc)


class FakeClient:
    def __init__(self, devices=(), apps=()):
        self.devices = list(devices)
        self.apps = list(apps)
        self.cutoffs = []

    def list_user_managed_devices(self, upn):
        return [d for d in self.devices if d.user_principal_name == upn]

    def list_noncompliant_devices(self):
        return [d for d in self.devices if d.compliance_state == "noncompliant"]

    def list_devices_synced_before(self, cutoff):
        self.cutoffs.append(cutoff)
        return list(self.devices)

    def find_managed_devices_by_name(self, name):
        return [d for d in self.devices if d.device_name.lower() == name.lower()]

    def list_detected_apps(self, device_id):
        return list(self.apps)


def test_user_devices_sorted_by_name():
    client = FakeClient([
        managed("ZULU", user_principal_name="jane@example.com"),
        managed("alpha", user_principal_name="jane@example.com"),
        managed("OTHER", user_principal_name="bob@example.com"),
    ])

    results, code = list_user_devices(client, " jane@example.com ")

    assert code == 0
    assert [d["deviceName"] for d in results["devices"]] == ["alpha", "ZULU"]


def test_user_devices_requires_upn():
    with pytest.raises(ValueError):
        list_user_devices(FakeClient(), "  ")


def test_noncompliant_os_filter():
    client = FakeClient([
        managed("WIN-1", compliance_state="noncompliant", operating_system="Windows"),
        managed("IPAD-1", compliance_state="noncompliant", operating_system="iPadOS"),
        managed("WIN-2", compliance_state="compliant", operating_system="Windows"),
    ])

    results, _ = list_noncompliant_devices(client, os_filter="windows")

    assert [d["deviceName"] for d in results["devices"]] == ["WIN-1"]


def test_stale_devices_oldest_first():
    client = FakeClient([
        managed("RECENT", last_sync="2024-11-12T12:00:00Z"),
        managed("OLD", last_sync="2024-08-14T11:00:00.1234567Z"),
        managed("OLDER", last_sync="2024-01-01T00:00:00Z"),
        managed("NEVER", last_sync="0001-01-01T00:00:00Z"),
    ])

    results, code = list_stale_devices(client, 30, now=NOW)

    assert code == 0
    assert [d["deviceName"] for d in results["devices"]] == ["OLDER", "OLD", "NEVER"]
    assert results["devices"][1]["daysSinceSync"] == 100
    assert results["devices"][2]["daysSinceSync"] is None
    assert client.cutoffs == [datetime(2024, 10, 23, 12, 0, 0, tzinfo=timezone.utc)]


def test_stale_devices_rejects_non_positive_days():
    with pytest.raises(ValueError, match="positive"):
        list_stale_devices(FakeClient(), 0)


def test_device_apps_sorted():
    client = FakeClient(
        [managed("PC-1", serial="SN-1")],
        [DetectedApp("zoom", "5.1"), DetectedApp("Adobe Reader", "24.1", publisher="Adobe")],
    )

    results, code = list_device_apps(client, "PC-1")

    assert code == 0
    assert results["device"]["serialNumber"] == "SN-1"
    assert [a["name"] for a in results["applications"]] == ["Adobe Reader", "zoom"]


def test_device_apps_unknown_device():
    with pytest.raises(DeviceResolutionError, match="No Intune device"):
        list_device_apps(FakeClient(), "GHOST")


def test_device_apps_ambiguous_device():
    client = FakeClient([managed("PC-1", device_id="a"), managed("PC-1", device_id="b")])

    with pytest.raises(DeviceResolutionError, match="matches 2"):
        list_device_apps(client, "PC-1")
