from fakes import FakeDirectory, FakeGraph, autopilot, build_adapters, computer, managed

from device_inventory_tool.deletion import DeletionStage, DeviceDeleter
from device_inventory_tool.models import (
    STATUS_DELETE_FAILED,
    STATUS_DELETED,
    STATUS_MULTIPLE,
    STATUS_NO_SERIAL,
    STATUS_NOT_ATTEMPTED,
    STATUS_NOT_FOUND,
    STATUS_WOULD_DELETE,
)


def _deleter(directory, graph, dry_run=False):
    return DeviceDeleter(build_adapters(directory, graph), dry_run=dry_run)


def test_device_only_in_directory_short_circuits_graph_chain():
    directory = FakeDirectory([computer("LEGACY-01")])
    graph = FakeGraph()

    outcome = _deleter(directory, graph).delete("LEGACY-01")

    assert outcome.legacy_status == STATUS_DELETED
    assert outcome.management_status == STATUS_NOT_FOUND
    assert outcome.provisioning_status == STATUS_NOT_ATTEMPTED
    assert directory.deleted == ["CN=LEGACY-01,OU=Workstations,DC=corp,DC=example,DC=com"]
    assert graph.deleted_managed == []
    assert graph.deleted_autopilot == []
    assert graph.serial_queries == []
    assert outcome.stages == [
        DeletionStage.START.value,
        DeletionStage.AD_LOOKUP.value,
        DeletionStage.AD_DELETE.value,
        DeletionStage.MGMT_LOOKUP.value,
        DeletionStage.DONE.value,
    ]


def test_full_chain_deletes_everywhere():
    directory = FakeDirectory([computer("P12345")])
    graph = FakeGraph([managed("P12345", serial="SN-1", device_id="md-1")], [autopilot("SN-1", "ap-1")])

    outcome = _deleter(directory, graph).delete("P12345")

    assert (outcome.legacy_status, outcome.management_status, outcome.provisioning_status) == (
        STATUS_DELETED,
        STATUS_DELETED,
        STATUS_DELETED,
    )
    assert graph.deleted_managed == ["md-1"]
    assert graph.deleted_autopilot == ["ap-1"]
    assert outcome.stages[-1] == DeletionStage.DONE.value
    assert outcome.stages.count(DeletionStage.DONE.value) == 1
    assert outcome.errors == []


def test_failed_directory_delete_does_not_block_intune():
    dn = "CN=PC-1,OU=Workstations,DC=corp,DC=example,DC=com"
    directory = FakeDirectory([computer("PC-1")], fail_delete={dn})
    graph = FakeGraph([managed("PC-1", serial="SN-1", device_id="md-1")], [autopilot("SN-1", "ap-1")])

    outcome = _deleter(directory, graph).delete("PC-1")

    assert outcome.legacy_status == STATUS_DELETE_FAILED
    assert outcome.management_status == STATUS_DELETED
    assert outcome.provisioning_status == STATUS_DELETED
    assert len(outcome.errors) == 1
    assert outcome.errors[0].startswith("AD_DELETE:")


def test_failed_intune_delete_still_removes_autopilot_identity():
    graph = FakeGraph(
        [managed("PC-2", serial="SN-2", device_id="md-2")],
        [autopilot("SN-2", "ap-2")],
        fail_delete={"md-2"},
    )

    outcome = _deleter(FakeDirectory(), graph).delete("PC-2")

    assert outcome.legacy_status == STATUS_NOT_FOUND
    assert outcome.management_status == STATUS_DELETE_FAILED
    assert outcome.provisioning_status == STATUS_DELETED
    assert graph.deleted_autopilot == ["ap-2"]


def test_intune_record_without_serial():
    graph = FakeGraph([managed("PC-3", serial=None, device_id="md-3")], [autopilot("SN-3")])

    outcome = _deleter(FakeDirectory(), graph).delete("PC-3")

    assert outcome.management_status == STATUS_DELETED
    assert outcome.provisioning_status == STATUS_NO_SERIAL
    assert DeletionStage.PROVISIONING_LOOKUP.value not in outcome.stages


def test_ambiguous_directory_match_is_not_deleted():
    directory = FakeDirectory([computer("PC1"), computer("PC10")])

    outcome = _deleter(directory, FakeGraph()).delete("PC1")

    assert outcome.legacy_status == STATUS_MULTIPLE
    assert directory.deleted == []
    assert DeletionStage.AD_DELETE.value not in outcome.stages


def test_autopilot_lookup_not_found_after_intune_delete():
    graph = FakeGraph([managed("PC-4", serial="SN-4", device_id="md-4")], [])

    outcome = _deleter(FakeDirectory(), graph).delete("PC-4")

    assert outcome.provisioning_status == STATUS_NOT_FOUND
    assert DeletionStage.PROVISIONING_DELETE.value not in outcome.stages


def test_dry_run_deletes_nothing():
    directory = FakeDirectory([computer("P12345")])
    graph = FakeGraph([managed("P12345", serial="SN-1")], [autopilot("SN-1")])

    outcome = _deleter(directory, graph, dry_run=True).delete("P12345")

    assert (outcome.legacy_status, outcome.management_status, outcome.provisioning_status) == (
        STATUS_WOULD_DELETE,
        STATUS_WOULD_DELETE,
        STATUS_WOULD_DELETE,
    )
    assert directory.deleted == []
    assert graph.deleted_managed == []
    assert graph.deleted_autopilot == []
