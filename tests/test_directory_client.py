import pytest

from device_inventory_tool.config import DirectoryAuth
from device_inventory_tool.directory_client import TREE_DELETE_CONTROL, DirectoryClient, DirectoryError

SEARCH_BASE = "OU=Workstations,DC=corp,DC=example,DC=com"


class FakeEntry:
    def __init__(self, dn, attributes):
        self.entry_dn = dn
        self.entry_attributes_as_dict = attributes


class FakeConnection:
    def __init__(self, entries=(), delete_ok=True, search_result=None):
        self._entries = list(entries)
        self.entries = []
        self.delete_ok = delete_ok
        self.searches = []
        self.deletes = []
        self.result = {}
        self.unbound = False
        self.search_result = search_result or {"result": 0, "description": "success"}

    def search(self, search_base, search_filter, search_scope=None, attributes=None):
        self.searches.append((search_base, search_filter, attributes))
        self.entries = list(self._entries)
        self.result = dict(self.search_result)
        return self.result["result"] == 0 and bool(self.entries)

    def delete(self, dn, controls=None):
        self.deletes.append((dn, controls))
        if not self.delete_ok:
            self.result = {"description": "insufficientAccessRights", "message": "00002098: access denied"}
        return self.delete_ok

    def unbind(self):
        self.unbound = True


def _client(connection):
    return DirectoryClient(DirectoryAuth(search_base=SEARCH_BASE), connection=connection)


def test_find_computers_parses_entries():
    connection = FakeConnection([
        FakeEntry(
            f"CN=P12345,{SEARCH_BASE}",
            {"name": ["P12345"], "dNSHostName": ["p12345.corp.example.com"], "operatingSystem": []},
        ),
    ])

    results = _client(connection).find_computers("P12345")

    assert len(results) == 1
    assert results[0].name == "P12345"
    assert results[0].distinguished_name == f"CN=P12345,{SEARCH_BASE}"
    assert results[0].dns_host_name == "p12345.corp.example.com"
    assert results[0].operating_system is None
    base, search_filter, _ = connection.searches[0]
    assert base == SEARCH_BASE
    assert search_filter == "(&(objectCategory=computer)(name=*P12345*))"


def test_find_computers_escapes_filter_characters():
    connection = FakeConnection()

    assert _client(connection).find_computers("PC(1)*") == []
    assert "(name=*PC\\281\\29\\2a*)" in connection.searches[0][1]


def test_failed_search_raises_instead_of_returning_nothing():
    connection = FakeConnection(search_result={"result": 32, "description": "noSuchObject", "message": ""})

    with pytest.raises(DirectoryError, match="noSuchObject"):
        _client(connection).find_computers("P12345")


def test_delete_uses_tree_delete_control():
    connection = FakeConnection()
    dn = f"CN=P12345,{SEARCH_BASE}"

    _client(connection).delete_computer(dn)

    assert connection.deletes == [(dn, [TREE_DELETE_CONTROL])]


def test_rejected_delete_raises():
    connection = FakeConnection(delete_ok=False)

    with pytest.raises(DirectoryError, match="insufficientAccessRights"):
        _client(connection).delete_computer(f"CN=P12345,{SEARCH_BASE}")


def test_close_unbinds():
    connection = FakeConnection()
    client = _client(connection)

    client.close()

    assert connection.unbound is True


def test_search_base_required(monkeypatch):
    monkeypatch.delenv("AD_SEARCH_BASE", raising=False)

    with pytest.raises(DirectoryError, match="AD_SEARCH_BASE"):
        DirectoryClient(DirectoryAuth(server="dc01"), connection=FakeConnection())


def test_server_required_without_connection(monkeypatch):
    monkeypatch.delenv("AD_SERVER", raising=False)

    with pytest.raises(DirectoryError, match="AD_SERVER"):
        DirectoryClient(DirectoryAuth(search_base=SEARCH_BASE))
