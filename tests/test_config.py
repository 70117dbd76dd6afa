import pytest

from device_inventory_tool.config import DEFAULT_EXPORT_DIR, ConfigError, load_config

ENV_VARS = (
    "DEVICE_INVENTORY_TOOL_CONFIG",
    "AZURE_TENANT_ID",
    "AZURE_CLIENT_ID",
    "AZURE_CLIENT_SECRET",
    "GRAPH_BEARER_TOKEN",
    "AD_SERVER",
    "AD_USER",
    "AD_PASSWORD",
    "AD_SEARCH_BASE",
    "AD_USE_SSL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def test_defaults_without_file(tmp_path):
    config = load_config(str(tmp_path / "missing.yml"))

    assert config.config_path is None
    assert config.export_dir == DEFAULT_EXPORT_DIR
    assert config.request_timeout == 30
    assert config.directory.use_ssl is True


def test_file_values_loaded(tmp_path):
    path = tmp_path / "tool.yml"
    path.write_text(
        "graph:\n  tenant_id: tenant-a\n  client_id: client-a\n"
        "directory:\n  server: dc01\n  search_base: DC=corp,DC=example,DC=com\n  use_ssl: false\n"
        f"export_dir: {tmp_path / 'reports'}\n"
        "request_timeout: 10\n",
        encoding="utf-8",
    )

    config = load_config(str(path))

    assert config.config_path == path
    assert config.graph.tenant_id == "tenant-a"
    assert config.graph.client_id == "client-a"
    assert config.directory.server == "dc01"
    assert config.directory.use_ssl is False
    assert config.export_dir == tmp_path / "reports"
    assert config.request_timeout == 10


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "tool.yml"
    path.write_text("graph:\n  tenant_id: from-file\n", encoding="utf-8")
    monkeypatch.setenv("AZURE_TENANT_ID", "from-env")
    monkeypatch.setenv("AZURE_CLIENT_SECRET", "secret")
    monkeypatch.setenv("AD_USE_SSL", "false")

    config = load_config(str(path))

    assert config.graph.tenant_id == "from-env"
    assert config.graph.client_secret == "secret"
    assert config.directory.use_ssl is False


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "env.yml"
    path.write_text("request_timeout: 5\n", encoding="utf-8")
    monkeypatch.setenv("DEVICE_INVENTORY_TOOL_CONFIG", str(path))

    assert load_config().request_timeout == 5


def test_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("graph: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(str(path))


def test_non_mapping_file(tmp_path):
    path = tmp_path / "list.yml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(str(path))


def test_invalid_timeout(tmp_path):
    path = tmp_path / "tool.yml"
    path.write_text("request_timeout: -1\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="request_timeout"):
        load_config(str(path))
