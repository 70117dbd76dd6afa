"""
Configuration loading and merge utilities.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_EXPORT_DIR = Path.home() / "Documents" / "DeviceInventoryReports"


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""


class RunMode(str, Enum):
    LOOKUP = "lookup"
    DELETE = "delete"


@dataclass
class GraphAuth:
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    bearer_token: Optional[str] = None

    def from_env(self) -> "GraphAuth":
        self.tenant_id = self.tenant_id or os.environ.get("AZURE_TENANT_ID")
        self.client_id = self.client_id or os.environ.get("AZURE_CLIENT_ID")
        self.client_secret = self.client_secret or os.environ.get("AZURE_CLIENT_SECRET")
        self.bearer_token = self.bearer_token or os.environ.get("GRAPH_BEARER_TOKEN")
        return self


@dataclass
class DirectoryAuth:
    server: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    search_base: Optional[str] = None
    use_ssl: bool = True

    def from_env(self) -> "DirectoryAuth":
        self.server = self.server or os.environ.get("AD_SERVER")
        self.user = self.user or os.environ.get("AD_USER")
        self.password = self.password or os.environ.get("AD_PASSWORD")
        self.search_base = self.search_base or os.environ.get("AD_SEARCH_BASE")
        use_ssl_env = os.environ.get("AD_USE_SSL")
        if use_ssl_env is not None:
            self.use_ssl = use_ssl_env.lower() not in ("false", "0", "no")
        return self


@dataclass
class Config:
    graph: GraphAuth
    directory: DirectoryAuth
    export_dir: Path = DEFAULT_EXPORT_DIR
    request_timeout: int = 30
    config_path: Optional[Path] = None


@dataclass
class RunConfig:
    """
    Everything the batch driver needs, resolved before any device is processed.
    """
    mode: RunMode
    device_name: Optional[str] = None
    input_file: Optional[Path] = None
    export: bool = True
    export_dir: Path = DEFAULT_EXPORT_DIR
    dry_run: bool = False


def _section(file_data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = file_data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{key}' must be a mapping.")
    return value


def load_config(config_file: Optional[str] = None) -> Config:
    """
    Load configuration from environment and an optional YAML file.

    Precedence: environment > config file > defaults. Secrets are read from the
    environment only; the file may hold tenant/client ids and directory layout.
    """
    env_config = os.environ.get("DEVICE_INVENTORY_TOOL_CONFIG")
    config_path = Path(config_file or env_config or Path.home() / ".device_inventory_tool.yml").expanduser()

    file_data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with config_path.open("r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle) or {}
                if not isinstance(loaded, dict):
                    raise ConfigError("Configuration file must contain a mapping.")
                file_data = loaded
        except OSError as exc:
            raise ConfigError(f"Failed to read config file {config_path}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {config_path}") from exc

    graph_data = _section(file_data, "graph")
    directory_data = _section(file_data, "directory")

    graph = GraphAuth(
        tenant_id=os.environ.get("AZURE_TENANT_ID") or graph_data.get("tenant_id"),
        client_id=os.environ.get("AZURE_CLIENT_ID") or graph_data.get("client_id"),
    ).from_env()

    directory = DirectoryAuth(
        server=os.environ.get("AD_SERVER") or directory_data.get("server"),
        user=os.environ.get("AD_USER") or directory_data.get("user"),
        search_base=os.environ.get("AD_SEARCH_BASE") or directory_data.get("search_base"),
        use_ssl=bool(directory_data.get("use_ssl", True)),
    ).from_env()

    export_dir_str = file_data.get("export_dir")
    export_dir = Path(export_dir_str).expanduser() if export_dir_str else DEFAULT_EXPORT_DIR

    request_timeout = file_data.get("request_timeout", 30)
    if not isinstance(request_timeout, int) or request_timeout <= 0:
        raise ConfigError("request_timeout must be a positive integer.")

    return Config(
        graph=graph,
        directory=directory,
        export_dir=export_dir,
        request_timeout=request_timeout,
        config_path=config_path if config_path.exists() else None,
    )
