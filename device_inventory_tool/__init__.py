"""
Device Inventory Tool package exposing CLI and helper modules.
"""

__all__ = [
    "adapters",
    "batch",
    "cli",
    "config",
    "correlator",
    "deletion",
    "directory_client",
    "graph_client",
    "inventory",
    "logging_utils",
    "models",
    "reporting",
    "session",
    "utils",
]
