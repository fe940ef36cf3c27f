"""Configuration helpers."""

from .config_loader import ConfigLoader, WorkerConfig, get_config

__all__ = [
    "ConfigLoader",
    "WorkerConfig",
    "get_config",
]
