"""
Configuration from environment variables, .env files and YAML/JSON files.

Example:
    >>> from resilient_network.core.env_config import load_from_env, ConfigFileLoader
    >>> config = load_from_env()
    >>> config = ConfigFileLoader.from_file("network.yaml")
"""

from .file_loader import ConfigFileLoader
from .loader import load_from_env
from .validator import NetworkSettings

__all__ = [
    "ConfigFileLoader",
    "NetworkSettings",
    "load_from_env",
]
