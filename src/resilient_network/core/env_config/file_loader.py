"""
Загрузчик конфигурации Network из YAML и JSON файлов.

Формат файла (секция ``network`` опциональна)::

    network:
      base_url: https://api.example.com
      timeout: 10
      default_headers:
        X-Client: crawler
      key_strategy: host_path
      circuit_breaker:
        failure_threshold: 3
        open_timeout: 30
      retry:
        max_attempts: 5
        base_delay: 0.5
      logging:
        level: DEBUG
        format: json
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..config import CircuitBreakerConfig, EndpointKeyStrategy, NetworkConfig, RetryConfig
from ..exceptions import ConfigValidationError
from ..logging import LoggingConfig

CONFIG_FILE_ENV = "RESILIENT_NETWORK_CONFIG_FILE"


class ConfigFileLoader:
    """
    Загрузчик конфигурации из файлов.

    Examples:
        >>> config = ConfigFileLoader.from_yaml("network.yaml")
        >>> config = ConfigFileLoader.from_file("network.json")  # Auto-detect
        >>> config = ConfigFileLoader.from_env_path()  # RESILIENT_NETWORK_CONFIG_FILE
    """

    @staticmethod
    def from_yaml(path: Union[str, Path]) -> NetworkConfig:
        """
        Загрузить конфиг из YAML файла.

        Raises:
            FileNotFoundError: Если файл не найден
            ConfigValidationError: Если конфиг невалидный
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Invalid YAML syntax in {path}: {e}") from e

        return ConfigFileLoader.from_dict(data, str(path))

    @staticmethod
    def from_json(path: Union[str, Path]) -> NetworkConfig:
        """
        Загрузить конфиг из JSON файла.

        Raises:
            FileNotFoundError: Если файл не найден
            ConfigValidationError: Если конфиг невалидный
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid JSON syntax in {path}: {e}") from e

        return ConfigFileLoader.from_dict(data, str(path))

    @staticmethod
    def from_file(path: Union[str, Path]) -> NetworkConfig:
        """
        Автоопределение формата по расширению (.yaml, .yml, .json).

        Raises:
            ConfigValidationError: Если формат не поддерживается
        """
        path = Path(path)
        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            return ConfigFileLoader.from_yaml(path)
        if suffix == ".json":
            return ConfigFileLoader.from_json(path)
        raise ConfigValidationError(
            f"Unsupported config file format: {suffix}. "
            f"Supported formats: .yaml, .yml, .json"
        )

    @staticmethod
    def from_env_path() -> Optional[NetworkConfig]:
        """Загрузить из пути в RESILIENT_NETWORK_CONFIG_FILE (None если не задан)."""
        config_path = os.environ.get(CONFIG_FILE_ENV)
        if not config_path:
            return None
        return ConfigFileLoader.from_file(config_path)

    @staticmethod
    def from_dict(data: Any, source: str = "<dict>") -> NetworkConfig:
        """
        Собрать NetworkConfig из уже распарсенных данных.

        Raises:
            ConfigValidationError: Если структура или значения невалидны
        """
        if not data:
            raise ConfigValidationError(f"Empty config: {source}")
        if not isinstance(data, dict):
            raise ConfigValidationError(f"Config root must be a mapping in {source}")

        config_data = data.get("network", data)
        if not isinstance(config_data, dict):
            raise ConfigValidationError(f"'network' section must be a mapping in {source}")

        try:
            circuit_breaker = CircuitBreakerConfig(
                **_section(config_data, "circuit_breaker", source)
            )
            retry = RetryConfig(**_section(config_data, "retry", source))

            logging_cfg = None
            if "logging" in config_data:
                logging_cfg = LoggingConfig.create(**_section(config_data, "logging", source))

            headers = config_data.get("default_headers", config_data.get("headers", {}))
            if not isinstance(headers, dict):
                raise ConfigValidationError(f"default_headers must be a mapping in {source}")

            return NetworkConfig(
                base_url=config_data.get("base_url"),
                timeout=config_data.get("timeout", 30.0),
                default_headers={str(k): str(v) for k, v in headers.items()},
                circuit_breaker=circuit_breaker,
                retry=retry,
                key_strategy=EndpointKeyStrategy(config_data.get("key_strategy", "url")),
                logging=logging_cfg,
            )
        except (ValueError, TypeError) as e:
            raise ConfigValidationError(f"Invalid config in {source}: {e}") from e


def _section(data: Dict[str, Any], name: str, source: str) -> Dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigValidationError(f"{name} must be a mapping in {source}")
    return section
