"""
Load NetworkConfig from environment variables and .env files.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from ..config import NetworkConfig
from ..exceptions import ConfigurationError
from .validator import NetworkSettings

logger = logging.getLogger(__name__)


def load_from_env(env_file: Optional[str] = None, **overrides: Any) -> NetworkConfig:
    """
    Build NetworkConfig from RESILIENT_NETWORK_* variables.

    Priority (highest to lowest):
    1. **overrides (NetworkSettings field names)
    2. Environment variables
    3. .env file (``env_file`` or ./.env)
    4. Defaults

    Raises:
        ConfigurationError: If a value fails validation

    Example:
        >>> config = load_from_env()
        >>> config = load_from_env(env_file=".env.staging", retry_max_attempts=5)
    """
    settings_kwargs = dict(overrides)
    if env_file is not None:
        settings_kwargs["_env_file"] = env_file

    try:
        settings = NetworkSettings(**settings_kwargs)
        config = settings.to_network_config()
    except (ValidationError, ValueError) as e:
        raise ConfigurationError(f"Invalid environment configuration: {e}") from e

    logger.debug(
        "Loaded config from environment: base_url=%s timeout=%.1fs",
        config.base_url,
        config.timeout,
    )
    return config
