"""
Configuration and Logging Examples.

Demonstrates loading configuration from .env files, YAML files and
structured JSON logging with correlation ids.
"""

import asyncio
import os
import tempfile

from resilient_network import ConfigFileLoader, LoggingConfig, Network, NetworkConfig, load_from_env

YAML_CONFIG = """
network:
  base_url: https://jsonplaceholder.typicode.com
  timeout: 10
  key_strategy: host_path
  circuit_breaker:
    failure_threshold: 3
    open_timeout: 30
  retry:
    max_attempts: 2
    base_delay: 0.5
  logging:
    level: INFO
    format: colored
"""


async def example_1_env_file():
    """Example 1: Load from a .env file."""
    print("\n" + "=" * 60)
    print("EXAMPLE 1: Load from .env")
    print("=" * 60 + "\n")

    with tempfile.TemporaryDirectory() as tmp:
        env_path = os.path.join(tmp, ".env.example")
        with open(env_path, "w", encoding="utf-8") as f:
            f.write("RESILIENT_NETWORK_BASE_URL=https://jsonplaceholder.typicode.com\n")
            f.write("RESILIENT_NETWORK_RETRY_MAX_ATTEMPTS=2\n")
            f.write("RESILIENT_NETWORK_LOG_ENABLED=true\n")
            f.write("RESILIENT_NETWORK_LOG_FORMAT=json\n")

        config = load_from_env(env_file=env_path)
        print(f"base_url={config.base_url} max_attempts={config.retry.max_attempts}")

        async with Network(config) as network:
            await network.get("/users/1")


async def example_2_yaml_file():
    """Example 2: Load from a YAML file."""
    print("\n" + "=" * 60)
    print("EXAMPLE 2: Load from YAML")
    print("=" * 60 + "\n")

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "network.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write(YAML_CONFIG)

        config = ConfigFileLoader.from_file(path)

    async with Network(config) as network:
        await network.get("/posts/1?page=1")
        await network.get("/posts/1?page=2")
        # host_path: one circuit for both URLs
        print(f"Circuits: {list(await network.get_circuit_stats())}")


async def example_3_file_logging():
    """Example 3: JSON logs in a rotating file."""
    print("\n" + "=" * 60)
    print("EXAMPLE 3: File logging")
    print("=" * 60 + "\n")

    with tempfile.TemporaryDirectory() as tmp:
        log_path = os.path.join(tmp, "network.log")
        logging_config = LoggingConfig.create(
            level="DEBUG",
            format="json",
            enable_console=False,
            enable_file=True,
            file_path=log_path,
            extra_fields={"service": "example"},
        )

        async with Network(NetworkConfig(
            base_url="https://jsonplaceholder.typicode.com",
            logging=logging_config,
        )) as network:
            await network.get("/todos/1")

        with open(log_path, encoding="utf-8") as f:
            for line in f:
                print(line.rstrip())


async def main():
    await example_1_env_file()
    await example_2_yaml_file()
    await example_3_file_logging()


if __name__ == "__main__":
    asyncio.run(main())
