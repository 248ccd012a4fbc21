"""
Basic Network Usage Examples

Demonstrates GET/POST requests, error handling and stats.
"""

import asyncio

from resilient_network import (
    CircuitOpenError,
    Network,
    NetworkConfig,
    RetriesExhaustedError,
)


async def basic_get_request():
    """Simple GET request."""
    print("\n=== Basic GET Request ===")

    async with Network(NetworkConfig(base_url="https://jsonplaceholder.typicode.com")) as network:
        result = await network.get("/posts/1")

        print(f"Status: {result.response.status}")
        print(f"Title: {result.parsed['title']}")
        print(f"Request id: {result.request_id}")


async def post_with_json():
    """POST with a dict body (sent as JSON)."""
    print("\n=== POST with JSON ===")

    async with Network.create(base_url="https://jsonplaceholder.typicode.com") as network:
        result = await network.post("/posts", body={"title": "My Post", "userId": 1})

        print(f"Status: {result.response.status}")
        print(f"Created: {result.parsed}")


async def retries_and_circuit():
    """Failing endpoint: retries, then the circuit opens."""
    print("\n=== Retries and Circuit Breaker ===")

    network = Network.create(
        base_url="https://httpbin.org",
        failure_threshold=2,
        open_timeout=30.0,
        max_attempts=2,
        base_delay=0.2,
    )

    async with network:
        for i in range(3):
            try:
                await network.get("/status/503")
            except RetriesExhaustedError as e:
                print(f"Request {i + 1}: {e.kind.value} after {e.attempts} attempt(s)")
            except CircuitOpenError as e:
                print(f"Request {i + 1}: blocked, circuit open ({e.failure_count} failures)")

        print(network.whoami())
        stats = await network.get_circuit_stats()
        for key, circuit in stats.items():
            print(f"  {key}: {circuit['state']}")


async def stats_snapshot():
    """Dump the state of a Network as JSON."""
    print("\n=== Stats Snapshot ===")

    async with Network.create(
        base_url="https://jsonplaceholder.typicode.com",
        headers={"Authorization": "Bearer secret-token"},
    ) as network:
        await network.get("/posts/1")
        print(await network.to_json())


async def main():
    await basic_get_request()
    await post_with_json()
    await retries_and_circuit()
    await stats_snapshot()


if __name__ == "__main__":
    print("=" * 50)
    print("resilient-network - Basic Usage Examples")
    print("=" * 50)

    try:
        asyncio.run(main())

        print("\n" + "=" * 50)
        print("All examples completed successfully!")
        print("=" * 50)

    except Exception as e:
        print(f"\nError: {e}")
