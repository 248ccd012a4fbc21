"""
Proxy Rotation Examples.

Each attempt takes a fresh proxy from the pool. Only network and proxy
errors mark a proxy as failed; HTTP 5xx from the target does not.
"""

import asyncio

from resilient_network import Network, NetworkConfig, ProxyPool, RetryConfig


def build_pool() -> ProxyPool:
    pool = ProxyPool(rotation_strategy="round_robin", failure_cooldown=60.0)
    pool.add_proxy("proxy1.example.com", 8080)
    pool.add_proxy("proxy2.example.com", 1080, proxy_type="socks5", username="user", password="pass")
    pool.add_proxies_from_list(["10.0.0.5:3128", "user:pass@10.0.0.6:3128"])
    return pool


async def rotate_on_failure():
    """Dead proxies are skipped on the next attempt."""
    print("\n=== Rotation on failure ===")

    pool = build_pool()
    config = NetworkConfig(
        base_url="https://httpbin.org",
        timeout=5.0,
        retry=RetryConfig(max_attempts=4, base_delay=0.1, jitter=False),
    )

    # SOCKS proxies need: pip install resilient-network[socks]
    async with Network(config, proxy_pool=pool) as network:
        try:
            result = await network.get("/ip")
            print(f"Origin: {result.parsed}")
        except Exception as e:
            print(f"All attempts failed: {type(e).__name__}: {e}")

        stats = await network.get_proxy_stats()
        print(f"Policy: {stats['policy']}")
        print(f"Pool: {stats['pool']}")

    for proxy in pool.get_proxy_stats():
        print(f"  {proxy['id']}: success_rate={proxy['success_rate']:.2f}")


async def main():
    await rotate_on_failure()


if __name__ == "__main__":
    asyncio.run(main())
