"""
Rate Limiting Examples.

The limiter never waits: a request over budget fails fast with
RateLimitExceeded and the caller decides what to do with retry_after.
"""

import asyncio

from resilient_network import Network, RateLimitExceeded, SlidingWindowRateLimiter


async def fetch(network: Network, path: str) -> None:
    while True:
        try:
            result = await network.get(path)
        except RateLimitExceeded as e:
            print(f"{path}: rejected, retry in {e.retry_after:.2f}s")
            await asyncio.sleep(e.retry_after)
            continue
        print(f"{path}: {result.response.status}")
        return


async def main():
    # 2 запроса в секунду на хост
    limiter = SlidingWindowRateLimiter(max_requests=2, time_window=1.0)

    async with Network.create(
        base_url="https://jsonplaceholder.typicode.com",
        rate_limiter=limiter,
    ) as network:
        await asyncio.gather(*(fetch(network, f"/posts/{i}") for i in range(1, 5)))

        print(await network.get_rate_limit_stats())


if __name__ == "__main__":
    asyncio.run(main())
