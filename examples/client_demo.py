#!/usr/bin/env python3
"""
Demonstration of the resilient HTTP client library.

Browses posts from the public JSONPlaceholder API, composing the client with
a retry policy and a circuit breaker:

    python examples/client_demo.py
"""

import asyncio

from resilient_http import (
    CircuitBreaker,
    CircuitBreakerConfig,
    HttpClient,
    HttpRequest,
    RetryConfig,
    RetryPolicy,
    capture,
    format_app_error,
)
from resilient_http.logging_config import setup_logging
from resilient_http.settings import AppSettings
from resilient_http.telemetry import StructlogTelemetry, observe_responses

POSTS_URL = "https://jsonplaceholder.typicode.com/posts"


async def show_posts(client: HttpClient) -> None:
    """Plain request: failures come back as a Result, never raised."""
    print("\n=== Listing posts ===")

    result = await client.get(POSTS_URL)
    titles = result.map(lambda response: [p["title"] for p in response.data[:3]])
    print(titles.match(ok=lambda t: "\n".join(t), err=format_app_error))


async def show_post_with_retries(client: HttpClient, post_id: int) -> None:
    """Retry transient failures, then translate back into a Result."""
    print("\n=== Fetching a post with retries ===")

    policy = RetryPolicy(RetryConfig(max_attempts=4, base_delay_seconds=0.2))
    request = HttpRequest("GET", f"{POSTS_URL}/{post_id}")

    result = await capture(
        lambda: policy.execute(lambda: client.request_or_raise(request))
    )
    print(
        result.match(
            ok=lambda response: f"Post {post_id}: {response.data['title']}",
            err=format_app_error,
        )
    )


async def show_circuit_breaker(client: HttpClient) -> None:
    """Hammer a missing host until the breaker opens."""
    print("\n=== Circuit breaker against an unreachable host ===")

    request = HttpRequest("GET", "https://unreachable.invalid/posts")
    breaker = CircuitBreaker(
        lambda: client.request_or_raise(request),
        CircuitBreakerConfig(failure_threshold=3, reset_timeout_seconds=5.0),
    )

    for attempt in range(1, 6):
        result = await capture(breaker.execute)
        state = breaker.get_state().name
        print(f"Attempt {attempt}: {format_app_error(result.error)} [{state}]")


async def main() -> None:
    settings = AppSettings()
    setup_logging(settings.log_level, "console")
    telemetry = StructlogTelemetry("demo")

    config = settings.to_client_config(response_observer=observe_responses(telemetry))
    async with HttpClient(config) as client:
        await show_posts(client)
        await show_post_with_retries(client, 1)
        await show_circuit_breaker(client)


if __name__ == "__main__":
    asyncio.run(main())
