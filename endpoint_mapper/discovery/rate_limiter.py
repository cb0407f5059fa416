"""Fixed-delay rate limiter for CommAPI exploration.

The simulator serves every request on its game thread, so the mapper never
overlaps requests and pauses for a fixed interval after each successful one.
"""

import asyncio
from dataclasses import dataclass


@dataclass
class RateLimitConfig:
    """Configuration for request pacing."""

    delay_ms: int = 250
    timeout_ms: int = 5000

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


@dataclass
class RateLimiterStats:
    """Statistics for rate limiter."""

    requests_made: int = 0
    failures: int = 0
    total_wait_time: float = 0.0


class RateLimiter:
    """Sequential request pacer.

    Provides:
    - Request accounting before each call
    - Fixed post-success delay
    - Failure counting
    - Statistics tracking
    """

    def __init__(self, config: RateLimitConfig | dict | None = None) -> None:
        """Initialize rate limiter.

        Args:
            config: Rate limit configuration (RateLimitConfig, dict, or None for defaults)
        """
        if config is None:
            self.config = RateLimitConfig()
        elif isinstance(config, dict):
            self.config = RateLimitConfig(
                delay_ms=config.get("delay_ms", 250),
                timeout_ms=config.get("timeout_ms", 5000),
            )
        else:
            self.config = config

        self.stats = RateLimiterStats()

    def record_request(self) -> None:
        """Count a request about to be issued."""
        self.stats.requests_made += 1

    def record_failure(self) -> None:
        """Count a request that produced no usable result."""
        self.stats.failures += 1

    async def wait(self) -> None:
        """Sleep for the configured post-request delay."""
        delay = self.config.delay_seconds
        if delay <= 0:
            return

        self.stats.total_wait_time += delay
        await asyncio.sleep(delay)

    def get_stats(self) -> dict:
        """Get current statistics as a dictionary."""
        return {
            "requests_made": self.stats.requests_made,
            "failures": self.stats.failures,
            "total_wait_time_seconds": round(self.stats.total_wait_time, 2),
            "failure_rate": (
                round(self.stats.failures / self.stats.requests_made * 100, 1)
                if self.stats.requests_made > 0
                else 0
            ),
        }
