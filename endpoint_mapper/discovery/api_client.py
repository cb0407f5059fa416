"""CommAPI HTTP client.

Issues single GET requests against the simulator's CommAPI with the shared
key header. Every failure mode collapses into a ``None`` result so the
traversal never has to handle transport errors.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from .rate_limiter import RateLimitConfig, RateLimiter

if TYPE_CHECKING:
    from .state import ExplorationState

logger = logging.getLogger(__name__)

DEFAULT_KEY_HEADER = "DTGCommKey"
SUCCESS_RESULT = "Success"


def is_success(payload: Any) -> bool:
    """Check the CommAPI ``Result`` discriminator."""
    return isinstance(payload, dict) and payload.get("Result") == SUCCESS_RESULT


class CommAPIClient:
    """Rate-limited GET client for the CommAPI tree.

    Provides:
    - ``/list/{path}`` and ``/get/{path}`` helpers
    - Request counting into the exploration state
    - Fixed delay after each successful request
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            client: Shared httpx client carrying the key header
            base_url: CommAPI base URL, e.g. http://localhost:31270
            rate_limiter: Request pacer (defaults to RateLimitConfig())
        """
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter or RateLimiter(RateLimitConfig())

    @staticmethod
    def build_headers(api_key: str, header_name: str = DEFAULT_KEY_HEADER) -> dict[str, str]:
        """Get authentication headers."""
        return {header_name: api_key}

    def list_url(self, path: str) -> str:
        return f"{self.base_url}/list/{path}"

    def get_url(self, path: str) -> str:
        return f"{self.base_url}/get/{path}"

    async def list_node(self, path: str, state: ExplorationState | None = None) -> dict | None:
        """List the child nodes and endpoints under a path."""
        return await self.fetch(self.list_url(path), state)

    async def get_endpoint(self, path: str, state: ExplorationState | None = None) -> dict | None:
        """Read a single endpoint value."""
        return await self.fetch(self.get_url(path), state)

    async def fetch(self, url: str, state: ExplorationState | None = None) -> dict | None:
        """GET a URL and return its JSON body.

        The request is counted before it is attempted, whatever the outcome.

        Args:
            url: Fully qualified CommAPI URL
            state: Exploration state whose request counter is incremented

        Returns:
            Parsed JSON object, or None on any failure
        """
        if state is not None:
            state.total_requests += 1
        self.rate_limiter.record_request()

        try:
            response = await self.client.get(
                url,
                timeout=self.rate_limiter.config.timeout_seconds,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException:
            logger.warning("Request timed out: %s", url)
            return self._failed()
        except httpx.HTTPStatusError as e:
            logger.warning("HTTP %s from %s", e.response.status_code, url)
            return self._failed()
        except httpx.RequestError as e:
            logger.warning("Request failed: %s - %s", url, e)
            return self._failed()
        except (json.JSONDecodeError, ValueError):
            logger.warning("Invalid JSON from %s", url)
            return self._failed()
        except Exception as e:
            logger.warning("Unexpected error: %s - %s", url, e)
            return self._failed()

        if not isinstance(body, dict):
            logger.warning("Unexpected response shape from %s", url)
            return self._failed()

        await self.rate_limiter.wait()
        return body

    def _failed(self) -> None:
        self.rate_limiter.record_failure()
