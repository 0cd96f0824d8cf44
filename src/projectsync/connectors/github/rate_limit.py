"""GitHub API rate limit gate.

The orchestrator consults the rate limiter once per pass: if the padded
remaining budget is zero, no record is synced this cycle.

Reference: https://docs.github.com/en/rest/rate-limit
"""

import logging
from dataclasses import dataclass

from ...config import DEFAULT_RATE_LIMIT_URL
from ...errors import InvalidJsonError
from .client import GitHubClient

logger = logging.getLogger("projectsync.github.rate_limit")

__all__ = ["RateLimitStatus", "RateLimiter"]


@dataclass(frozen=True)
class RateLimitStatus:
    """Snapshot of the data source's request quota.

    Attributes:
        total: Total requests allowed per window
        remaining: Requests left after subtracting the safety padding (>= 0)
    """

    total: int
    remaining: int

    @property
    def exhausted(self) -> bool:
        """True when no budget is left for this cycle."""
        return self.remaining == 0


class RateLimiter:
    """Queries the remote rate limit and applies a safety padding.

    Attributes:
        client: GitHubClient used for the status request
        padding: Requests held back from the reported remaining quota
        url: Rate limit endpoint
    """

    def __init__(
        self,
        client: GitHubClient,
        padding: int = 0,
        url: str = DEFAULT_RATE_LIMIT_URL,
    ) -> None:
        self.client = client
        self.padding = padding
        self.url = url

    async def get_rate_limit_status(self) -> RateLimitStatus:
        """Fetch the current quota.

        Returns:
            RateLimitStatus with remaining clamped at zero.

        Raises:
            SyncError: Any HTTP client error, unchanged
            InvalidJsonError: If the payload lacks rate.limit / rate.remaining
        """
        data = await self.client.get(self.url)

        try:
            rate = data["rate"]
            limit = int(rate["limit"])
            remaining = int(rate["remaining"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidJsonError(
                "Rate limit payload missing rate.limit/rate.remaining", url=self.url
            ) from e

        status = RateLimitStatus(total=limit, remaining=max(0, remaining - self.padding))
        logger.info(
            "rate_limit_status",
            extra={
                "limit": status.total,
                "remaining": status.remaining,
                "padding": self.padding,
            },
        )
        return status
