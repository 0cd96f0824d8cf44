"""GitHub integration package.

Provides the async API client (Basic Auth, fixed timeout, typed errors) and
the rate limit gate used by the sync engine.
"""

from .client import GitHubClient, build_auth_header, check_safe_url
from .rate_limit import RateLimiter, RateLimitStatus

__all__ = [
    "GitHubClient",
    "RateLimitStatus",
    "RateLimiter",
    "build_auth_header",
    "check_safe_url",
]
