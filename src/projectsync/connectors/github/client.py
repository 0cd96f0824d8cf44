"""GitHub REST API client.

Provides an async httpx-based client for the GitHub REST API v3 with
optional Basic Auth. The client is deliberately thin: one GET per call,
fixed timeout, no retries and no caching. Failures surface synchronously
as typed SyncErrors to the caller.

Reference: https://docs.github.com/en/rest
"""

import asyncio
import base64
import ipaddress
import logging
import socket
from typing import Any
from urllib.parse import urlsplit

import httpx

from ...errors import HttpRequestFailedError, InvalidJsonError, InvalidParameterError
from ...stores import CredentialStore

logger = logging.getLogger("projectsync.github.client")

__all__ = [
    "GitHubClient",
    "build_auth_header",
    "check_resolved_host",
    "check_safe_url",
    "resolve_host",
]

JsonDocument = dict[str, Any] | list[Any]
IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

_BLOCKED_HOSTNAMES = {"localhost", "localhost.localdomain", "ip6-localhost"}


def build_auth_header(credentials: CredentialStore | None) -> dict[str, str]:
    """Build a Basic Auth header from the credential store.

    Returns an empty dict when no credentials are available: many APIs
    (GitHub included) serve anonymous requests with a smaller quota.
    """
    if credentials is None:
        return {}
    pair = credentials.get_credentials()
    if pair is None or not pair.user or not pair.key:
        return {}
    encoded = base64.b64encode(f"{pair.user}:{pair.key}".encode()).decode()
    return {"Authorization": f"Basic {encoded}"}


def _parse_address(host: str) -> IPAddress | None:
    """Parse host as an IP literal, including shorthand IPv4 forms.

    Sockets accept forms such as ``127.1``, ``2130706433`` and
    ``0x7f000001`` that ``ipaddress`` rejects, so those are normalized
    through inet_aton. Returns None for hostnames.
    """
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass
    try:
        return ipaddress.IPv4Address(socket.inet_aton(host))
    except OSError:
        return None


def _is_internal(address: IPAddress) -> bool:
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_multicast
        or address.is_reserved
        or address.is_unspecified
    )


def check_safe_url(url: str) -> None:
    """Reject URLs that must never be requested.

    Blocks non-http(s) schemes, missing hosts, localhost names and IP
    literals (shorthand IPv4 included) in private, loopback, link-local,
    multicast, reserved or unspecified ranges. Hostnames are checked
    separately by check_resolved_host.

    Raises:
        InvalidParameterError: If the URL is unsafe.
    """
    parts = urlsplit(url)
    if parts.scheme.lower() not in ("http", "https"):
        raise InvalidParameterError("Unsupported URL scheme", url=url)

    host = (parts.hostname or "").lower()
    if not host:
        raise InvalidParameterError("URL has no host", url=url)
    if host in _BLOCKED_HOSTNAMES or host.endswith(".localhost"):
        raise InvalidParameterError("Requests to local hosts are not allowed", url=url)

    address = _parse_address(host)
    if address is not None and _is_internal(address):
        raise InvalidParameterError(
            "Requests to internal addresses are not allowed", url=url
        )


async def resolve_host(host: str, port: int) -> list[IPAddress]:
    """Resolve host to every address a connection could use.

    Raises:
        HttpRequestFailedError: If the name does not resolve.
    """
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise HttpRequestFailedError(f"Could not resolve host: {e}", host=host) from e
    # IPv6 link-local results may carry a %scope suffix
    return [ipaddress.ip_address(info[4][0].split("%", 1)[0]) for info in infos]


async def check_resolved_host(url: str) -> None:
    """Reject a URL whose host resolves to an internal address.

    Every resolved address is checked, so a name with one public and one
    internal record is rejected.

    Raises:
        InvalidParameterError: If any resolved address is internal.
        HttpRequestFailedError: If the host does not resolve.
    """
    parts = urlsplit(url)
    port = parts.port or (443 if parts.scheme.lower() == "https" else 80)
    for address in await resolve_host(parts.hostname or "", port):
        if _is_internal(address):
            raise InvalidParameterError(
                "Host resolves to an internal address",
                url=url,
                address=str(address),
            )


class GitHubClient:
    """GitHub REST API client using httpx with optional Basic Auth.

    Uses a long-lived httpx.AsyncClient with connection pooling. Credentials
    are looked up per request so that rotated keys take effect without
    rebuilding the client. Every outgoing request, redirect hops included,
    passes through a request hook that rejects internal destinations.

    Attributes:
        credentials: Credential store (None = always anonymous)
        timeout: Request timeout in seconds

    Example:
        >>> async with GitHubClient(credentials) as client:
        ...     repo = await client.get("https://api.github.com/repos/o/r")
    """

    REQUEST_TIMEOUT = 10.0  # seconds

    def __init__(
        self,
        credentials: CredentialStore | None = None,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize GitHub client.

        Args:
            credentials: Source of Basic Auth credentials (optional)
            timeout: Request timeout in seconds (default: 10)
            transport: httpx transport override (optional)
        """
        self.credentials = credentials
        self.timeout = timeout

        self._client = httpx.AsyncClient(
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "projectsync/1.0",
            },
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            event_hooks={"request": [self._guard_request]},
            transport=transport,
        )

    async def _guard_request(self, request: httpx.Request) -> None:
        """Check each request httpx sends, including redirect targets."""
        url = str(request.url)
        try:
            check_safe_url(url)
            await check_resolved_host(url)
        except InvalidParameterError:
            logger.warning("github_request_blocked", extra={"url": url})
            raise

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit -- close httpx client."""
        await self.close()

    async def close(self) -> None:
        """Close the httpx client and release connections."""
        await self._client.aclose()

    async def get(self, url: str, params: dict[str, str] | None = None) -> JsonDocument:
        """Perform an authenticated GET and decode the JSON body.

        Args:
            url: Absolute URL to request
            params: Optional query parameters

        Returns:
            Decoded JSON object or array (never empty).

        Raises:
            InvalidParameterError: If url is empty or unsafe, or a redirect
                leads to an internal address
            HttpRequestFailedError: On transport errors or non-200 status
            InvalidJsonError: If the body is not a non-empty JSON object/array
        """
        if not url or not url.strip():
            raise InvalidParameterError("Invalid URL supplied for GET request", url=url)
        check_safe_url(url)

        try:
            response = await self._client.get(
                url, params=params, headers=build_auth_header(self.credentials)
            )
        except httpx.TimeoutException as e:
            logger.warning("github_request_timeout", extra={"url": url, "error": str(e)})
            raise HttpRequestFailedError(f"Request timeout: {e}", url=url) from e
        except httpx.HTTPError as e:
            logger.warning("github_request_error", extra={"url": url, "error": str(e)})
            raise HttpRequestFailedError(f"HTTP error: {e}", url=url) from e

        if response.status_code != 200:
            raise HttpRequestFailedError(
                f"HTTP response code was {response.status_code}, expected 200",
                url=url,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except (ValueError, UnicodeDecodeError) as e:
            raise InvalidJsonError("Response body is not valid JSON", url=url) from e

        if not isinstance(data, (dict, list)) or not data:
            raise InvalidJsonError(
                "Response body is not a non-empty JSON object or array",
                url=url,
                body_type=type(data).__name__,
            )

        return data
