"""Repository URL normalization.

Converts user-supplied repository URLs into API endpoint URLs and back.
All functions are pure string transforms: no network calls and no
existence checks.

Example:
    >>> make_api_url("http://www.github.com/pmb6tz/windows-desktop-switcher")
    'https://api.github.com/repos/pmb6tz/windows-desktop-switcher'
"""

import re

from .config import DEFAULT_API_HOST, DEFAULT_SOURCE_HOST
from .errors import InvalidParameterError

__all__ = ["make_api_url", "make_web_url", "sanitize_url"]

_SCHEME_PREFIX = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_WWW_PREFIX = re.compile(r"^(https://)?(?:www\.)+", re.IGNORECASE)


def sanitize_url(url: str | None) -> str:
    """Standardize a URL to the form https://host/rest-of-url.

    Strips a leading ``www.`` from the host and forces the https scheme:
    any existing scheme (http, ftp, ...) is replaced, and one is prepended
    when absent. Idempotent.

    Args:
        url: The URL to sanitize.

    Returns:
        The standardized URL.

    Raises:
        InvalidParameterError: If url is empty or blank.
    """
    if not url or not url.strip():
        raise InvalidParameterError("Blank URL supplied to sanitize_url", url=url)

    url = url.strip()
    url = _SCHEME_PREFIX.sub("", url)
    if url.startswith("//"):
        url = url[2:]
    return _WWW_PREFIX.sub(r"\1", "https://" + url)


def _replace_host(url: str, old: str, new: str) -> str:
    """Case-insensitively replace the first occurrence of old with new."""
    return re.sub(re.escape(old), lambda _: new, url, count=1, flags=re.IGNORECASE)


def make_api_url(
    url: str | None,
    source_host: str = DEFAULT_SOURCE_HOST,
    api_host: str = DEFAULT_API_HOST,
) -> str:
    """Convert a repository web URL to its API URL.

    E.g. https://github.com/owner/repo becomes
    https://api.github.com/repos/owner/repo.

    Args:
        url: Repository web URL (scheme and www. optional)
        source_host: Host that the URL must contain
        api_host: Host (plus path prefix) substituted for source_host

    Returns:
        The API URL, with the path preserved.

    Raises:
        InvalidParameterError: If url is empty or does not contain source_host.
    """
    if not url or not url.strip():
        raise InvalidParameterError("Empty url supplied to make_api_url", url=url)

    sanitized = sanitize_url(url)
    if source_host.lower() not in sanitized.lower():
        raise InvalidParameterError(
            f"Invalid url supplied to make_api_url: expected a {source_host} repository url",
            url=sanitized,
        )

    return _replace_host(sanitized, source_host, api_host)


def make_web_url(
    api_url: str,
    source_host: str = DEFAULT_SOURCE_HOST,
    api_host: str = DEFAULT_API_HOST,
) -> str:
    """Undo make_api_url: turn an API repository URL back into its web URL."""
    if api_host.lower() not in api_url.lower():
        return api_url
    return _replace_host(api_url, api_host, source_host)
