"""README markdown post-processing.

Relative image links in a README only resolve when viewed on the repository
host, so they are rebased onto raw-content URLs before the markdown is stored.
"""

import logging
import re

from .config import DEFAULT_API_HOST, DEFAULT_SOURCE_HOST
from .urls import make_web_url

logger = logging.getLogger("projectsync.markdown")

__all__ = ["IMAGE_PATTERN", "rewrite_relative_images"]

# Groups: 1 alt text, 2 url without extension, 3 extension, 4 trailing title text
IMAGE_PATTERN = re.compile(
    r"!\[([^\]\n]*)\]\s?\(([^)\s]*?)(\.png|\.gif|\.jpg|\.jpeg)([^)\n]*)\)"
)

_BLOB_SEGMENT = re.compile(r"/blob/", re.IGNORECASE)


def rewrite_relative_images(
    repo_api_url: str,
    markdown: str,
    branch: str = "master",
    source_host: str = DEFAULT_SOURCE_HOST,
    api_host: str = DEFAULT_API_HOST,
) -> str:
    """Rewrite image links in markdown so they load outside the repository host.

    For every single-line image tag with a .png/.gif/.jpg/.jpeg target:
    - a relative target is rebased to <web_repo_url>/raw/<branch>/<path>
    - any /blob/ segment in the target is replaced with /raw/

    Only modified tags are rebuilt; everything else is returned verbatim.

    Args:
        repo_api_url: API URL of the repository the markdown came from
        markdown: README markdown text
        branch: Branch used for raw-content URLs

    Returns:
        The rewritten markdown.

    Example:
        >>> rewrite_relative_images(
        ...     "https://api.github.com/repos/o/r", "![alt](img/logo.png)"
        ... )
        '![alt](https://github.com/o/r/raw/master/img/logo.png)'
    """
    web_repo_url = make_web_url(repo_api_url, source_host, api_host).rstrip("/")

    def _rewrite(match: re.Match) -> str:
        alt_text, target, extension, trailing = match.groups()
        image_url = target + extension
        modified = False

        if not image_url.startswith("http"):
            image_url = f"{web_repo_url}/raw/{branch}/{image_url}"
            modified = True

        image_url, replaced = _BLOB_SEGMENT.subn("/raw/", image_url)
        if replaced:
            modified = True

        if not modified:
            return match.group(0)

        logger.debug(
            "markdown_image_rewritten",
            extra={"original": match.group(0), "image_url": image_url},
        )
        return f"![{alt_text}]({image_url}{trailing})"

    return IMAGE_PATTERN.sub(_rewrite, markdown)
