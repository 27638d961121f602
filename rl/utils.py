"""Small validation helpers shared by the store and the CLI."""
from urllib.parse import urlparse

from rl.errors import InvalidURLError


def validate_url(url) -> bool:
    """
    Check that a URL is absolute with a non-empty scheme and authority.

    The authority is taken as written, so "http://:80" passes.

    Args:
        url: Candidate URL

    Returns:
        True if the URL can be stored
    """
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def require_valid_url(url) -> str:
    """Return url unchanged, or raise InvalidURLError."""
    if not validate_url(url):
        raise InvalidURLError(str(url))
    return url
