"""
Utility functions for the mint authorization service.
"""
import os
import urllib.parse


def short_address(address: str) -> str:
    """
    Truncate an address for logging.

    Args:
        address: Hex address

    Returns:
        First six characters followed by an ellipsis
    """
    return f"{address[:6]}…" if address else "<none>"


def validate_upstream_url(url_name: str, url: str) -> None:
    """
    Require https:// for upstream services unless the host is local.

    Set MINTAUTH_INSECURE_UPSTREAM=1 to allow plain HTTP for development.

    Args:
        url_name: Name of the setting, used in the error message
        url: URL to validate

    Raises:
        ValueError: If the URL is insecure or cannot be parsed
    """
    parsed = urllib.parse.urlparse(url)
    host = parsed.hostname or ""
    if not parsed.scheme or not host:
        raise ValueError(f"Invalid {url_name} '{url}'")
    is_local = host in ("localhost", "127.0.0.1", "::1")
    if parsed.scheme != "https" and not is_local:
        if os.environ.get("MINTAUTH_INSECURE_UPSTREAM") != "1":
            raise ValueError(
                f"{url_name} must use https:// for security (got: {parsed.scheme}://). "
                "Set MINTAUTH_INSECURE_UPSTREAM=1 to allow HTTP for development."
            )
