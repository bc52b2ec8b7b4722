"""
Masking helpers for log output.

Chain identifiers are shortened so logs stay readable, endpoint URLs
lose everything after the host because RPC providers put API keys in
the path.
"""

from urllib.parse import urlsplit, urlunsplit

_HIDDEN = "***"


def _shorten(value: str | None, head: int, tail: int) -> str:
    if not value or len(value) < head + tail:
        return _HIDDEN
    return f"{value[:head]}...{value[-tail:]}"


def mask_address(address: str | None) -> str:
    """
    Shorten an account or contract address.

    Examples:
        >>> mask_address("0x1111111111111111111111111111111111111111")
        '0x1111...1111'
        >>> mask_address(None)
        '***'
    """
    return _shorten(address, 6, 4)


def mask_tx_hash(tx_hash: str | None) -> str:
    """Shorten a transaction hash to 0x12345678...abcdef."""
    return _shorten(tx_hash, 10, 6)


def mask_url(url: str | None) -> str:
    """
    Reduce an endpoint URL to scheme, host and port.

    Examples:
        >>> mask_url("wss://mantle.example.org/ws/v3/secret-key")
        'wss://mantle.example.org/***'
        >>> mask_url("http://localhost:8545")
        'http://localhost:8545'
    """
    if not url:
        return _HIDDEN
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        return _HIDDEN
    netloc = f"{parts.hostname}:{parts.port}" if parts.port else parts.hostname
    path = parts.path if parts.path in ("", "/") else "/" + _HIDDEN
    return urlunsplit((parts.scheme, netloc, path, "", ""))
