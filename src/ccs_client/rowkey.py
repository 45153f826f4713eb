"""
Row key derivation.

A URL maps to a domain-reversed key so rows of one site sort together and
sibling paths under the same host keep their lexical order:

    http://www.example.com/a?b=1  ->  com.example.www/a?b=1
    http://example.com:8080/      ->  com.example:8080/
"""

from __future__ import annotations

import ipaddress
from urllib.parse import urlsplit

from .errors import EncodingError, InvalidInput

_DEFAULT_PORTS = {"http": 80, "https": 443, "ftp": 21}


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _reverse_host(host: str) -> str:
    if _is_ip_literal(host):
        return host
    labels = host.split(".")
    if any(not label for label in labels):
        raise InvalidInput(f"Malformed host in URL: {host!r}")
    return ".".join(reversed(labels))


def create_key(url: str) -> str:
    """Return the domain-reversed row key for ``url``.

    Raises:
        InvalidInput: if the URL is not an absolute URL with a host.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidInput("URL must be a non-empty string")
    if any(ch.isspace() for ch in url):
        raise InvalidInput(f"URL contains whitespace: {url!r}")

    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise InvalidInput(f"Malformed URL {url!r}: {e}") from e

    scheme = parts.scheme.lower()
    if not scheme:
        raise InvalidInput(f"URL has no scheme: {url!r}")
    host = (parts.hostname or "").rstrip(".")
    if not host:
        raise InvalidInput(f"URL has no host: {url!r}")

    key = _reverse_host(host)
    if ":" in key:
        key = f"[{key}]"
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        key += f":{port}"

    key += parts.path or "/"
    if parts.query:
        key += "?" + parts.query
    return key


def derive_row_key(url: str, encoding: str = "utf-8") -> bytes:
    """Row key bytes for ``url`` in the configured encoding."""
    key = create_key(url)
    try:
        return key.encode(encoding)
    except (UnicodeError, LookupError) as e:
        raise EncodingError(f"Cannot encode row key {key!r} as {encoding}: {e}") from e
