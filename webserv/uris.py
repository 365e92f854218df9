"""Percent-decoding and URL splitting."""

from __future__ import annotations

import re
from dataclasses import dataclass

from webserv.strings import is_number

_PERCENT_ESCAPE = re.compile(r"%([0-9A-Fa-f]{2})")

_URL_PATTERN = re.compile(
    r"^(([^:/?#]+):)?(//([^/?#]*))?([^?#]*)(\?([^#]*))?(#(.*))?$",
    re.DOTALL,
)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def decode_uri_component(encoded: str) -> str:
    """Replace each ``%XX`` escape with the character of that code.

    Escapes are decoded once, left to right; a ``%`` produced by decoding is
    never decoded again, and malformed escapes are left untouched.
    """
    return _PERCENT_ESCAPE.sub(lambda match: chr(int(match.group(1), 16)), encoded)


@dataclass
class URL:
    """The parts of an absolute or relative URL."""

    protocol: str = ""
    host: str = ""
    port_s: str = ""
    port: int = 0
    path: str = "/"
    query: str = ""
    fragment: str = ""


def parse_url(url: str) -> URL:
    """Split a URL into scheme, host, port, path, query and fragment.

    Without an explicit port, ``http`` gets 80 and ``https`` gets 443.
    Raises ValueError when the port is present but empty or not numeric.
    """
    match = _URL_PATTERN.fullmatch(url)
    if match is None:
        raise ValueError(f"Invalid URL format: {url}")

    result = URL(
        protocol=match.group(2) or "",
        path=match.group(5) or "/",
        query=match.group(7) or "",
        fragment=match.group(9) or "",
    )

    authority = match.group(4) or ""
    host, colon, port_s = authority.partition(":")
    result.host = host
    if colon:
        result.port_s = port_s
        if not port_s or not is_number(port_s):
            raise ValueError(f"Invalid port in URL: {port_s}")
        result.port = int(port_s) & 0xFFFF
    else:
        result.port = _DEFAULT_PORTS.get(result.protocol, 0)
    return result