"""Incremental parsing of HTTP/1.1 requests."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass

from webserv.methods import is_valid_method
from webserv.strings import crop_output, read_key, read_value, split, timestamp_ms, trim
from webserv.uris import decode_uri_component

logger = logging.getLogger(__name__)

CRLF = "\r\n"

_HEX_PREFIX = re.compile(r"[ \t\n\r\v\f]*([+-]?)(?:0[xX](?=[0-9a-fA-F]))?([0-9a-fA-F]+)")
_DECIMAL_PREFIX = re.compile(r"[ \t\n\r\v\f]*([+-]?[0-9]+)")
_SIZE_T_RANGE = 1 << 64


class RequestError(ValueError):
    """The request is malformed and cannot be processed further."""


class ChunkResult(enum.Enum):
    """Outcome of feeding data to the chunked-body decoder."""

    OK = 0
    ZERO = 1
    ERROR = 2


@dataclass
class RequestTime:
    """Timestamps, in milliseconds, used to enforce header and body timeouts."""

    header: float = 0.0
    body: float = 0.0


def _parse_hex(text: str) -> int:
    match = _HEX_PREFIX.match(text)
    if match is None:
        return 0
    value = int(match.group(2), 16)
    if match.group(1) == "-":
        value = (-value) % _SIZE_T_RANGE
    return value


def _atoi(text: str) -> int:
    match = _DECIMAL_PREFIX.match(text)
    return int(match.group(1)) if match else 0


class Request:
    """An HTTP request assembled from the data a client sends, piece by piece."""

    def __init__(self, client_ip: str = "0.0.0.0", ssl_enabled: bool = False) -> None:
        self.ip = client_ip
        self.status = 200
        self.method = ""
        self.version = ""
        self.path = ""
        self.raw_path = ""
        self.host = ""
        self.port = 443 if ssl_enabled else 80
        self.query: dict[str, str] = {}
        self.headers: dict[str, str] = {}
        self.cookies: dict[str, str] = {}
        self.body = ""
        self.request_time = RequestTime(header=timestamp_ms(), body=0.0)

        self._request_line_received = False
        self._headers_received = False
        self._body_received = False
        self._chunked = False
        self._body_size = 0
        self._chunk_buffer = ""

    @property
    def headers_received(self) -> bool:
        """True once the blank line ending the headers has been seen."""
        return self._headers_received

    @property
    def body_received(self) -> bool:
        """True once the whole body has been read."""
        return self._body_received

    @property
    def finished(self) -> bool:
        """True when both headers and body are complete."""
        return self._headers_received and self._body_received

    @property
    def has_content_length(self) -> bool:
        """True when a ``Content-Length`` header was given."""
        return "Content-Length" in self.headers

    def process_line(self, line: str) -> None:
        """Feed one line (or a piece of body data) to the parser.

        A bad request line only sets ``status``; malformed headers or bodies
        raise RequestError.
        """
        if not self._request_line_received:
            self.status = self._parse_request_line(line)
            if self.status == 200:
                self._request_line_received = True
        elif not self._headers_received:
            if line:
                self._process_header(line)
            else:
                self._end_headers()
        elif not self._body_received:
            self._process_body(line)

    def _end_headers(self) -> None:
        self._headers_received = True
        self.request_time.body = timestamp_ms()
        self._parse_cookies()

        if not self.host:
            raise RequestError("missing Host header")

        has_length = "Content-Length" in self.headers
        has_encoding = "Transfer-Encoding" in self.headers
        if self.method in ("GET", "HEAD") or (not has_length and not has_encoding):
            self._body_received = True
        elif has_encoding and self.headers["Transfer-Encoding"] == "chunked":
            self._chunked = True
        elif has_length:
            length = self.headers["Content-Length"]
            if not all(char in "0123456789" for char in length):
                raise RequestError("invalid Content-Length")
            self._body_size = _atoi(length)
            if self._body_size <= 0:
                self._body_received = True

    def _process_header(self, line: str) -> None:
        key = read_key(line)
        if not key:
            logger.error("request error: cannot parse header line")
            raise RequestError("cannot parse header line")
        value = read_value(line)

        if key == "Content-Length":
            if not all(char in "0123456789" for char in value):
                raise RequestError("invalid Content-Length")
            previous = self.headers.get("Content-Length")
            if previous is not None and previous != value:
                raise RequestError("conflicting Content-Length headers")

        self.headers[key] = value

        if "Transfer-Encoding" in self.headers and "Content-Length" in self.headers:
            raise RequestError("both Transfer-Encoding and Content-Length given")

        if "Host" in self.headers and not self.host:
            self._parse_host(self.headers["Host"])

    def _process_body(self, data: str) -> None:
        self.request_time.body = timestamp_ms()
        if self._chunked:
            result = self._process_chunk(data)
            if result is ChunkResult.ERROR:
                raise RequestError("invalid chunk size")
            if result is ChunkResult.ZERO:
                self._body_received = True
            return

        self.body += data
        if len(self.body) == self._body_size:
            self._body_received = True
        elif len(self.body) > self._body_size:
            raise RequestError("body longer than Content-Length")

    def _parse_request_line(self, line: str) -> int:
        space = line.find(" ")
        if space == -1:
            logger.error("RFC error: no space after method")
            return 400
        self.method = line[:space]

        tokens = split(line, " ")
        if len(tokens) < 3:
            logger.error("RFC error: missing PATH or HTTP version")
            return 400
        self.path = decode_uri_component(tokens[1])
        self.raw_path = self.path
        self._parse_query()

        version = tokens[2]
        if not version.startswith("HTTP/"):
            logger.error("RFC error: invalid HTTP version")
            return 400
        self.version = version[5:8]
        if self.version != "1.1":
            logger.error("request error: unsupported HTTP version")
            return 505
        if not is_valid_method(self.method):
            return 405
        return 200

    def _parse_query(self) -> None:
        path, mark, query = self.path.partition("?")
        if not mark:
            return
        self.path = path
        if not query:
            return
        for pair in split(query, "&"):
            key, _, value = pair.partition("=")
            self.query[key] = value

    def _parse_host(self, host: str) -> None:
        if not host:
            return
        name, colon, port = host.partition(":")
        self.host = name
        if colon:
            self.port = _atoi(port)

    def _parse_cookies(self) -> None:
        cookie = self.headers.get("Cookie")
        if cookie is None:
            return
        for part in split(cookie, ";"):
            key, _, value = trim(part, " ").partition("=")
            self.cookies[key] = value

    def _process_chunk(self, data: str) -> ChunkResult:
        self._chunk_buffer += data
        while True:
            end = self._chunk_buffer.find(CRLF)
            if end == -1:
                return ChunkResult.OK
            size_text = self._chunk_buffer[:end]
            size = _parse_hex(size_text)
            if size == 0 and size_text == "0":
                self._chunk_buffer = ""
                return ChunkResult.ZERO
            if size == 0:
                return ChunkResult.ERROR
            start = end + 2
            if start + size + 2 > len(self._chunk_buffer):
                return ChunkResult.OK
            self.body += self._chunk_buffer[start:start + size]
            self._chunk_buffer = self._chunk_buffer[start + size + 2:]

    def set_body(self, body: str) -> None:
        """Replace the body and mark it as fully received."""
        self._body_received = True
        self._body_size = len(body)
        self.body = body

    def set_header(self, name: str, value: str) -> None:
        """Set or replace a header."""
        self.headers[name] = value

    def remove_header(self, name: str) -> None:
        """Remove a header if present."""
        self.headers.pop(name, None)

    def clear_headers(self) -> None:
        """Remove every header."""
        self.headers.clear()

    def update_host(self, host: str) -> None:
        """Rewrite the ``Host`` header."""
        self.headers["Host"] = host

    def query_string(self) -> str:
        """The query parameters, sorted by name, as ``k=v`` pairs joined by ``&``."""
        return "&".join(f"{key}={value}" for key, value in sorted(self.query.items()))

    def prepare_for_proxying(self) -> str:
        """Serialise the request to send it on to an upstream server."""
        lines = [f"{self.method} {self.raw_path} HTTP/{self.version}"]
        lines.extend(f"{key}: {value}" for key, value in sorted(self.headers.items()))
        return CRLF.join(lines) + CRLF + CRLF + self.body

    def describe(self) -> str:
        """A human-readable summary of the request."""

        def section(title: str, items: dict[str, str]) -> str:
            entries = "".join(f"\t{key}: {value}\n" for key, value in sorted(items.items()))
            return f"{title}:\n{entries}"

        return (
            f"Method: {self.method} | HTTP version: {self.version}\n"
            f"Path: {self.raw_path}\n"
            f"Host: {self.host}\n"
            f"Port: {self.port}\n"
            f"Origin IP: {self.ip}\n"
            + section("Headers", self.headers)
            + section("Query", self.query)
            + section("Cookie", self.cookies)
            + f"Body:\n{crop_output(self.body)}\n"
        )

    def __str__(self) -> str:
        return self.describe()