"""Building and sending HTTP/1.1 responses."""

from __future__ import annotations

import logging
import mimetypes
import re
from dataclasses import dataclass
from email.utils import formatdate

from webserv.fs import is_file, last_modified_date
from webserv.strings import crop_output, get_extension
from webserv.websocket import close_frame, text_frame

logger = logging.getLogger(__name__)

CRLF = "\r\n"
SERVER_NAME = "webserv"
DEFAULT_MIME_TYPE = "application/octet-stream"

HTTP_CODES: dict[int, str] = {
    # Information
    100: "Continue",
    101: "Switching Protocols",
    102: "Processing",
    103: "Early Hints",
    # Success
    200: "OK",
    201: "Created",
    202: "Accepted",
    203: "Non-Authoritative Information",
    204: "No Content",
    205: "Reset Content",
    206: "Partial Content",
    207: "Multi-Status",
    208: "Already Reported",
    210: "Content Different",
    226: "IM Used",
    # Redirection
    301: "Moved Permanently",
    302: "Found",
    303: "See Other",
    304: "Not Modified",
    305: "Use Proxy",
    307: "Temporary Redirect",
    308: "Permanent Redirect",
    310: "Too many Redirects",
    # Client errors
    400: "Bad Request",
    401: "Unauthorized",
    402: "Payment Required",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    406: "Not Acceptable",
    407: "Proxy Authentication Required",
    408: "Request Time-out",
    409: "Conflict",
    410: "Gone",
    411: "Length Required",
    412: "Precondition Failed",
    413: "Payload Too Large",
    414: "Request-URI Too Long",
    415: "Unsupported Media Type",
    416: "Requested range unsatisfiable",
    417: "Expectation failed",
    418: "I'm a teapot",
    419: "Page expired",
    421: "Bad mapping",
    422: "Unprocessable entity",
    423: "Locked",
    424: "Method failure",
    425: "Too Early",
    426: "Upgrade Required",
    427: "Invalid digital signature",
    428: "Precondition Required",
    429: "Too Many Requests",
    431: "Request Header Fields Too Large",
    449: "Retry With",
    451: "Unavailable For Legal Reasons",
    456: "Unrecoverable Error",
    # Server errors
    500: "Internal Server Error",
    501: "Not Implemented",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Time-out",
    505: "HTTP Version not supported",
    506: "Variant Also Negotiates",
    507: "Insufficient storage",
    508: "Loop detected",
    509: "Bandwidth Limit Exceeded",
    510: "Not extended",
    511: "Network authentication required",
}

_HEADER_STATUSES = frozenset({200, 201, 204, 206, 301, 302, 303, 304, 307, 308})
_DECIMAL_PREFIX = re.compile(r"[ \t\n\r\v\f]*([+-]?[0-9]+)")


def is_valid_status(status: int) -> bool:
    """True for a status code the server knows a reason phrase for."""
    return status in HTTP_CODES


def status_text(status: int) -> str:
    """The reason phrase of a status code, or ``""`` if unknown."""
    return HTTP_CODES.get(status, "")


def format_methods(methods) -> str:
    """Methods joined by ``", "``, as used in an ``Allow`` header."""
    return ", ".join(methods)


def http_date() -> str:
    """The current time as an HTTP date (RFC 7231, section 7.1.1.1)."""
    return formatdate(usegmt=True)


def _to_bytes(data: str | bytes) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def _atoi(text: str) -> int:
    match = _DECIMAL_PREFIX.match(text)
    return int(match.group(1)) if match else 0


def _mime_type(path: str) -> str:
    extension = get_extension(path)
    if not extension:
        return DEFAULT_MIME_TYPE
    guessed, _ = mimetypes.guess_type("file." + extension, strict=False)
    return guessed or DEFAULT_MIME_TYPE


@dataclass
class CookieOptions:
    """Attributes attached to a ``Set-Cookie`` header."""

    path: str = "/"
    domain: str = ""
    max_age: int = -1
    secure: bool = False
    http_only: bool = False


class Response:
    """A response to one request, written to a transport exposing ``send(bytes)``.

    Used as a context manager, the response is sent on exit if it was not
    sent already.
    """

    def __init__(self, transport, request) -> None:
        self._transport = transport
        self._sent = False
        self._upgraded = False
        self.status: int = request.status
        self.version: str = request.version
        self.method: str = request.method
        self.path: str = request.path
        self.headers: dict[str, str] = {}
        self.cookies: dict[str, str] = {}
        self.body = b""
        self.set_header("Server", SERVER_NAME)
        self.set_header("X-Powered-By", SERVER_NAME)
        if self.status != 200:
            self.end()

    def __enter__(self) -> Response:
        return self

    def __exit__(self, exc_type, exc, traceback) -> None:
        if not self._sent:
            self.end()

    @property
    def status_name(self) -> str:
        """Reason phrase of the current status."""
        return status_text(self.status)

    @property
    def has_body(self) -> bool:
        """True when the body is not empty."""
        return len(self.body) > 0

    @property
    def is_upgraded(self) -> bool:
        """True once the connection is switched to WebSocket."""
        return self._upgraded

    @property
    def can_send(self) -> bool:
        """True while the response has not been sent (or cancelled)."""
        return not self._sent

    def set_status(self, code: int) -> Response:
        """Set the status code."""
        self.status = code
        return self

    def send(self, data: str | bytes) -> Response:
        """Use ``data`` as the body and set ``Content-Length``."""
        self.body = _to_bytes(data)
        self.set_header("Content-Length", str(len(self.body)))
        return self

    def send_file(self, path: str) -> Response:
        """Use the contents of a file as the body, or answer 404 if it is missing."""
        if not is_file(path):
            return self.send_not_found()
        try:
            with open(path, "rb") as handle:
                content = handle.read()
        except OSError as exc:
            logger.error("response error: open: %s", exc)
            return self.send_not_found()
        self.set_header("Last-Modified", last_modified_date(path))
        self.set_header("Content-Type", _mime_type(path))
        self.body = content
        self.set_header("Content-Length", str(len(self.body)))
        return self

    def send_not_found(self, code: int = 404) -> Response:
        """Answer with a small HTML page saying the resource cannot be served."""
        self.set_status(code)
        self.set_header("Content-Type", "text/html; charset=utf-8")
        title = f"Cannot {self.method} {self.path}"
        return self.send(
            '<!DOCTYPE html><html lang="en"><head><meta charset="utf-8"><title>'
            + title
            + "</title></head><body><pre>"
            + title
            + "</pre></body></html>"
        )

    def send_default(self, code: int | None = None) -> Response:
        """Answer with the default HTML page for the status (``code`` if given)."""
        if code is not None:
            self.set_status(code)
        self.set_header("Content-Type", "text/html; charset=utf-8")
        title = f"{self.status} {self.status_name}"
        return self.send(
            '<!DOCTYPE html><html lang="en"><head><meta charset="utf-8"><title>'
            + title
            + "</title></head><body><center><h1>"
            + title
            + "</h1></center><hr><center>"
            + SERVER_NAME
            + "</center></body></html>"
        )

    def send_frame(self, message: str | bytes, close_code: int = 0) -> Response:
        """Send a WebSocket text frame, or a close frame when ``close_code`` is set.

        Raises RuntimeError if the connection was not upgraded.
        """
        if not self._upgraded:
            logger.error("WebSocket error: not upgraded")
            raise RuntimeError("WebSocket error: not upgraded")
        if close_code == 0:
            data = text_frame(message)
        else:
            data = close_frame(close_code, message)
        self._transport.send(data)
        return self

    def redirect(self, path: str, status: int = 302) -> Response:
        """Redirect the client to ``path``."""
        self.set_status(status)
        self.set_header("Location", path)
        return self

    def send_cgi(self, data: str | bytes) -> Response:
        """Build the response from CGI output: header lines, then the body.

        Every CRLF-terminated line is read as a header (``Status: NNN`` sets
        the status); what follows the last CRLF, without trailing line
        breaks, becomes the body. Empty output answers 501.
        """
        raw = _to_bytes(data)
        if not raw:
            self.set_status(501).end()
            return self

        start = 0
        while start < len(raw):
            end = raw.find(b"\r\n", start)
            if end == -1:
                break
            line = raw[start:end].decode("latin-1")
            if line.startswith("Status: "):
                self.set_status(_atoi(line[8:11]))
            else:
                name, sep, value = line.partition(": ")
                if sep:
                    self.set_header(name, value)
            start = end + 2

        stop = len(raw.rstrip(b"\r\n"))
        body = raw[start:stop] if stop >= start else raw[start:]
        return self.send(body)

    def end(self) -> Response:
        """Finalise and send the response once; later calls do nothing."""
        if self._sent:
            return self
        self.set_header("Date", http_date())
        if "Content-Length" not in self.headers and self.body:
            self.set_header("Content-Length", str(len(self.body)))
        if not self._upgraded:
            # Keep-alive is not supported: every connection closes after one response.
            self.set_header("Connection", "close")
        if self.status in (204, 304) or self.status < 200:
            self.body = b""

        payload = self._prepare()
        self._transport.send(payload)
        self._sent = True
        if self._upgraded:
            logger.debug("WebSocket handshake response sent")
        else:
            logger.debug("Response sent")
        return self

    def _prepare(self) -> bytes:
        if self.status not in HTTP_CODES:
            logger.error("response error: invalid status code")
            self.status = 500
        if not self.version:
            logger.error("response error: invalid HTTP version")
            self.version = "1.1"

        lines = [f"HTTP/{self.version} {self.status} {self.status_name}"]
        lines.extend(f"{name}: {value}" for name, value in sorted(self.headers.items()))
        lines.extend(f"Set-Cookie: {cookie}" for _, cookie in sorted(self.cookies.items()))
        head = (CRLF.join(lines) + CRLF + CRLF).encode("utf-8")
        if self.has_body:
            return head + self.body + CRLF.encode("ascii")
        return head

    def upgrade(self) -> Response:
        """Mark the connection as switching to WebSocket."""
        self._upgraded = True
        return self

    def set_header(self, name: str, value: str) -> Response:
        """Set a header; ignored (and logged) once the response has been sent."""
        if self._sent:
            logger.error("response error: cannot set header after it was sent")
        else:
            self.headers[name] = value
        return self

    def set_cookie(self, name: str, value: str, options: CookieOptions | None = None) -> Response:
        """Add a ``Set-Cookie`` header for ``name``, replacing any earlier one."""
        if self._sent:
            logger.error("response error: cannot set header after it was sent")
            return self
        options = options or CookieOptions()
        cookie = f"{name}={value}; path={options.path or '/'}"
        if options.domain:
            cookie += f"; domain={options.domain}"
        if options.max_age >= 0:
            cookie += f"; Max-Age={options.max_age}"
        if options.secure:
            cookie += "; secure"
        if options.http_only:
            cookie += "; HttpOnly"
        self.cookies[name] = cookie
        return self

    def clear_body(self) -> Response:
        """Drop the body."""
        self.body = b""
        return self

    def can_add_header(self) -> bool:
        """True for statuses to which configured extra headers apply."""
        return self.status in _HEADER_STATUSES

    def cancel(self) -> None:
        """Never send this response."""
        self._sent = True

    def describe(self) -> str:
        """A human-readable summary of the response."""
        headers = "".join(f"\t{name}: {value}\n" for name, value in sorted(self.headers.items()))
        cookies = "".join(f"\t{cookie}\n" for _, cookie in sorted(self.cookies.items()))
        body = crop_output(self.body.decode("utf-8", errors="replace"))
        return (
            f"HTTP/{self.version} {self.status} {self.status_name}\n"
            f"Headers:\n{headers}"
            f"Cookie:\n{cookies}"
            f"Body:\n{body}\n"
        )

    def __str__(self) -> str:
        return self.describe()