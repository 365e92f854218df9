"""Per-location routing settings and the directives that configure them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from webserv.methods import is_valid_method
from webserv.uris import URL

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 60_000


@dataclass
class Location:
    """The location a router answers for, with its match modifier."""

    path: str = "/"
    modifier: str = ""
    strict: bool = False


@dataclass
class RootSettings:
    """Where content is served from; ``is_alias`` replaces the matched prefix."""

    set: bool = False
    is_alias: bool = False
    path: str = ""
    nearest_root: str = ""


@dataclass
class Redirection:
    """A fixed answer: a redirect target for 3xx statuses, a body otherwise."""

    enabled: bool = False
    status: int = 0
    path: str = ""
    data: str = ""


@dataclass
class CgiSettings:
    """CGI handling for a location."""

    enabled: bool = False
    path: str = ""
    params: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class HeaderRule:
    """An extra response header; ``always`` adds it whatever the status."""

    key: str
    value: str
    always: bool = False


@dataclass
class ProxySettings:
    """Upstream server a location forwards requests to."""

    enabled: bool = False
    protocol: str = ""
    host: str = ""
    port: int = 0
    path: str = ""
    method: str = ""
    body: str = ""
    buffering: bool = False
    forward_headers: bool = True
    forward_body: bool = True
    headers: dict[str, str] = field(default_factory=dict)
    forwarded: list[str] = field(default_factory=list)
    hidden: list[str] = field(default_factory=list)


@dataclass
class Timeouts:
    """How long, in milliseconds, a client may take to send headers and body."""

    header_timeout: int = DEFAULT_TIMEOUT_MS
    header_set: bool = False
    body_timeout: int = DEFAULT_TIMEOUT_MS
    body_set: bool = False


class Router:
    """Settings for one location; children inherit what they do not set themselves."""

    def __init__(self, parent: Router | None = None, location: Location | None = None, level: int = 0) -> None:
        self.parent = parent
        self.location = location if location is not None else Location()
        self.level = level
        self.root = RootSettings()
        self.redirection = Redirection()
        self.cgi = CgiSettings()
        self.headers: list[HeaderRule] = []
        self.client_max_body_size: int | None = None
        self.allowed_methods: list[str] = []
        self.autoindex = False
        self.index: list[str] = []
        self.error_pages: dict[int, str] = {}
        self.proxy = ProxySettings()
        self.timeout = Timeouts()
        self.children: list[Router] = []

        self._headers_set = False
        self._client_body_set = False
        self._methods_set = False
        self._index_set = False

        if parent is not None:
            parent.children.append(self)
            self._inherit()

    def _inherit(self) -> None:
        parent = self.parent
        if parent is None:
            return
        if not self.root.set:
            self.root.path = parent.root.path
            self.root.nearest_root = parent.root.nearest_root
        if not self._methods_set:
            self.allowed_methods = list(parent.allowed_methods)
        if not self._index_set:
            self.index = list(parent.index)
        if not self._headers_set:
            self.headers = list(parent.headers)
        if not self._client_body_set:
            self.client_max_body_size = parent.client_max_body_size
        if not self.timeout.header_set:
            self.timeout.header_timeout = parent.timeout.header_timeout
        if not self.timeout.body_set:
            self.timeout.body_timeout = parent.timeout.body_timeout

    def _reload_children(self) -> None:
        for child in self.children:
            child._inherit()
            child._reload_children()

    def set_root(self, path: str) -> None:
        """Serve content from ``path`` with the request path appended.

        Ignored when a root or an alias is already set.
        """
        if self.root.set and self.root.is_alias:
            logger.info("router info: Aliasing is already enabled for this router.")
        elif self.root.set:
            logger.info("router info: Root is already set, aborting.")
        else:
            self.root.set = True
            self.root.path = path
            self.root.nearest_root = path
            self.root.is_alias = False
            self._reload_children()

    def set_alias(self, path: str) -> None:
        """Serve content from ``path`` in place of the matched location.

        Overrides an earlier alias; ignored when a root is already set.
        """
        if self.root.set and not self.root.is_alias:
            logger.info("router info: Root is already set, aborting.")
            return
        if self.root.set:
            logger.info("router info: Overriding `root` directive.")
        self.root.set = True
        self.root.path = path
        self.root.is_alias = True
        self._reload_children()

    def set_redirection(self, target: str, status: int = 302) -> None:
        """Answer with ``status``; ``target`` is a location for 3xx, a body otherwise."""
        if status % 300 < 100:
            self.redirection.path = target
        else:
            self.redirection.data = target
        self.redirection.status = status
        self.redirection.enabled = True

    def allow_method(self, method: str) -> None:
        """Add a method to those served; the first call replaces any inherited list.

        Raises ValueError for an unknown method.
        """
        if not is_valid_method(method):
            raise ValueError(f"router error: Invalid method found. No such `{method}`")
        if not self._methods_set:
            self._methods_set = True
            self.allowed_methods = []
        self.allowed_methods.append(method)
        self._reload_children()

    def allow_methods(self, methods) -> None:
        """Allow each method in turn."""
        for method in methods:
            self.allow_method(method)

    def set_autoindex(self, enabled: bool) -> None:
        """Turn directory listings on or off."""
        self.autoindex = enabled

    def set_index(self, index) -> None:
        """Replace the list of index file names."""
        self.index = list(index)
        self._index_set = True
        self._reload_children()

    def add_index(self, index: str) -> None:
        """Append an index file name."""
        self.index.append(index)
        self._index_set = True
        self._reload_children()

    def set_header(self, key: str, value: str, always: bool = False) -> None:
        """Add a response header; the first call replaces any inherited headers."""
        if not self._headers_set:
            self._headers_set = True
            self.headers = []
        self.headers.append(HeaderRule(key, value, always))
        self._reload_children()

    def set_error_page(self, code: int, path: str) -> None:
        """Use ``path`` as the page for status ``code``; 304 cannot have one."""
        if code == 304:
            logger.warning("router warning: Cannot set error page for %d", code)
            return
        if code in self.error_pages:
            logger.info("router info: overriding previous error page for %d", code)
        self.error_pages[code] = path

    def error_page(self, code: int) -> str | None:
        """The page configured for ``code``, or None."""
        return self.error_pages.get(code)

    def set_client_max_body_size(self, size: int) -> None:
        """Limit request bodies to ``size`` bytes.

        Ignored unless smaller than a limit the parent has.
        """
        parent = self.parent
        if (
            parent is not None
            and parent.client_max_body_size is not None
            and size >= parent.client_max_body_size
        ):
            logger.warning("router warning: Client max body size cannot be greater than parent's")
            return
        self.client_max_body_size = size
        self._client_body_set = True
        self._reload_children()

    def set_cgi(self, path: str) -> None:
        """Run requests through the CGI program at ``path``."""
        self.cgi.path = path
        self.cgi.enabled = True

    def enable_cgi(self) -> None:
        """Turn CGI handling on."""
        self.cgi.enabled = True

    def add_cgi_param(self, key: str, value: str) -> None:
        """Pass an extra variable to the CGI program."""
        self.cgi.params[key] = value

    def set_proxy(self, url: URL) -> None:
        """Forward requests to the upstream described by ``url``; only the first call counts."""
        if self.proxy.enabled:
            logger.warning("router warning: Proxy is already enabled")
            return
        self.proxy.enabled = True
        self.proxy.protocol = url.protocol
        self.proxy.host = url.host
        self.proxy.port = url.port
        self.proxy.path = url.path
        self._reload_children()

    def add_proxy_header(self, key: str, value: str) -> None:
        """Set a header on proxied requests."""
        self.proxy.headers[key] = value
        self._reload_children()

    def enable_proxy_header(self, key: str) -> None:
        """Pass an upstream response header on to the client."""
        self.proxy.forwarded.append(key)
        self._reload_children()

    def hide_proxy_header(self, key: str) -> None:
        """Hide an upstream response header from the client."""
        self.proxy.hidden.append(key)
        self._reload_children()

    def set_proxy_body(self, body: str) -> None:
        """Send ``body`` upstream instead of the client's body."""
        self.proxy.body = body

    def set_proxy_method(self, method: str) -> None:
        """Use ``method`` for proxied requests."""
        self.proxy.method = method
        self._reload_children()

    def set_proxy_forward_body(self, enabled: bool) -> None:
        """Choose whether the client's body is forwarded upstream."""
        self.proxy.forward_body = enabled

    def set_proxy_forward_headers(self, enabled: bool) -> None:
        """Choose whether the client's headers are forwarded upstream."""
        self.proxy.forward_headers = enabled

    def set_timeout(self, time: int, kind: str) -> None:
        """Set the ``header`` or ``body`` timeout in milliseconds.

        Raises ValueError for any other kind.
        """
        if kind == "header":
            self.timeout.header_timeout = time
            self.timeout.header_set = True
        elif kind == "body":
            self.timeout.body_timeout = time
            self.timeout.body_set = True
        else:
            raise ValueError("router error: Invalid usage of set_timeout()")
        self._reload_children()