"""One virtual-server configuration: names, address, port, TLS and default router."""

from __future__ import annotations

import logging
import os
import ssl

from webserv.router import Location, Router
from webserv.strings import get_ip_address, set_ip_address

logger = logging.getLogger(__name__)

INADDR_ANY = 0
DEFAULT_CIPHERS = "HIGH:!aNULL:!MD5"


class SSLSetupError(RuntimeError):
    """The TLS context could not be created."""


def _running_as_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


class ServerConfig:
    """Settings of a virtual server, attached to a listening server."""

    def __init__(self, server=None) -> None:
        self.server = server
        self.used = False
        self.default_handler = Router(None, Location())
        self.port = 80 if _running_as_root() else 8000
        self.address = INADDR_ANY
        self.names: list[str] = []
        self.ssl_enabled = False
        self.ssl_cert_file = ""
        self.ssl_key_file = ""
        self.ssl_ciphers = DEFAULT_CIPHERS
        self.ssl_context: ssl.SSLContext | None = None
        self._should_be_default = False

    def _check_not_started(self, what: str) -> None:
        if self.server is not None and self.server.is_init:
            raise RuntimeError(f"server error: could not set {what} after server startup")

    def set_address(self, address) -> None:
        """Set the listening address from a dotted string, ``*`` or an integer.

        Raises RuntimeError once the server is started.
        """
        self._check_not_started("address")
        if isinstance(address, int):
            self.address = address & 0xFFFFFFFF
        elif address == "*":
            self.address = INADDR_ANY
        else:
            self.address = set_ip_address(address)

    def set_port(self, port: int) -> None:
        """Set the listening port; raises RuntimeError once the server is started."""
        self._check_not_started("port")
        self.port = port & 0xFFFF

    def set_default(self) -> None:
        """Ask to be the server's default configuration."""
        self._should_be_default = True

    @property
    def should_be_default(self) -> bool:
        """True when this configuration asked to be the default."""
        return self._should_be_default

    def set_ssl(self, enabled: bool) -> None:
        """Turn TLS on or off."""
        self.ssl_enabled = enabled

    @property
    def use_ssl(self) -> bool:
        """True when TLS is enabled."""
        return self.ssl_enabled

    def set_ssl_cert_file(self, path: str) -> None:
        """Set the PEM certificate file."""
        self.ssl_cert_file = path

    def set_ssl_key_file(self, path: str) -> None:
        """Set the PEM private key file."""
        self.ssl_key_file = path

    def set_ssl_ciphers(self, ciphers: str) -> None:
        """Set the OpenSSL cipher list."""
        self.ssl_ciphers = ciphers

    def setup_ssl(self) -> ssl.SSLContext:
        """Create the server TLS context from the certificate, key and ciphers.

        Raises SSLSetupError when a context exists already, a file is not
        set, or the files or ciphers are rejected.
        """
        if self.ssl_context is not None:
            raise SSLSetupError("server warning: SSL context already set")
        if not self.ssl_cert_file:
            raise SSLSetupError("server error: SSL certificate file not set")
        if not self.ssl_key_file:
            raise SSLSetupError("server error: SSL key file not set")

        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        try:
            context.load_cert_chain(self.ssl_cert_file, self.ssl_key_file)
        except (OSError, ssl.SSLError) as exc:
            raise SSLSetupError("server error: could not add certificate or key file") from exc
        try:
            context.set_ciphers(self.ssl_ciphers)
        except ssl.SSLError as exc:
            raise SSLSetupError("server error: could not set ciphers") from exc
        self.ssl_context = context
        return context

    def add_names(self, names) -> None:
        """Add each server name in turn."""
        for name in names:
            self.add_name(name)

    def add_name(self, name: str) -> None:
        """Add a server name; names holding ``:`` raise ValueError."""
        if ":" in name:
            raise ValueError(f"server error: invalid server name: {name}")
        self.names.append(name)

    def eval_name(self, name: str) -> bool:
        """True when ``name`` is one of this configuration's names."""
        return name in self.names

    def describe(self) -> str:
        """A human-readable summary of the configuration."""
        is_default = self.server is not None and getattr(self.server, "default", None) is self
        header = "Config: " + ("default" if is_default else "")
        names = "".join(f"{name} " for name in self.names) if self.names else "Any"
        return (
            f"{header}\n"
            f"Name: {names}\n"
            f"Address: {get_ip_address(self.address)}\n"
            f"Port: {self.port}\n"
            f"SSL: {'enabled' if self.ssl_enabled else 'disabled'}\n"
            f"Default router: {self.default_handler.location.path}\n"
        )

    def __str__(self) -> str:
        return self.describe()