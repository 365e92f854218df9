"""A listening server and the virtual-server configurations attached to it."""

from __future__ import annotations

import errno
import logging
import socket

from webserv.server_config import ServerConfig, SSLSetupError
from webserv.strings import get_ip_address

logger = logging.getLogger(__name__)


class ServerError(RuntimeError):
    """The server could not be started."""


def _format_duration(duration_ms: float) -> str:
    return f"{duration_ms:.3f} ms"


def format_response_log(method: str, path: str, status: int, duration_ms: float, body_size: int) -> str:
    """One access-log line for a response served locally.

    A response without a body shows ``-`` in place of its size.
    """
    size = str(body_size) if body_size > 0 else "-"
    return f"{method} {path} {status} {_format_duration(duration_ms)} - {size}"


def format_proxy_log(method: str, path: str, duration_ms: float, size: int = 0) -> str:
    """One access-log line for a proxied request; a zero size shows as ``-``."""
    shown = str(size) if size else "-"
    return f"{method} {path} {_format_duration(duration_ms)} - {shown}"


class Server:
    """A socket bound to one address and port, shared by several configurations.

    Used as a context manager, the socket is closed on exit.
    """

    def __init__(self, server_id: int, port: int = 80, address: int = 0, ssl: bool = False) -> None:
        self.id = server_id
        self.port = port & 0xFFFF
        self.address = address & 0xFFFFFFFF
        self.ssl_enabled = ssl
        self.configs: list[ServerConfig] = []
        self.default: ServerConfig | None = None
        self._socket: socket.socket | None = None
        self._init = False

    def __enter__(self) -> Server:
        return self

    def __exit__(self, exc_type, exc, traceback) -> None:
        self.kill()

    @property
    def is_init(self) -> bool:
        """True once the socket is bound and TLS contexts are ready."""
        return self._init

    @property
    def socket(self) -> socket.socket | None:
        """The bound socket, or None before ``init`` or after ``kill``."""
        return self._socket

    @property
    def socket_fd(self) -> int:
        """File descriptor of the bound socket, or -1 when there is none."""
        return self._socket.fileno() if self._socket is not None else -1

    @property
    def use_ssl(self) -> bool:
        """True when the server speaks TLS."""
        return self.ssl_enabled

    def init(self) -> None:
        """Create the socket, bind it and prepare the TLS contexts of the configurations.

        Raises ServerError when the port is unset, the socket cannot be bound
        or a TLS context cannot be set up.
        """
        if self.port == 0:
            logger.error("server error: could not start server: port not set")
            raise ServerError("server error: could not start server: port not set")

        logger.info("Initiating server %s", self.id)
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as exc:
            raise ServerError(f"server error: Could not create socket: {exc}") from exc

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        except OSError as exc:
            sock.close()
            raise ServerError(f"server error: Could not set socket options: {exc}") from exc

        try:
            sock.bind((get_ip_address(self.address), self.port))
        except OSError as exc:
            sock.close()
            if exc.errno == errno.EADDRINUSE:
                raise ServerError("server error: bind error: Address already in use") from exc
            raise ServerError(f"server error: bind error: {exc}") from exc

        logger.debug("Setting up SSL context")
        for config in self.configs:
            if config.use_ssl:
                try:
                    config.setup_ssl()
                except SSLSetupError as exc:
                    sock.close()
                    raise ServerError(str(exc)) from exc

        self._socket = sock
        self._init = True

    def kill(self) -> None:
        """Close the socket, if any."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    def add_config(self, config: ServerConfig) -> None:
        """Attach a configuration; the first one, or the first asking to be default, is the default."""
        if self.default is None:
            self.default = config
        elif config.should_be_default and not self.default.should_be_default:
            self.default = config
        elif config.should_be_default:
            logger.warning(
                "server warning: multiple default configurations, only the first one will be used."
            )
        config.server = self
        config.used = True
        self.configs.append(config)

    def get_config(self, name: str) -> ServerConfig | None:
        """The first configuration answering to ``name``, else the default one."""
        for config in self.configs:
            if config.eval_name(name):
                return config
        return self.default

    def describe(self) -> str:
        """A human-readable summary of the server and its configurations."""
        head = (
            f"<--- Server {self.id} --->\n"
            f"Initiated: {'true' if self._init else 'false'}\n"
            f"Address: {get_ip_address(self.address)}\n"
            f"Port: {self.port}\n"
            f"SSL: {'enabled' if self.ssl_enabled else 'disabled'}\n"
            "\n"
            "Configurations: \n"
        )
        return head + "".join(f"{config.describe()}\n" for config in self.configs)

    def __str__(self) -> str:
        return self.describe()