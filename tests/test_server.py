import socket

import pytest

from webserv.server import Server, ServerError, format_proxy_log, format_response_log
from webserv.server_config import ServerConfig
from webserv.strings import set_ip_address

LOCALHOST = set_ip_address("127.0.0.1")


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


def test_response_log_with_body():
    assert format_response_log("GET", "/index", 200, 1.5, 12) == "GET /index 200 1.500 ms - 12"


def test_response_log_without_body_shows_dash():
    line = format_response_log("HEAD", "/", 404, 0.25, 0)
    assert line.endswith(" - -")
    assert line.startswith("HEAD / 404 ")


def test_proxy_log_formats():
    assert format_proxy_log("POST", "/api", 2.0) == "POST /api 2.000 ms - -"
    assert format_proxy_log("POST", "/api", 2.0, 30).endswith("ms - 30")


def test_init_without_port_raises():
    server = Server(1, 0)
    with pytest.raises(ServerError):
        server.init()
    assert server.is_init is False


def test_init_binds_and_kill_closes():
    port = _free_port()
    with Server(1, port, LOCALHOST) as server:
        server.init()
        assert server.is_init is True
        assert server.socket_fd >= 0
        assert server.socket.getsockname() == ("127.0.0.1", port)
    assert server.socket_fd == -1
    assert server.socket is None


def test_init_address_in_use_raises():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as holder:
        holder.bind(("127.0.0.1", 0))
        holder.listen(1)
        port = holder.getsockname()[1]
        server = Server(2, port, LOCALHOST)
        with pytest.raises(ServerError):
            server.init()
        assert server.is_init is False
        assert server.socket_fd == -1


def test_init_with_ssl_config_missing_files_raises():
    server = Server(3, _free_port(), LOCALHOST, ssl=True)
    config = ServerConfig()
    config.set_ssl(True)
    server.add_config(config)
    with pytest.raises(ServerError):
        server.init()
    assert server.is_init is False


def test_first_config_becomes_default_and_is_attached():
    server = Server(1)
    first, second = ServerConfig(), ServerConfig()
    server.add_config(first)
    server.add_config(second)
    assert server.default is first
    assert first.server is server and second.server is server
    assert first.used and second.used
    assert server.configs == [first, second]


def test_config_asking_to_be_default_wins_once():
    server = Server(1)
    plain, preferred, late = ServerConfig(), ServerConfig(), ServerConfig()
    preferred.set_default()
    late.set_default()
    server.add_config(plain)
    server.add_config(preferred)
    server.add_config(late)
    assert server.default is preferred


def test_get_config_by_name_and_fallback():
    server = Server(1)
    fallback, named = ServerConfig(), ServerConfig()
    named.add_name("example.com")
    server.add_config(fallback)
    server.add_config(named)
    assert server.get_config("example.com") is named
    assert server.get_config("unknown.example.com") is fallback


def test_get_config_without_configs_is_none():
    assert Server(1).get_config("example.com") is None


def test_config_cannot_change_port_after_start():
    server = Server(1, _free_port(), LOCALHOST)
    config = ServerConfig()
    server.add_config(config)
    with server:
        server.init()
        with pytest.raises(RuntimeError):
            config.set_port(9000)


def test_describe_lists_server_and_configs():
    server = Server(7, 8080, LOCALHOST)
    config = ServerConfig()
    config.add_name("example.com")
    server.add_config(config)
    text = server.describe()
    assert "<--- Server 7 --->" in text
    assert "Initiated: false" in text
    assert "Address: 127.0.0.1" in text
    assert "Port: 8080" in text
    assert "SSL: disabled" in text
    assert config.describe() in text
    assert "Config: default" in text
    assert str(server) == text