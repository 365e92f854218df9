from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import pytest

from webserv.request import Request
from webserv.response import (
    CookieOptions,
    Response,
    format_methods,
    http_date,
    is_valid_status,
    status_text,
)
from webserv.websocket import close_frame, text_frame


class FakeTransport:
    def __init__(self):
        self.sent = []

    def send(self, data):
        self.sent.append(data)
        return len(data)


def make_request(line="GET /index.html HTTP/1.1"):
    request = Request("127.0.0.1")
    request.process_line(line)
    if request.status == 200:
        request.process_line("Host: localhost")
        request.process_line("")
    return request


def make_response(line="GET /index.html HTTP/1.1"):
    transport = FakeTransport()
    return transport, Response(transport, make_request(line))


def split_payload(payload):
    head, _, body = payload.partition(b"\r\n\r\n")
    lines = head.decode().split("\r\n")
    headers = dict(line.split(": ", 1) for line in lines[1:])
    return lines[0], headers, body


def test_status_helpers():
    assert is_valid_status(200)
    assert is_valid_status(511)
    assert not is_valid_status(299)
    assert status_text(418) == "I'm a teapot"
    assert status_text(431) == "Request Header Fields Too Large"
    assert status_text(999) == ""


def test_format_methods():
    assert format_methods(["GET", "POST", "DELETE"]) == "GET, POST, DELETE"
    assert format_methods([]) == ""


def test_http_date_is_current_gmt():
    value = http_date()
    assert value.endswith(" GMT")
    parsed = parsedate_to_datetime(value)
    assert abs((datetime.now(timezone.utc) - parsed).total_seconds()) < 5


def test_nothing_sent_until_end():
    transport, response = make_response()
    assert transport.sent == []
    assert response.can_send
    response.send("hello").end()
    assert len(transport.sent) == 1
    status_line, headers, body = split_payload(transport.sent[0])
    assert status_line == "HTTP/1.1 200 OK"
    assert headers["Connection"] == "close"
    assert headers["Content-Length"] == "5"
    assert "Date" in headers
    assert "Server" in headers
    assert body == b"hello\r\n"
    assert not response.can_send


def test_end_sends_only_once():
    transport, response = make_response()
    response.end()
    response.end()
    assert len(transport.sent) == 1


def test_bad_request_is_answered_immediately():
    transport, response = make_response("GET / HTTP/1.0")
    assert len(transport.sent) == 1
    status_line, _, _ = split_payload(transport.sent[0])
    assert status_line == "HTTP/1.0 505 HTTP Version not supported"


def test_missing_version_defaults_to_1_1():
    transport, response = make_response("GET")
    status_line, _, _ = split_payload(transport.sent[0])
    assert status_line == "HTTP/1.1 400 Bad Request"


def test_no_content_drops_body():
    transport, response = make_response()
    response.send("ignored").set_status(204).end()
    _, _, body = split_payload(transport.sent[0])
    assert body == b""
    assert response.body == b""


def test_unknown_status_becomes_500():
    transport, response = make_response()
    response.set_status(299).end()
    status_line, _, _ = split_payload(transport.sent[0])
    assert status_line == "HTTP/1.1 500 Internal Server Error"
    assert response.status == 500


def test_send_not_found():
    transport, response = make_response("GET /missing HTTP/1.1")
    response.send_not_found().end()
    status_line, headers, body = split_payload(transport.sent[0])
    assert status_line == "HTTP/1.1 404 Not Found"
    assert headers["Content-Type"] == "text/html; charset=utf-8"
    assert b"<pre>Cannot GET /missing</pre>" in body
    assert int(headers["Content-Length"]) == len(response.body)


def test_send_default_uses_status_name():
    transport, response = make_response()
    response.send_default(403)
    assert response.status == 403
    assert b"<h1>403 Forbidden</h1>" in response.body


def test_header_ignored_after_send():
    transport, response = make_response()
    response.end()
    response.set_header("X-Late", "1")
    assert "X-Late" not in response.headers


def test_set_cookie_serialisation():
    transport, response = make_response()
    options = CookieOptions(domain="example.com", max_age=60, secure=True, http_only=True)
    response.set_cookie("theme", "dark", options)
    assert response.cookies["theme"] == "theme=dark; path=/; domain=example.com; Max-Age=60; secure; HttpOnly"
    response.set_cookie("lang", "fr")
    response.end()
    assert b"Set-Cookie: lang=fr; path=/\r\n" in transport.sent[0]


def test_redirect():
    transport, response = make_response()
    response.redirect("/elsewhere")
    assert response.status == 302
    assert response.headers["Location"] == "/elsewhere"
    response.redirect("/moved", 301)
    assert response.status == 301


def test_send_cgi_parses_headers_and_body():
    transport, response = make_response()
    response.send_cgi("Status: 201\r\nContent-Type: text/plain\r\n\r\nHELLO\n")
    assert response.status == 201
    assert response.headers["Content-Type"] == "text/plain"
    assert response.body == b"HELLO"
    assert response.headers["Content-Length"] == "5"


def test_send_cgi_empty_output():
    transport, response = make_response()
    response.send_cgi("")
    assert response.status == 501
    assert len(transport.sent) == 1


def test_send_file(tmp_path):
    page = tmp_path / "page.html"
    page.write_bytes(b"<p>hi</p>")
    transport, response = make_response()
    response.send_file(str(page))
    assert response.body == b"<p>hi</p>"
    assert response.headers["Content-Type"] == "text/html"
    assert response.headers["Content-Length"] == str(len(b"<p>hi</p>"))
    assert response.headers["Last-Modified"].endswith("GMT")


def test_send_missing_file(tmp_path):
    transport, response = make_response()
    response.send_file(str(tmp_path / "nope.txt"))
    assert response.status == 404
    assert b"Cannot GET /index.html" in response.body


def test_send_frame_requires_upgrade():
    transport, response = make_response()
    with pytest.raises(RuntimeError):
        response.send_frame("hi")


def test_send_frames_after_upgrade():
    transport, response = make_response()
    response.upgrade()
    assert response.is_upgraded
    response.send_frame("hi")
    response.send_frame("bye", 1000)
    assert transport.sent == [text_frame("hi"), close_frame(1000, "bye")]


def test_upgraded_response_keeps_connection():
    transport, response = make_response()
    response.upgrade().end()
    _, headers, _ = split_payload(transport.sent[0])
    assert "Connection" not in headers


def test_can_add_header():
    transport, response = make_response()
    assert response.can_add_header()
    response.set_status(404)
    assert not response.can_add_header()


def test_cancel_prevents_sending():
    transport, response = make_response()
    response.cancel()
    response.end()
    assert transport.sent == []


def test_context_manager_sends_on_exit():
    transport = FakeTransport()
    with Response(transport, make_request()) as response:
        response.send("x")
    assert len(transport.sent) == 1
    assert transport.sent[0].startswith(b"HTTP/1.1 200 OK\r\n")


def test_clear_body_and_describe():
    transport, response = make_response()
    response.send("content")
    assert response.has_body
    text = response.describe()
    assert text.startswith("HTTP/1.1 200 OK\n")
    assert "Body:\ncontent\n" in text
    response.clear_body()
    assert not response.has_body