# webserv

The pieces of a small HTTP/1.1 server, usable on their own:

- `webserv.request`: incremental request parsing, one line or body fragment
  at a time, with `Content-Length` and `chunked` bodies, query strings and
  cookies.
- `webserv.response`: building a response, with status, headers, cookies,
  files, default error pages, CGI output and WebSocket frames.
- `webserv.router`: per-location settings with `root`/`alias`,
  redirections, allowed methods, index files, error pages, body size limits,
  CGI, proxy settings and timeouts. Child routers inherit what they do not
  set themselves.
- `webserv.server_config` and `webserv.server`: virtual hosts chosen by
  server name, attached to a socket bound to an address and port.
- `webserv.uris`, `webserv.websocket`, `webserv.fs`, `webserv.strings` and
  `webserv.methods`: the helpers the rest is built from.

The package needs nothing beyond the standard library and supports
Python 3.10 and later.

## Parsing a request

Feed a `Request` the request line, then each header line, then an empty
line, then the body:

```python
from webserv.request import Request

request = Request("127.0.0.1", False)
for line in (
    "POST /submit?name=demo&lang=en HTTP/1.1",
    "Host: localhost:8080",
    "Content-Length: 5",
    "",
    "hello",
):
    request.process_line(line)

request.finished          # True
request.host, request.port  # ("localhost", 8080)
request.query_string()    # "lang=en&name=demo"
print(request.prepare_for_proxying())
```

A bad request line raises nothing. It sets `request.status` to 400 when the
line is malformed, to 505 for any version other than HTTP/1.1, and to 405
for a method that `webserv.methods.is_valid_method` does not accept. Those
methods are GET, HEAD, POST, PUT, DELETE and TRACE. Malformed headers or
bodies raise `RequestError`. These include a missing `Host`, a non-numeric
or conflicting `Content-Length`, both `Content-Length` and
`Transfer-Encoding`, a body longer than announced, and an invalid chunk size.

## Building a response

A `Response` takes a transport, meaning any object with a `send(bytes)`
method, and the `Request` it answers. `end()` writes the response once. Used
as a context manager, the response is sent on exit if it was not sent
already:

```python
from webserv.response import CookieOptions, Response, is_valid_status, status_text


class Buffer:
    def __init__(self):
        self.data = b""

    def send(self, data):
        self.data += data


transport = Buffer()
with Response(transport, request) as response:
    response.set_status(201).send("created")
    response.set_cookie("session", "token", CookieOptions(http_only=True))

is_valid_status(418), status_text(418)   # (True, "I'm a teapot")
```

The other methods that set the body and headers are `send_file`,
`send_not_found`, `send_default`, `redirect` and `send_cgi`. `send_cgi` reads
`Status:` and other header lines from the CGI output. After `upgrade()`,
`send_frame` writes WebSocket text or close frames straight to the
transport. The response always carries `Connection: close` unless it is
upgraded. It also drops the body for 1xx, 204 and 304 statuses.

## Routing settings

```python
from webserv.router import Location, Router

root = Router(None, Location())
root.set_root("./public")
root.allow_methods(["GET", "POST"])

static = Router(root, Location("/static"), 1)
static.root.path          # "./public", inherited
static.allowed_methods    # ["GET", "POST"], inherited
```

`allow_method` raises `ValueError` for an unknown method. `set_timeout`
raises `ValueError` for a kind other than `"header"` or `"body"`.

## Servers and virtual hosts

```python
from webserv.server import Server
from webserv.server_config import ServerConfig

config = ServerConfig()
config.add_name("example.com")
config.set_port(8080)

with Server(1, 8080) as server:
    server.add_config(config)
    server.get_config("example.com") is config   # True
    server.init()                                # binds the socket
```

`Server.init` raises `ServerError` in three cases: the port is 0, the socket
cannot be bound, or a configuration with TLS enabled cannot build its
context. `ServerConfig.setup_ssl` raises `SSLSetupError` when it cannot
build that context. `format_response_log` and `format_proxy_log` build
access-log lines.

## Helpers

```python
from webserv.strings import format_size, format_time, parse_size, parse_time
from webserv.uris import decode_uri_component, parse_url
from webserv.websocket import close_frame, decode_frame, text_frame

decode_uri_component("/a%20file.txt")     # "/a file.txt"
parse_url("http://localhost:3000/api")    # URL(protocol="http", host="localhost", port=3000, path="/api", ...)
decode_frame(text_frame("ping"))          # b"ping"
parse_size("10M")                         # 10485760
format_size(2048)                         # "2KB"
parse_time("30s")                         # 30000 (milliseconds)
format_time(90000)                        # "1m"
```

`parse_size` and `parse_time` raise `ValueError` for an unknown unit.
`parse_url` raises `ValueError` for an empty or non-numeric port.

## What this package does not do

This package has no command to start it, and it does not read
configuration files. It has no connection loop either: `Server.init` binds a
socket, but nothing here listens on it, accepts clients, or reads requests
from them. Nothing here matches a request to a router, runs CGI programs or
forwards requests upstream. `Router` only holds the settings for those
steps. Tying the pieces together is left to the application.

## Running the tests

Install the `test` extra and run `pytest` from the project directory.