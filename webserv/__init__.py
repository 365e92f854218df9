"""Building blocks of a small HTTP/1.1 server: requests, responses, routing and server configuration."""

__version__ = "0.1.0"