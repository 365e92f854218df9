"""String helpers shared by the configuration parser, requests and responses."""

from __future__ import annotations

import re
import time

_DIGITS = frozenset("0123456789")
_WHITESPACE = frozenset(" \t\n\r\v\f")
_PUNCTUATION = frozenset("{};")

_KB = 1024
_MB = 1024 * 1024
_GB = 1024 * 1024 * 1024

_SECOND = 1000
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR

_SIZE_UNITS = {"b": 1, "k": _KB, "m": _MB, "g": _GB}
_TIME_UNITS = {"s": _SECOND, "m": _MINUTE, "h": _HOUR, "d": _DAY}

_CROP_LIMIT = 1000


def to_string(value) -> str:
    """Render a value as text; booleans become ``true`` / ``false``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def split(text: str, sep: str) -> list[str]:
    """Split on ``sep`` the way a line reader does: one trailing empty field is dropped."""
    parts = text.split(sep)
    if parts and parts[-1] == "":
        parts.pop()
    return parts


def parse_quoted_and_split(text: str) -> list[str]:
    """Split on spaces outside double quotes; quotes are removed.

    The last field is always present, even when empty.
    """
    result: list[str] = []
    current: list[str] = []
    in_quotes = False
    for char in text:
        if char == '"':
            in_quotes = not in_quotes
        elif char == " " and not in_quotes:
            if current:
                result.append("".join(current))
                current.clear()
        else:
            current.append(char)
    result.append("".join(current))
    return result


def tokenize(line: str) -> list[str]:
    """Split a configuration line into tokens.

    Whitespace separates tokens, ``{``, ``}`` and ``;`` are tokens of their
    own, ``#`` outside quotes starts a comment, and quotes are kept.
    Raises ValueError on an unterminated quote.
    """
    tokens: list[str] = []
    token: list[str] = []
    in_quotes = False

    def flush() -> None:
        if token:
            tokens.append("".join(token))
            token.clear()

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
            token.append(char)
        elif in_quotes:
            token.append(char)
        elif char == "#":
            break
        elif char in _WHITESPACE:
            flush()
        elif char in _PUNCTUATION:
            flush()
            tokens.append(char)
        else:
            token.append(char)
    flush()

    if in_quotes:
        raise ValueError("Unterminated quote")
    return tokens


def join(items, sep: str) -> str:
    """Join items with a separator."""
    return sep.join(items)


def trim(text: str, char: str = " ") -> str:
    """Remove every leading and trailing occurrence of ``char``."""
    return text.strip(char)


def read_directive_key(line: str) -> tuple[str, str]:
    """Split a directive line at its first space.

    Returns the trimmed key and the rest of the line.
    """
    if not line:
        return "", ""
    key, sep, rest = line.partition(" ")
    if not sep:
        return trim(key), ""
    return trim(key), rest


def capitalize(text: str) -> str:
    """Lower-case the text, then upper-case its first letter and each letter after a dash."""
    chars = list(text.lower())
    if not chars:
        return ""
    chars[0] = chars[0].upper()
    for index in range(1, len(chars) - 1):
        if chars[index] == "-":
            chars[index + 1] = chars[index + 1].upper()
    return "".join(chars)


def read_key(line: str) -> str:
    """Return the canonical header name before the first colon, or ``""``."""
    name, sep, _ = line.partition(":")
    if not sep:
        return ""
    return trim(capitalize(name))


def read_value(line: str) -> str:
    """Return the trimmed text after the first colon (the whole line if there is none)."""
    start = line.find(":") + 1
    return trim(line[start:])


def get_extension(filename: str) -> str:
    """Return what follows the last dot, or ``""`` if there is nothing after it."""
    dot = filename.rfind(".")
    if dot != -1 and dot < len(filename) - 1:
        return filename[dot + 1:]
    return ""


def get_ip_address(addr: int) -> str:
    """Render a host-order 32-bit address in dotted notation."""
    addr &= 0xFFFFFFFF
    return ".".join(str((addr >> shift) & 0xFF) for shift in (24, 16, 8, 0))


def _atoi(text: str) -> int:
    match = re.match(r"[ \t\n\r\v\f]*([+-]?[0-9]+)", text)
    return int(match.group(1)) if match else 0


def set_ip_address(addr: str) -> int:
    """Parse a dotted address into a host-order 32-bit integer; 0 if malformed."""
    tokens = split(addr, ".")
    if len(tokens) != 4:
        return 0
    result = 0
    for token, shift in zip(tokens, (24, 16, 8, 0)):
        result |= _atoi(token) << shift
    return result & 0xFFFFFFFF


def is_number(text: str) -> bool:
    """True when every character is an ASCII digit (an empty string qualifies)."""
    return all(char in _DIGITS for char in text)


def is_ip_address_format(addr: str) -> bool:
    """True for four dot-separated digit groups."""
    tokens = split(addr, ".")
    return len(tokens) == 4 and all(is_number(token) for token in tokens)


def is_ip_address(addr: str) -> bool:
    """True for four dot-separated numbers, each from 0 to 255."""
    tokens = split(addr, ".")
    if len(tokens) != 4:
        return False
    return all(is_number(token) and 0 <= _atoi(token) <= 255 for token in tokens)


def replace(buffer: str, search: str, replacement: str) -> str:
    """Replace occurrences of ``search``, resuming after each inserted replacement."""
    if not search:
        raise ValueError("search value must not be empty")
    step = max(len(replacement), 1)
    found = buffer.find(search)
    while found != -1:
        buffer = buffer[:found] + replacement + buffer[found + len(search):]
        found = buffer.find(search, found + step)
    return buffer


def collapse_repeats(text: str, search: str, replacement: str) -> str:
    """Replace every run of the ``search`` character with one ``replacement``."""
    return re.sub(re.escape(search) + "+", lambda _match: replacement, text)


def _parse_with_units(text: str, units: dict[str, int], what: str) -> int:
    digits = len(text) - len(text.lstrip("0123456789"))
    value = int(text[:digits]) if digits else 0
    rest = text[digits:]
    if not rest:
        return value
    factor = units.get(rest[0].lower())
    if factor is None or len(rest) > 1:
        raise ValueError(f"invalid {what}: {text!r}")
    return value * factor


def parse_size(text: str) -> int:
    """Parse a size such as ``10``, ``10b``, ``4k``, ``2M`` or ``1g`` into bytes."""
    return _parse_with_units(text, _SIZE_UNITS, "size")


def format_size(size: int) -> str:
    """Render a byte count with the largest whole unit (B, KB, MB, GB)."""
    if size < _KB:
        return f"{size}B"
    if size < _MB:
        return f"{size // _KB}KB"
    if size < _GB:
        return f"{size // _MB}MB"
    return f"{size // _GB}GB"


def parse_time(text: str) -> int:
    """Parse a duration such as ``30s``, ``5m``, ``2h`` or ``1d`` into milliseconds.

    A bare number is taken as milliseconds.
    """
    return _parse_with_units(text, _TIME_UNITS, "time")


def format_time(ms: int) -> str:
    """Render milliseconds with the largest whole unit (s, m, h, d)."""
    if ms < _MINUTE:
        return f"{ms // _SECOND}s"
    if ms < _HOUR:
        return f"{ms // _MINUTE}m"
    if ms < _DAY:
        return f"{ms // _HOUR}h"
    return f"{ms // _DAY}d"


def crop_output(text: str) -> str:
    """Shorten text beyond 1000 characters, noting how much was left out."""
    if len(text) > _CROP_LIMIT:
        return f"{text[:_CROP_LIMIT]}... {format_size(len(text) - _CROP_LIMIT)} more"
    return text


def timestamp_ms() -> float:
    """Current wall-clock time in milliseconds."""
    return time.time() * 1000.0