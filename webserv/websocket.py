"""Encoding and decoding of WebSocket frames."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

_FIN = 0x80
_OPCODE_TEXT = 0x1
_OPCODE_CLOSE = 0x8
_MASK_BIT = 0x80
_LENGTH_16 = 126
_LENGTH_64 = 127
_MAX_SHORT_LENGTH = 125


class FrameError(ValueError):
    """A WebSocket frame is malformed or cannot be built."""


def _to_bytes(data: str | bytes) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def decode_frame(frame: bytes) -> bytes:
    """Return the (unmasked) payload of a single frame.

    A frame shorter than two bytes yields an empty payload. Frames using the
    64-bit length form, or too short for their announced length, raise
    FrameError.
    """
    if len(frame) < 2:
        return b""

    first, second = frame[0], frame[1]
    fin = bool(first & _FIN)
    opcode = first & 0x0F
    masked = bool(second & _MASK_BIT)
    length = second & 0x7F

    index = 2
    if length == _LENGTH_16:
        if len(frame) < index + 2:
            raise FrameError("Frame too short for extended payload length")
        length = int.from_bytes(frame[index:index + 2], "big")
        index += 2
    elif length == _LENGTH_64:
        raise FrameError("Payload length too large")

    mask = b""
    if masked:
        mask = frame[index:index + 4]
        if len(mask) != 4:
            raise FrameError("Frame too short for masking key")
        index += 4

    payload = frame[index:index + length]
    if len(payload) != length:
        raise FrameError("Frame too short for specified payload length")
    if masked:
        payload = bytes(byte ^ mask[i % 4] for i, byte in enumerate(payload))

    logger.debug(
        "Decoded WebSocket frame: FIN=%s opcode=%d length=%d payload=%r",
        fin,
        opcode,
        length,
        payload,
    )
    return payload


def close_frame(code: int = 1000, reason: str | bytes = b"") -> bytes:
    """Build an unmasked close frame carrying ``code`` and ``reason``."""
    reason_bytes = _to_bytes(reason)
    length = 2 + len(reason_bytes)
    if length > _MAX_SHORT_LENGTH:
        raise FrameError("Payload too long for a close frame")
    return (
        bytes((_FIN | _OPCODE_CLOSE, length))
        + (code & 0xFFFF).to_bytes(2, "big")
        + reason_bytes
    )


def text_frame(message: str | bytes) -> bytes:
    """Build an unmasked, final text frame holding ``message``."""
    payload = _to_bytes(message)
    size = len(payload)
    header = bytearray((_FIN | _OPCODE_TEXT,))
    if size <= _MAX_SHORT_LENGTH:
        header.append(size)
    elif size <= 0xFFFF:
        header.append(_LENGTH_16)
        header += size.to_bytes(2, "big")
    else:
        header.append(_LENGTH_64)
        header += size.to_bytes(8, "big")
    return bytes(header) + payload