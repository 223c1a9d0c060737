"""Hex codec shared by the request signer and the webhook verifier."""

from __future__ import annotations

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


class HexDecodeError(ValueError):
    """Raised when a string is not strictly valid hexadecimal."""

    def __init__(self, message: str, position: int | None = None) -> None:
        super().__init__(message)
        self.position = position


def encode_hex(data: bytes) -> str:
    """Encode bytes as lowercase hexadecimal."""
    return data.hex()


def decode_hex(value: str) -> bytes:
    """
    Decode a hexadecimal string.

    Unlike ``bytes.fromhex`` this never skips whitespace: every character
    must be a hex digit and the length must be even.

    Raises:
        HexDecodeError: On odd length or a non-hex character
    """
    if len(value) % 2:
        raise HexDecodeError(f"Odd-length hex string ({len(value)} characters)")
    for index, char in enumerate(value):
        if char not in _HEX_DIGITS:
            raise HexDecodeError(f"Invalid hex character at position {index}", index)
    return bytes.fromhex(value)
