"""Common utilities for kycops."""

from kycops.common.hexcodec import HexDecodeError, decode_hex, encode_hex
from kycops.common.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "HexDecodeError",
    "decode_hex",
    "encode_hex",
]
