"""
MessagePack codec for display connections.

Frames are msgpack maps. Values msgpack cannot pack natively (datetimes,
pydantic models) are converted on the way out; decoding is bounded so a
misbehaving client cannot make the server allocate large buffers.
"""

from datetime import datetime
from typing import Any

import msgpack
from pydantic import BaseModel

# Display clients only send tiny control frames.
MAX_BUFFER_LEN = 16 * 1024
MAX_STR_LEN = 4 * 1024
MAX_BIN_LEN = 1024
MAX_ARRAY_LEN = 256
MAX_MAP_LEN = 64
MAX_EXT_LEN = 256


class DecodeError(Exception):
    """Raised when a frame is not a valid, bounded msgpack map."""


def _pack_default(obj: object) -> object:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    raise TypeError(f"cannot serialize {type(obj).__name__}")


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(data, default=_pack_default)


def decode(data: bytes) -> dict[str, Any]:
    """
    Decode one frame into a dict.

    Raises DecodeError for oversized, malformed or non-map payloads.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"frame too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode frame: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected a map, got {type(result).__name__}")
    return result
