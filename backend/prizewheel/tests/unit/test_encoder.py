"""
Tests for the display MessagePack codec.
"""

from datetime import UTC, datetime

import msgpack
import pytest

from prizewheel.logic.outcome import SpinOutcome
from prizewheel.messaging.encoder import MAX_BUFFER_LEN, MAX_MAP_LEN, DecodeError, decode, encode


class TestEncode:
    def test_datetime_becomes_iso_string(self) -> None:
        ts = datetime(2025, 5, 1, 12, 30, tzinfo=UTC)

        assert decode(encode({"timestamp": ts})) == {"timestamp": "2025-05-01T12:30:00+00:00"}

    def test_models_are_dumped_as_maps(self) -> None:
        data = {"outcome": SpinOutcome(name="Mug", is_real_prize=True)}

        assert decode(encode(data)) == {"outcome": {"name": "Mug", "is_real_prize": True}}

    def test_unsupported_value_raises(self) -> None:
        with pytest.raises(TypeError, match="cannot serialize"):
            encode({"value": object()})


class TestDecode:
    def test_plain_map(self) -> None:
        assert decode(msgpack.packb({"type": "ping"})) == {"type": "ping"}

    def test_oversized_frame(self) -> None:
        with pytest.raises(DecodeError, match="frame too large"):
            decode(b"\x00" * (MAX_BUFFER_LEN + 1))

    def test_garbage(self) -> None:
        with pytest.raises(DecodeError, match="failed to decode"):
            decode(b"\xc1")

    def test_truncated_frame(self) -> None:
        with pytest.raises(DecodeError):
            decode(msgpack.packb({"type": "ping"})[:-2])

    def test_non_map_payload(self) -> None:
        with pytest.raises(DecodeError, match="expected a map, got list"):
            decode(msgpack.packb([1, 2, 3]))

    def test_map_over_limit(self) -> None:
        data = {f"k{i}": i for i in range(MAX_MAP_LEN + 1)}

        with pytest.raises(DecodeError):
            decode(msgpack.packb(data))
