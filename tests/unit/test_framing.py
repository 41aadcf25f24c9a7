"""Unit tests for length-prefixed framing and argument encoding."""

from __future__ import annotations

import asyncio

import pytest
from hypothesis import given

from switchpipe.constants import DEFAULT_SEPARATOR
from switchpipe.ipc.framing import (
    decode_args,
    encode_args,
    encode_frame,
    frame_size,
    read_frame,
)
from tests.strategies import reply_text, switch_lists

pytestmark = pytest.mark.unit


def _reader(data: bytes, *, eof: bool = True) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


class TestEncodeFrame:
    def test_prefix_is_little_endian_byte_count(self) -> None:
        assert encode_frame("ab") == b"\x02\x00\x00\x00ab"

    def test_empty_text_is_bare_prefix(self) -> None:
        assert encode_frame("") == b"\x00\x00\x00\x00"

    def test_prefix_counts_utf8_bytes_not_characters(self) -> None:
        frame = encode_frame("é€")
        assert frame[:4] == (5).to_bytes(4, "little")
        assert frame[4:].decode("utf-8") == "é€"

    @given(reply_text)
    def test_frame_size_matches_encoded_length(self, text: str) -> None:
        assert frame_size(text) == len(encode_frame(text))


class TestReadFrame:
    async def test_reads_one_frame(self) -> None:
        assert await read_frame(_reader(encode_frame("hello"))) == "hello"

    async def test_leaves_following_bytes_unread(self) -> None:
        reader = _reader(encode_frame("one") + encode_frame("two"))
        assert await read_frame(reader) == "one"
        assert await read_frame(reader) == "two"

    async def test_eof_before_any_byte_is_empty_message(self) -> None:
        assert await read_frame(_reader(b"")) == ""

    async def test_zero_length_frame_is_empty_message(self) -> None:
        assert await read_frame(_reader(b"\x00\x00\x00\x00")) == ""

    async def test_truncated_prefix_raises(self) -> None:
        with pytest.raises(asyncio.IncompleteReadError):
            await read_frame(_reader(b"\x05\x00"))

    async def test_truncated_payload_raises(self) -> None:
        with pytest.raises(asyncio.IncompleteReadError):
            await read_frame(_reader(b"\x05\x00\x00\x00ab"))

    async def test_invalid_utf8_raises_decode_error(self) -> None:
        with pytest.raises(UnicodeDecodeError):
            await read_frame(_reader(b"\x02\x00\x00\x00\xff\xfe"))


class TestArgumentEncoding:
    def test_each_argument_is_followed_by_separator(self) -> None:
        assert encode_args(["--date", "x"]) == f"--date{DEFAULT_SEPARATOR}x{DEFAULT_SEPARATOR}"

    def test_empty_fragments_are_dropped(self) -> None:
        message = f"{DEFAULT_SEPARATOR}a{DEFAULT_SEPARATOR}{DEFAULT_SEPARATOR}b"
        assert decode_args(message) == ["a", "b"]

    def test_empty_message_decodes_to_no_arguments(self) -> None:
        assert decode_args("") == []

    def test_empty_argument_does_not_survive(self) -> None:
        assert decode_args(encode_args(["a", "", "b"])) == ["a", "b"]

    def test_custom_separator(self) -> None:
        assert decode_args(encode_args(["a", "b"], "|"), "|") == ["a", "b"]

    def test_separator_inside_argument_splits_it(self) -> None:
        assert decode_args(encode_args([f"a{DEFAULT_SEPARATOR}b"])) == ["a", "b"]

    @given(switch_lists)
    def test_round_trip_through_frame(self, args: list[str]) -> None:
        async def _decode() -> str:
            return await read_frame(_reader(encode_frame(encode_args(args))))

        assert decode_args(asyncio.run(_decode())) == args
