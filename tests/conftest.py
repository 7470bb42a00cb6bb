"""
Pytest configuration and shared fixtures for zplist tests.

Provides immutable test data fixtures plus helpers that assemble raw bplist00
buffers record by record, for layouts the standard library encoder never
produces (aliased strings, sets, non-string keys, corrupt trailers).
"""

import datetime
import plistlib
import struct
from dataclasses import dataclass
from typing import Any

import pytest

_UINT_FORMATS = {1: ">B", 2: ">H", 4: ">I", 8: ">Q"}


@dataclass(frozen=True)
class PlistTestCase:
    """
    Immutable container for bplist test case data.

    Holds the Python value fed to the reference encoder and the value the
    decoder is expected to return for it.
    """

    description: str
    value: Any
    expected_output: Any = None

    @property
    def expected(self) -> Any:
        return self.value if self.expected_output is None else self.expected_output

    def encode(self) -> bytes:
        return plistlib.dumps(self.value, fmt=plistlib.FMT_BINARY)


def int_record(value: int, width: int = 1) -> bytes:
    """Integer record storing ``value`` unsigned in ``width`` bytes."""
    return bytes([0x10 | (width.bit_length() - 1)]) + struct.pack(
        _UINT_FORMATS[width], value
    )


def marker_with_count(marker: int, count: int) -> bytes:
    """Marker byte plus extended count when ``count`` does not fit inline."""
    if count < 0xF:
        return bytes([marker | count])
    width = 1 if count < 1 << 8 else 2 if count < 1 << 16 else 4
    return bytes([marker | 0xF]) + int_record(count, width)


def ascii_record(text: str) -> bytes:
    return marker_with_count(0x50, len(text)) + text.encode("ascii")


def utf16_record(text: str) -> bytes:
    payload = text.encode("utf-16-be")
    return marker_with_count(0x60, len(payload) // 2) + payload


def array_record(refs: list[int], ref_width: int = 1, marker: int = 0xA0) -> bytes:
    fmt = _UINT_FORMATS[ref_width]
    return marker_with_count(marker, len(refs)) + b"".join(
        struct.pack(fmt, ref) for ref in refs
    )


def dict_record(
    key_refs: list[int], value_refs: list[int], ref_width: int = 1
) -> bytes:
    fmt = _UINT_FORMATS[ref_width]
    return marker_with_count(0xD0, len(key_refs)) + b"".join(
        struct.pack(fmt, ref) for ref in [*key_refs, *value_refs]
    )


def build_bplist(
    records: list[bytes],
    top: int = 0,
    offset_width: int = 1,
    ref_width: int = 1,
    object_count: int | None = None,
    offset_table_offset: int | None = None,
    header: bytes = b"bplist00",
) -> bytes:
    """
    Assembles a bplist00 buffer from pre-encoded records.

    Record ``i`` becomes object ``i``. Trailer fields can be overridden to
    produce corrupt files.
    """
    body = bytearray(header)
    offsets = []
    for record in records:
        offsets.append(len(body))
        body += record

    table_offset = len(body)
    for offset in offsets:
        body += struct.pack(_UINT_FORMATS[offset_width], offset)

    body += struct.pack(
        ">5xBBBQQQ",
        0,
        offset_width,
        ref_width,
        len(records) if object_count is None else object_count,
        top,
        table_offset if offset_table_offset is None else offset_table_offset,
    )
    return bytes(body)


@pytest.fixture
def sample_document() -> bytes:
    """Hand-built ``{"a": 1, "b": [true, false, null]}``."""
    return build_bplist(
        [
            dict_record([1, 2], [3, 4]),
            ascii_record("a"),
            ascii_record("b"),
            int_record(1),
            array_record([5, 6, 7]),
            b"\x09",
            b"\x08",
            b"\x00",
        ]
    )


@pytest.fixture
def basic_plist_values() -> list[PlistTestCase]:
    """
    Provides scalar and container values encoded by the reference encoder.

    Covers every record kind the decoder supports.
    """
    return [
        PlistTestCase("null value", None),
        PlistTestCase("true boolean", True),
        PlistTestCase("false boolean", False),
        PlistTestCase("zero", 0),
        PlistTestCase("one-byte integer", 200),
        PlistTestCase("two-byte integer", 40000),
        PlistTestCase("four-byte integer", 3_000_000_000),
        PlistTestCase("eight-byte integer", 2**62 + 7),
        PlistTestCase("negative integer", -17),
        PlistTestCase("most negative integer", -(2**63)),
        PlistTestCase("float", 3.14),
        PlistTestCase("negative float", -9876.54321),
        PlistTestCase("empty string", ""),
        PlistTestCase("ascii string", "hello"),
        PlistTestCase("unicode string", "h\xe9llo 世界"),
        PlistTestCase("astral string", "emoji \U0001f600"),
        PlistTestCase("empty array", []),
        PlistTestCase("empty dictionary", {}),
        PlistTestCase("simple array", [1, 2, 3]),
        PlistTestCase("simple dictionary", {"key": "value"}),
    ]


@pytest.fixture
def nested_document() -> PlistTestCase:
    """A larger mixed document exercising nesting and extended counts."""
    created = datetime.datetime(2024, 1, 15, 10, 30, 0)
    value = {
        "name": "zplist test pattern",
        "integers": [0, 1, 255, 256, 65535, 65536, 2**32 - 1, 2**32, -1],
        "reals": [0.0, 0.5, -1.25, 1.234567890e34],
        "flags": {"true": True, "false": False},
        "created": created,
        "unicode": "ģ䕧覫췯",
        "empty": {"array": [], "object": {}},
        "long array": list(range(40)),
        "many keys": {f"key{i:02d}": i for i in range(20)},
        "nested": [[[[[["deep"]]]]]],
    }
    expected = dict(value)
    expected["created"] = created.replace(tzinfo=datetime.UTC)
    return PlistTestCase("nested document", value, expected)
