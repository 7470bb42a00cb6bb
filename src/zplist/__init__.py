"""
Binary property list decoding library.

Decodes Apple's bplist00 container into plain Python values. Every read is
bounds-checked against the input buffer, so malformed or hostile input fails
with a typed PlistFormatError instead of an IndexError or struct.error.
"""

import datetime
import logging
import os
import struct
import time
from collections.abc import Callable
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import IntEnum
from typing import IO
from typing import Any

from ._string_pool import StringPool

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

# Type aliases for domain concepts - recursive definition
PlistValue = (
    str
    | int
    | float
    | bool
    | None
    | datetime.datetime
    | dict[str, "PlistValue"]
    | list["PlistValue"]
)
type Offset = int
type ObjectIndex = int

# Union type for values that might be transformed by hooks
PlistValueOrTransformed = PlistValue | Any

ObjectHook = Callable[[dict[str, PlistValue]], Any] | None
ObjectPairsHook = (
    Callable[[list[tuple[str, PlistValueOrTransformed]]], Any] | None
)

# Profiling infrastructure - zero-cost when disabled
PROFILE_HOT_PATHS = __debug__ and "ZPLIST_PROFILE" in os.environ

MAGIC = b"bplist"
VERSION = b"00"
HEADER_SIZE = len(MAGIC) + len(VERSION)
TRAILER_SIZE = 32
# 5 unused bytes, sort version, offset int width, object ref width,
# object count, top object index, offset table offset
TRAILER_FORMAT = ">5xBBBQQQ"
EXTENDED_COUNT = 0xF
DATE_MARKER = 0x33
DEFAULT_MAX_DEPTH = 256
PLIST_EPOCH = datetime.datetime(2001, 1, 1, tzinfo=datetime.UTC)

_UINT_FORMATS = {1: ">B", 2: ">H", 4: ">I", 8: ">Q"}
# Format 00 stores 1, 2 and 4-byte integers unsigned and 8-byte integers
# signed; negative values are always written with 8 bytes.
_PLIST_INT_FORMATS = {1: ">B", 2: ">H", 4: ">I", 8: ">q"}
_REAL_FORMATS = {2: ">f", 3: ">d"}
_SIMPLE_VALUES: dict[int, bool | None] = {0x0: None, 0x8: False, 0x9: True}


@dataclass
class HotPathStats:
    """Statistics for profiling hot paths during decoding."""

    function_name: str
    call_count: int = 0
    total_time_ns: int = 0
    bytes_processed: int = 0

    def record_call(self, duration_ns: int, size: int = 0) -> None:
        """Records a function call with timing and byte processing info."""
        self.call_count += 1
        self.total_time_ns += duration_ns
        self.bytes_processed += size


if PROFILE_HOT_PATHS:
    _hot_path_stats: dict[str, HotPathStats] = {}

    class ProfileContext:
        """
        Times one decoding step into the stats entry named ``path``.

        ``size`` is the payload byte count attributed to the step; steps
        that fail are still recorded.
        """

        __slots__ = ("path", "size", "_started_ns")

        def __init__(self, path: str, size: int = 0):
            self.path = path
            self.size = size
            self._started_ns = 0

        def __enter__(self) -> "ProfileContext":
            self._started_ns = time.perf_counter_ns()
            return self

        def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
            elapsed = time.perf_counter_ns() - self._started_ns
            stats = _hot_path_stats.get(self.path)
            if stats is None:
                stats = _hot_path_stats[self.path] = HotPathStats(self.path)
            stats.record_call(elapsed, self.size)

    def get_hot_path_stats() -> dict[str, HotPathStats]:
        """Returns a snapshot of the per-path timings."""
        return dict(_hot_path_stats)

    def clear_hot_path_stats() -> None:
        _hot_path_stats.clear()

else:

    class ProfileContext:  # type: ignore[no-redef]
        def __init__(self, path: str, size: int = 0) -> None:
            pass

        def __enter__(self) -> "ProfileContext":
            return self

        def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
            pass

    def get_hot_path_stats() -> dict[str, HotPathStats]:
        return {}

    def clear_hot_path_stats() -> None:
        pass


class PlistFormatError(ValueError):
    """
    Signals malformed or unsupported binary plist input.

    Carries the byte offset where decoding stopped, when one is known, so
    callers can locate the corrupt region of the buffer.
    """

    def __init__(self, msg: str, pos: int | None = None) -> None:
        if not isinstance(msg, str):
            raise TypeError("msg must be a string")
        if pos is not None and (not isinstance(pos, int) or pos < 0):
            raise ValueError("pos must be a non-negative integer")

        self.msg = msg
        self.pos = pos

        super().__init__(msg if pos is None else f"{msg} at offset {pos}")


class BadMagicError(PlistFormatError):
    """Buffer does not start with the ``bplist`` signature."""


class UnsupportedVersionError(PlistFormatError):
    """Header signature is followed by a version other than ``00``."""


class TruncatedTrailerError(PlistFormatError):
    """Buffer is too short to hold the 32-byte trailer."""


class TruncatedRecordError(PlistFormatError):
    """A fixed-size read runs past the end of the buffer."""


class InvalidWidthError(PlistFormatError):
    """An integer width is not one of 1, 2, 4 or 8 bytes."""


class IndexOutOfRangeError(PlistFormatError):
    """An object index or its offset-table slot lies outside the file."""


class MalformedCountError(PlistFormatError):
    """An extended count is not followed by an integer record."""


class InvalidRealWidthError(PlistFormatError):
    """A real record declares a width other than 4 or 8 bytes."""


class UnsupportedDateTagError(PlistFormatError):
    """A date-kind record uses a marker other than 0x33."""


class UnsupportedRecordTypeError(PlistFormatError):
    """The record kind exists in the format but is not decoded."""

    def __init__(self, record_type: str, pos: int | None = None) -> None:
        self.record_type = record_type
        super().__init__(f"Unsupported record type: {record_type}", pos)


class NonStringKeyError(PlistFormatError):
    """A dictionary key decoded to something other than a string."""


class UnknownRecordKindError(PlistFormatError):
    """Marker byte matches no known record kind."""


class TooDeeplyNestedError(PlistFormatError):
    """Container nesting exceeds the configured depth budget."""


class CyclicReferenceError(PlistFormatError):
    """A container references one of its own ancestors."""


class InvalidStringError(PlistFormatError):
    """String payload is not valid for its declared encoding."""


class DateOutOfRangeError(PlistFormatError):
    """Date offset cannot be represented as a datetime."""


class RecordKind(IntEnum):
    """
    Record kinds selected by the high nibble of a marker byte.

    Kinds 0x7, 0x9, 0xB, 0xE and 0xF are unassigned in format 00.
    """

    SIMPLE = 0x0
    INT = 0x1
    REAL = 0x2
    DATE = 0x3
    DATA = 0x4
    ASCII_STRING = 0x5
    UTF16_STRING = 0x6
    UID = 0x8
    ARRAY = 0xA
    SET = 0xC
    DICT = 0xD


@dataclass(frozen=True)
class NodeTag:
    """Marker byte heading every object record."""

    marker: int

    @property
    def kind(self) -> int:
        return self.marker >> 4

    @property
    def inline(self) -> int:
        return self.marker & 0x0F


@dataclass(frozen=True)
class Trailer:
    """
    Fixed 32-byte footer describing the object table layout.

    Field values are host integers; the big-endian encoding is handled by
    read_trailer.
    """

    sort_version: int
    offset_int_width: int
    object_ref_width: int
    object_count: int
    top_object_index: ObjectIndex
    offset_table_offset: Offset


@dataclass(frozen=True)
class ParseConfig:
    """
    Configures bplist decoding behavior with immutable settings.

    String interning uses ``string_pool`` when given, otherwise the
    process-shared pool. ``max_depth`` bounds container nesting and
    ``detect_cycles`` rejects containers that reference an ancestor.
    """

    intern_strings: bool = True
    string_pool: StringPool | None = None
    max_depth: int = DEFAULT_MAX_DEPTH
    detect_cycles: bool = True
    aware_datetime: bool = True
    object_pairs_hook: ObjectPairsHook = None
    object_hook: ObjectHook = None

    def __post_init__(self) -> None:
        if not isinstance(self.intern_strings, bool):
            raise TypeError("intern_strings must be a boolean")
        if not isinstance(self.detect_cycles, bool):
            raise TypeError("detect_cycles must be a boolean")
        if not isinstance(self.aware_datetime, bool):
            raise TypeError("aware_datetime must be a boolean")
        if self.string_pool is not None and not isinstance(
            self.string_pool, StringPool
        ):
            raise TypeError("string_pool must be a StringPool")
        if isinstance(self.max_depth, bool) or not isinstance(
            self.max_depth, int
        ):
            raise TypeError("max_depth must be an integer")
        if self.max_depth < 0:
            raise ValueError("max_depth must be non-negative")


shared_pool = StringPool()


def _require(data: bytes, pos: Offset, size: int, what: str) -> None:
    """Raises TruncatedRecordError unless ``size`` bytes exist at ``pos``."""
    if pos + size > len(data):
        raise TruncatedRecordError(
            f"Truncated {what}: need {size} bytes, "
            f"{max(len(data) - pos, 0)} available",
            pos,
        )


def read_sized_uint(data: bytes, width: int, pos: Offset = 0) -> int:
    """Reads a big-endian unsigned integer of 1, 2, 4 or 8 bytes."""
    fmt = _UINT_FORMATS.get(width)
    if fmt is None:
        raise InvalidWidthError(f"Invalid integer width {width}", pos)
    _require(data, pos, width, "integer")
    return struct.unpack_from(fmt, data, pos)[0]


def read_plist_int(data: bytes, width: int, pos: Offset = 0) -> int:
    """
    Reads the payload of an integer record.

    1, 2 and 4-byte payloads are unsigned, 8-byte payloads are signed, so
    ``ff`` decodes to 255 while eight ``ff`` bytes decode to -1.
    """
    fmt = _PLIST_INT_FORMATS.get(width)
    if fmt is None:
        raise InvalidWidthError(f"Invalid integer width {width}", pos)
    _require(data, pos, width, "integer")
    return struct.unpack_from(fmt, data, pos)[0]


def validate_header(data: bytes) -> None:
    """Checks the 8-byte ``bplist00`` signature."""
    if len(data) < HEADER_SIZE or data[: len(MAGIC)] != MAGIC:
        raise BadMagicError("Not a binary plist: bad magic", 0)

    version = data[len(MAGIC) : HEADER_SIZE]
    if version != VERSION:
        raise UnsupportedVersionError(
            f"Unsupported bplist version {version!r}", len(MAGIC)
        )
    logger.debug("Header OK, format version %s", version.decode("ascii"))


def _check_trailer_fits(data: bytes) -> None:
    if len(data) < TRAILER_SIZE:
        raise TruncatedTrailerError(
            f"Buffer of {len(data)} bytes cannot hold "
            f"a {TRAILER_SIZE}-byte trailer",
            0,
        )


def read_trailer(data: bytes) -> Trailer:
    """Parses the trailer from the last 32 bytes of the buffer."""
    _check_trailer_fits(data)

    trailer = Trailer(
        *struct.unpack_from(TRAILER_FORMAT, data, len(data) - TRAILER_SIZE)
    )
    logger.debug(
        "Trailer: %d objects, top object %d, offset table at %d, "
        "offset width %d, ref width %d",
        trailer.object_count,
        trailer.top_object_index,
        trailer.offset_table_offset,
        trailer.offset_int_width,
        trailer.object_ref_width,
    )
    return trailer


def resolve_offset(data: bytes, trailer: Trailer, index: ObjectIndex) -> Offset:
    """Maps an object index to the absolute offset of its record."""
    if not 0 <= index < trailer.object_count:
        raise IndexOutOfRangeError(
            f"Object index {index} out of range "
            f"for {trailer.object_count} objects"
        )

    width = trailer.offset_int_width
    if width not in _UINT_FORMATS:
        raise InvalidWidthError(f"Invalid offset table width {width}")

    slot = trailer.offset_table_offset + index * width
    if slot + width > len(data):
        raise IndexOutOfRangeError(
            f"Offset table entry for object {index} lies past end of buffer"
        )

    offset = read_sized_uint(data, width, slot)
    if offset >= len(data):
        raise IndexOutOfRangeError(
            f"Object {index} resolves to offset {offset} past end of buffer",
            slot,
        )
    return offset


def read_tag(data: bytes, pos: Offset) -> NodeTag:
    """Reads the marker byte at ``pos``."""
    _require(data, pos, 1, "record marker")
    return NodeTag(data[pos])


def resolve_count(data: bytes, tag: NodeTag, pos: Offset) -> tuple[int, Offset]:
    """
    Resolves the element count of a record.

    ``pos`` is the position just past the marker byte. Inline counts below
    15 are returned as is. An inline value of 0xF means the real count
    follows as an integer record, read unsigned; the returned position
    then skips that record.
    """
    if tag.inline != EXTENDED_COUNT:
        return tag.inline, pos

    count_tag = read_tag(data, pos)
    if count_tag.kind != RecordKind.INT:
        raise MalformedCountError(
            "Extended count is not an integer record "
            f"(marker 0x{count_tag.marker:02x})",
            pos,
        )

    width = 1 << count_tag.inline
    count = read_sized_uint(data, width, pos + 1)
    return count, pos + 1 + width


class BinaryPlistParser:
    """
    Recursive decoder for one bplist00 buffer.

    Validates the header and reads the trailer on construction; objects are
    then decoded on demand, starting from the trailer's top object. The
    offset table is consulted per reference and never materialized.
    """

    def __init__(self, data: bytes, config: ParseConfig):
        # A valid file always ends in a full trailer
        _check_trailer_fits(data)
        validate_header(data)

        self.data = data
        self.config = config
        self.trailer = read_trailer(data)
        self._pool: StringPool | None = None
        if config.intern_strings:
            self._pool = (
                config.string_pool
                if config.string_pool is not None
                else shared_pool
            )
        self._ancestors: set[ObjectIndex] = set()

    def parse(self) -> PlistValueOrTransformed:
        """Decodes the top object."""
        return self.parse_node(self.trailer.top_object_index)

    def parse_node(  # noqa: PLR0911
        self, index: ObjectIndex, depth: int = 0
    ) -> PlistValueOrTransformed:
        """Decodes the object at ``index``; ``depth`` counts enclosing containers."""
        offset = resolve_offset(self.data, self.trailer, index)
        tag = read_tag(self.data, offset)

        try:
            kind = RecordKind(tag.kind)
        except ValueError:
            raise UnknownRecordKindError(
                f"Unknown record marker 0x{tag.marker:02x}", offset
            ) from None

        if kind == RecordKind.SIMPLE:
            if tag.inline not in _SIMPLE_VALUES:
                raise UnknownRecordKindError(
                    f"Unknown simple value marker 0x{tag.marker:02x}", offset
                )
            return _SIMPLE_VALUES[tag.inline]
        elif kind == RecordKind.INT:
            return read_plist_int(self.data, 1 << tag.inline, offset + 1)
        elif kind == RecordKind.REAL:
            if tag.inline not in _REAL_FORMATS:
                raise InvalidRealWidthError(
                    f"Invalid real width code {tag.inline}", offset
                )
            return self._read_real(tag.inline, offset + 1)
        elif kind == RecordKind.DATE:
            return self._parse_date(tag, offset)
        elif kind == RecordKind.DATA:
            raise UnsupportedRecordTypeError("data", offset)
        elif kind == RecordKind.ASCII_STRING:
            return self.parse_string(tag, offset, "ascii", 1)
        elif kind == RecordKind.UTF16_STRING:
            return self.parse_string(tag, offset, "utf-16-be", 2)
        elif kind == RecordKind.UID:
            raise UnsupportedRecordTypeError("uid", offset)
        elif kind in (RecordKind.ARRAY, RecordKind.SET):
            return self.parse_array(index, tag, offset, depth)
        else:
            return self.parse_dict(index, tag, offset, depth)

    def _read_real(self, size_code: int, pos: Offset) -> float:
        """Reads a 4 or 8-byte big-endian IEEE-754 value."""
        fmt = _REAL_FORMATS[size_code]
        _require(self.data, pos, 1 << size_code, "real")
        return struct.unpack_from(fmt, self.data, pos)[0]

    def _parse_date(self, tag: NodeTag, offset: Offset) -> datetime.datetime:
        """Decodes seconds since 2001-01-01T00:00:00Z into a datetime."""
        if tag.marker != DATE_MARKER:
            raise UnsupportedDateTagError(
                f"Unsupported date marker 0x{tag.marker:02x}", offset
            )

        size_code, pos = resolve_count(self.data, tag, offset + 1)
        if size_code not in _REAL_FORMATS:
            raise UnsupportedDateTagError(
                f"Unsupported date width code {size_code}", offset
            )

        seconds = self._read_real(size_code, pos)
        try:
            stamp = PLIST_EPOCH + datetime.timedelta(seconds=seconds)
        except (OverflowError, ValueError) as e:
            raise DateOutOfRangeError(
                f"Date offset {seconds!r} is out of range", offset
            ) from e

        if self.config.aware_datetime:
            return stamp
        return stamp.replace(tzinfo=None)

    def parse_string(
        self, tag: NodeTag, offset: Offset, encoding: str, unit_size: int
    ) -> str:
        """Decodes an ASCII or UTF-16BE string record, interning if enabled."""
        count, pos = resolve_count(self.data, tag, offset + 1)
        if count == 0:
            return ""

        size = count * unit_size
        with ProfileContext("parse_string", size):
            _require(self.data, pos, size, "string")
            raw = self.data[pos : pos + size]
            try:
                if self._pool is not None:
                    return self._pool.get_or_add(raw, encoding)
                return raw.decode(encoding)
            except UnicodeDecodeError as e:
                raise InvalidStringError(
                    f"Invalid {encoding} string payload", pos
                ) from e

    def _read_refs(self, pos: Offset, count: int) -> list[ObjectIndex]:
        """Reads ``count`` object references starting at ``pos``."""
        width = self.trailer.object_ref_width
        if width not in _UINT_FORMATS:
            raise InvalidWidthError(
                f"Invalid object reference width {width}", pos
            )
        _require(self.data, pos, count * width, "object reference list")
        return [
            read_sized_uint(self.data, width, pos + j * width)
            for j in range(count)
        ]

    @contextmanager
    def _enter_container(
        self, index: ObjectIndex, offset: Offset, depth: int
    ) -> Iterator[None]:
        """Applies the depth budget and ancestor guard around a container."""
        if depth >= self.config.max_depth:
            raise TooDeeplyNestedError(
                f"Nesting exceeds maximum depth of {self.config.max_depth}",
                offset,
            )
        if not self.config.detect_cycles:
            yield
            return

        if index in self._ancestors:
            raise CyclicReferenceError(
                f"Object {index} is contained in itself", offset
            )
        self._ancestors.add(index)
        try:
            yield
        finally:
            self._ancestors.discard(index)

    def parse_array(
        self, index: ObjectIndex, tag: NodeTag, offset: Offset, depth: int
    ) -> list[PlistValueOrTransformed]:
        """Decodes an array or set record into a list, in reference order."""
        with ProfileContext("parse_array"):
            count, pos = resolve_count(self.data, tag, offset + 1)
            refs = self._read_refs(pos, count)

            with self._enter_container(index, offset, depth):
                return [self.parse_node(ref, depth + 1) for ref in refs]

    def _apply_object_hooks(
        self, pairs: list[tuple[str, PlistValueOrTransformed]]
    ) -> PlistValueOrTransformed:
        """Applies object hooks to decoded pairs."""
        if self.config.object_pairs_hook:
            return self.config.object_pairs_hook(pairs)
        else:
            obj = dict(pairs)
            if self.config.object_hook:
                return self.config.object_hook(obj)
            return obj

    def parse_dict(
        self, index: ObjectIndex, tag: NodeTag, offset: Offset, depth: int
    ) -> PlistValueOrTransformed:
        """
        Decodes a dictionary record.

        The payload holds all key references followed by all value
        references; pair ``j`` is ``(keys[j], values[j])``.
        """
        with ProfileContext("parse_dict"):
            count, pos = resolve_count(self.data, tag, offset + 1)
            key_refs = self._read_refs(pos, count)
            value_refs = self._read_refs(
                pos + count * self.trailer.object_ref_width, count
            )

            pairs: list[tuple[str, PlistValueOrTransformed]] = []
            with self._enter_container(index, offset, depth):
                for key_ref, value_ref in zip(key_refs, value_refs):
                    key = self.parse_key(key_ref, offset)
                    pairs.append((key, self.parse_node(value_ref, depth + 1)))

            return self._apply_object_hooks(pairs)

    def parse_key(self, index: ObjectIndex, dict_offset: Offset) -> str:
        """
        Decodes a dictionary key, which must be a string record.

        The record kind is checked before decoding, so object hooks never
        run on a key.
        """
        offset = resolve_offset(self.data, self.trailer, index)
        tag = read_tag(self.data, offset)
        if tag.kind == RecordKind.ASCII_STRING:
            return self.parse_string(tag, offset, "ascii", 1)
        if tag.kind == RecordKind.UTF16_STRING:
            return self.parse_string(tag, offset, "utf-16-be", 2)

        kind = "unknown"
        if tag.kind in RecordKind:
            kind = RecordKind(tag.kind).name.lower()
        raise NonStringKeyError(
            f"Dictionary key object {index} is a {kind} record "
            f"(marker 0x{tag.marker:02x}), expected a string",
            dict_offset,
        )


def _check_input(data: Any) -> bytes:
    """Validates input type and returns an immutable buffer."""
    if not isinstance(data, bytes | bytearray | memoryview):
        raise TypeError(
            "the bplist object must be bytes-like, "
            f"not {type(data).__name__}"
        )
    return bytes(data)


def _parse_value(data: bytes, config: ParseConfig) -> PlistValueOrTransformed:
    """Decodes a whole buffer with the given configuration."""
    with ProfileContext("parse_value", len(data)):
        parser = BinaryPlistParser(data, config)
        try:
            return parser.parse()
        except RecursionError as e:
            # max_depth above what the interpreter stack can hold
            raise TooDeeplyNestedError(
                "Nesting exceeds the interpreter recursion limit"
            ) from e


def parse(
    data: bytes | bytearray | memoryview, config: ParseConfig | None = None
) -> PlistValueOrTransformed:
    """Decodes a bplist00 buffer using an explicit configuration object."""
    return _parse_value(
        _check_input(data), config if config is not None else ParseConfig()
    )


def loads(
    data: bytes | bytearray | memoryview, **kwargs: Any
) -> PlistValueOrTransformed:
    """
    Decodes a complete bplist00 byte image into Python objects.

    Keyword arguments are ParseConfig fields. Raises a PlistFormatError
    subclass for any malformed or unsupported input; no partial result is
    ever returned.
    """
    data = _check_input(data)
    config = ParseConfig(**kwargs)
    return _parse_value(data, config)


def load(fp: IO[bytes], **kwargs: Any) -> PlistValueOrTransformed:
    """
    Decodes a bplist00 document read in full from a binary file object.
    """
    if not hasattr(fp, "read"):
        raise TypeError("fp must have a read() method")

    return loads(fp.read(), **kwargs)


__all__ = [
    "BadMagicError",
    "BinaryPlistParser",
    "CyclicReferenceError",
    "DateOutOfRangeError",
    "HotPathStats",
    "IndexOutOfRangeError",
    "InvalidRealWidthError",
    "InvalidStringError",
    "InvalidWidthError",
    "MalformedCountError",
    "NodeTag",
    "NonStringKeyError",
    "ParseConfig",
    "PlistFormatError",
    "RecordKind",
    "StringPool",
    "Trailer",
    "TooDeeplyNestedError",
    "TruncatedRecordError",
    "TruncatedTrailerError",
    "UnknownRecordKindError",
    "UnsupportedDateTagError",
    "UnsupportedRecordTypeError",
    "UnsupportedVersionError",
    "clear_hot_path_stats",
    "get_hot_path_stats",
    "load",
    "loads",
    "parse",
    "read_plist_int",
    "read_sized_uint",
    "read_tag",
    "read_trailer",
    "resolve_count",
    "resolve_offset",
    "shared_pool",
    "validate_header",
]
