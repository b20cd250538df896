import enum
from collections.abc import Iterable, Iterator
from types import TracebackType
from typing import Optional, Protocol, Union

import attr

from tryst.lang.exception import format_exception, format_fields

# Smallest scalar value which requires a sequence of the given length; anything
# below it is an overlong encoding.
_MIN_SCALAR = {2: 0x80, 3: 0x800, 4: 0x10000}
_MAX_SCALAR = 0x10FFFF
_SURROGATES = range(0xD800, 0xE000)


class ExpectedByte(enum.Enum):
    START = "a utf-8 start byte"
    CONTINUATION = "a utf-8 continuation byte"


class ByteKind(enum.Enum):
    ASCII = enum.auto()
    START2 = enum.auto()
    START3 = enum.auto()
    START4 = enum.auto()
    CONTINUATION = enum.auto()
    INVALID = enum.auto()

    @staticmethod
    def of(b: int) -> "ByteKind":
        """Classify a single byte by the role it may play in a UTF-8 sequence.

        0xC0 and 0xC1 can only begin overlong 2-byte sequences and 0xF5 and above
        can only begin sequences beyond U+10FFFF, so they are never valid."""
        if b < 0x80:
            return ByteKind.ASCII
        elif b < 0xC0:
            return ByteKind.CONTINUATION
        elif b < 0xC2:
            return ByteKind.INVALID
        elif b < 0xE0:
            return ByteKind.START2
        elif b < 0xF0:
            return ByteKind.START3
        elif b < 0xF5:
            return ByteKind.START4
        return ByteKind.INVALID


class DecodeError(Exception):
    """Base class for errors raised while decoding a UTF-8 byte source."""


@attr.define(repr=False, str=False)
class StreamError(DecodeError):
    """Raised when the underlying byte source fails. The original `OSError` is
    available as `__cause__`."""

    message: str

    def __str__(self):
        return self.message


@attr.define(repr=False, str=False)
class EncodingError(DecodeError):
    expected: ExpectedByte
    actual: int

    def __repr__(self):
        return f"tryst.lang.utf8.EncodingError({self.expected}, {self.actual:#04x})"

    def __str__(self):
        return (
            f"Unexpected byte: expected {self.expected.value}, "
            f"found {self.actual:#04x}"
        )


@attr.define(repr=False, str=False)
class InvalidScalarError(DecodeError):
    """Raised when a complete sequence decodes to something which is not a Unicode
    scalar value: an overlong encoding, a surrogate or a value above U+10FFFF."""

    value: int
    length: int

    def __str__(self):
        return f"Invalid {self.length}-byte sequence for U+{self.value:04X}"


class TruncatedSequenceError(DecodeError):
    """Raised when the byte source ends in the middle of a multi-byte sequence."""

    def __str__(self):
        return "Unexpected end of file inside a UTF-8 sequence"


@format_exception.register(DecodeError)
def format_decode_error(  # pylint: disable=unused-argument
    e: DecodeError,
    tp: Optional[type[Exception]] = None,
    tb: Optional[TracebackType] = None,
    disable_color: Optional[bool] = None,
) -> list[str]:
    message = f"{e}: {e.__cause__}" if e.__cause__ is not None else str(e)
    return format_fields([("exception", type(e)), ("message", message)])


class Utf8Decoder:
    """Incremental UTF-8 decoder which accepts one byte at a time.

    The decoder holds at most one partially decoded scalar value. After any
    completed or failed character, it is reset to its initial state."""

    __slots__ = ("_value", "_rem", "_len")

    def __init__(self) -> None:
        self._value = 0
        self._rem = 0
        self._len = 0

    @property
    def at_boundary(self) -> bool:
        """Return True if no multi-byte sequence is in progress."""
        return self._rem == 0

    def _reset(self) -> None:
        self._value = 0
        self._rem = 0
        self._len = 0

    def _fail(self, expected: ExpectedByte, b: int) -> EncodingError:
        self._reset()
        return EncodingError(expected, b)

    def _start(self, payload: int, rem: int) -> None:
        self._value = payload << (6 * rem)
        self._rem = rem
        self._len = rem + 1

    def _complete(self) -> str:
        value, length = self._value, self._len
        self._reset()
        if value < _MIN_SCALAR[length] or value > _MAX_SCALAR or value in _SURROGATES:
            raise InvalidScalarError(value, length)
        return chr(value)

    def push(self, b: int) -> Optional[str]:
        """Feed the byte `b` to the decoder.

        Return the decoded character if `b` completes one, or None if more bytes
        are needed. Raise an `EncodingError` if `b` may not appear here."""
        kind = ByteKind.of(b)
        if kind is ByteKind.ASCII:
            if self._rem:
                raise self._fail(ExpectedByte.CONTINUATION, b)
            return chr(b)
        elif kind is ByteKind.CONTINUATION:
            if not self._rem:
                raise self._fail(ExpectedByte.START, b)
            self._rem -= 1
            self._value |= (b & 0x3F) << (6 * self._rem)
            if self._rem == 0:
                return self._complete()
            return None
        elif kind is ByteKind.INVALID:
            if self._rem:
                raise self._fail(ExpectedByte.CONTINUATION, b)
            raise self._fail(ExpectedByte.START, b)

        if self._rem:
            raise self._fail(ExpectedByte.CONTINUATION, b)
        if kind is ByteKind.START2:
            self._start(b & 0x1F, 1)
        elif kind is ByteKind.START3:
            self._start(b & 0x0F, 2)
        else:
            self._start(b & 0x07, 3)
        return None


class Readable(Protocol):
    def read(self, size: int = ...) -> bytes: ...


ByteSource = Union[bytes, Iterable[bytes], Readable]


def _blocks(source) -> Iterator[bytes]:
    """Yield successive chunks of bytes from a readable stream or from an iterable
    of byte chunks, wrapping any `OSError` from the source in a `StreamError`.

    Streams are read one byte at a time, so a stream is never positioned past the
    last byte the decoder has consumed."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        yield bytes(source)
        return

    if hasattr(source, "read"):
        it = iter(lambda: source.read(1), b"")
    else:
        it = iter(source)

    while True:
        try:
            block = next(it)
        except StopIteration:
            return
        except OSError as e:
            raise StreamError("Unable to read from byte source") from e
        yield block


def chars(source: ByteSource) -> Iterator[str]:
    """Lazily decode the UTF-8 bytes in `source` into characters.

    `source` may be a binary stream (anything with a `read(size)` method) or an
    iterable of `bytes` chunks of any size; chunk boundaries may fall inside a
    multi-byte sequence.

    Any decoding error ends the sequence: the error is raised and the generator is
    finished. If the source ends in the middle of a sequence, a
    `TruncatedSequenceError` is raised rather than emitting a partial or
    replacement character."""
    decoder = Utf8Decoder()
    for block in _blocks(source):
        for b in block:
            c = decoder.push(b)
            if c is not None:
                yield c
    if not decoder.at_boundary:
        raise TruncatedSequenceError()


def decode(source: ByteSource) -> str:
    """Decode the entire byte source into a string."""
    return "".join(chars(source))
