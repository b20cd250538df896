import logging
import os
import re
from abc import ABC, abstractmethod
from re import Pattern
from types import TracebackType
from typing import Any, Callable, Generic, Optional, TypeVar, Union

import attr

from tryst.lang.exception import format_exception, format_fields
from tryst.lang.position import START, Position, Span
from tryst.lang.source import format_source_context
from tryst.logconfig import TRACE
from tryst.util import Maybe

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

whitespace_chars = re.compile(r"\s+")


@attr.frozen
class Source:
    """An immutable snapshot of the input: the full text, the offset of the first
    unconsumed character and the position of that character.

    Parsers never modify a `Source`; consuming input produces a new one."""

    text: str
    offset: int = 0
    position: Position = START

    @classmethod
    def of(
        cls,
        text: str,
        init_line: Optional[int] = None,
        init_column: Optional[int] = None,
    ) -> "Source":
        """Create a snapshot positioned at the start of `text`.

        `init_line` and `init_column` refer to where `text` starts in the broader
        context, defaulting to 1 and 0 respectively if not provided."""
        return cls(
            text,
            position=Position(
                Maybe(init_line).or_else_get(1), Maybe(init_column).or_else_get(0)
            ),
        )

    @property
    def remaining(self) -> str:
        return self.text[self.offset :]

    @property
    def at_end(self) -> bool:
        return self.offset >= len(self.text)

    def peek(self) -> str:
        """Return the next unconsumed character, or the empty string at the end of
        the input."""
        return self.text[self.offset : self.offset + 1]

    def startswith(self, prefix: str) -> bool:
        return self.text.startswith(prefix, self.offset)

    def match(self, pattern: Pattern) -> Optional[re.Match]:
        """Match `pattern` anchored at the current offset."""
        return pattern.match(self.text, self.offset)

    def consumed_since(self, earlier: "Source") -> str:
        """Return the text consumed between `earlier` and this snapshot."""
        return self.text[earlier.offset : self.offset]

    def consume(self, n: int) -> "Source":
        """Return a new snapshot with the next `n` characters consumed."""
        end = self.offset + n
        return Source(
            self.text, end, self.position.advance(self.text[self.offset : end])
        )

    def skip_whitespace(self) -> "Source":
        """Return a new snapshot past any whitespace at the current offset."""
        if (m := self.match(whitespace_chars)) is None:
            return self
        return self.consume(m.end() - m.start())


@attr.frozen
class Expected:
    description: str

    def __str__(self):
        return f"expected {self.description}"


@attr.frozen
class Eof:
    def __str__(self):
        return "unexpected end of input"


EOF = Eof()

ErrorKind = Union[Expected, Eof]


# pylint:disable=redefined-builtin
@attr.define(repr=False, str=False)
class ParseError(Exception):
    """Raised when a parser fails.

    `position` is where the failure was detected, which is not necessarily where
    the enclosing parse began. Errors from reading a file carry its name and its
    decoded text, which is used to show the lines around the error."""

    kind: ErrorKind
    position: Position
    filename: Optional[str] = None
    source: Optional[str] = None

    @property
    def is_eof(self) -> bool:
        return isinstance(self.kind, Eof)

    def __repr__(self):
        return (
            f"tryst.lang.combinators.ParseError({self.kind!r}, {self.position!r}, "
            f"filename={self.filename})"
        )

    def __str__(self):
        details = f"line: {self.position.line}, col: {self.position.col}"
        if self.filename is not None:
            details = f"file: {self.filename}, {details}"
        return f"{self.kind} ({details})"


@format_exception.register(ParseError)
def format_parse_error(  # pylint: disable=unused-argument
    e: ParseError,
    tp: Optional[type[Exception]] = None,
    tb: Optional[TracebackType] = None,
    disable_color: Optional[bool] = None,
) -> list[str]:
    """If `disable_color` is True, no color formatting will be applied to the source
    code."""
    line_num = f"{e.position.line}:{e.position.col}"
    lines = format_fields(
        [
            ("exception", type(e)),
            ("message", e.kind),
            ("location", None if e.filename is None else f"{e.filename}:{line_num}"),
            ("line", line_num if e.filename is None else None),
        ]
    )

    if e.filename is not None and (
        context_lines := format_source_context(
            e.filename,
            e.position.line,
            disable_color=disable_color,
            source=e.source,
        )
    ):
        lines.append(f"    context:{os.linesep}")
        lines.append(os.linesep)
        lines.extend(context_lines)

    return lines


@attr.frozen
class ParseResult(Generic[T]):
    """The result of a successful parse: the parsed value, the span of source it
    was read from and the snapshot from which parsing should continue."""

    value: T
    span: Span
    next: Source


@attr.frozen
class Spanned(Generic[T]):
    value: T
    span: Span


class Parser(ABC, Generic[T]):
    """Base class for all parsers.

    A parser is a pure function from a `Source` snapshot to a `ParseResult`. On
    failure it raises `ParseError` and consumes nothing, since there is nothing to
    consume from: every snapshot is immutable."""

    __slots__ = ()

    @abstractmethod
    def parse(self, source: Source) -> ParseResult[T]:
        raise NotImplementedError()

    def __call__(self, source: Source) -> ParseResult[T]:
        return self.parse(source)

    def map(self, f: Callable[[T], U]) -> "Parser[U]":
        return MapParser(self, f)

    def optional(self) -> "Parser[Optional[T]]":
        return MaybeParser(self)

    def then(self, other: "Parser[U]") -> "Parser[tuple[T, U]]":
        return ChainParser(self, other)

    def __or__(self, other: "Parser[U]") -> "Parser[Union[T, U]]":
        return OrParser(self, other)

    def whitespace_delimited(self) -> "Parser[list[T]]":
        return RepeatParser(self)

    def delimited(self, delim: "Parser[Any]") -> "Parser[list[T]]":
        return DelimitedParser(self, delim)

    def surrounded(self, left: "Parser[Any]", right: "Parser[Any]") -> "Parser[T]":
        return SurroundedParser(self, left, right)

    def with_span(self) -> "Parser[Spanned[T]]":
        return WithSpanParser(self)

    def recognize(self) -> "Parser[str]":
        return RecognizeParser(self)

    def or_eof(self) -> "Parser[T]":
        return EofParser(self)


class FunctionParser(Parser[T]):
    """Adapt a plain function from `Source` to `ParseResult` into a `Parser`."""

    __slots__ = ("_f",)

    def __init__(self, f: Callable[[Source], ParseResult[T]]) -> None:
        self._f = f

    def __repr__(self):
        return f"FunctionParser({getattr(self._f, '__name__', self._f)})"

    def parse(self, source: Source) -> ParseResult[T]:
        return self._f(source)


def parser(f: Callable[[Source], ParseResult[T]]) -> Parser[T]:
    """Decorator turning a parsing function into a `Parser`.

    Recursive grammars can refer to other parsers from within the function body,
    which is only evaluated at parse time."""
    return FunctionParser(f)


class LiteralParser(Parser[str]):
    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        self._value = value

    def __repr__(self):
        return f"LiteralParser({self._value!r})"

    def parse(self, source: Source) -> ParseResult[str]:
        if not source.startswith(self._value):
            raise ParseError(Expected(self._value), source.position)
        span = source.position.span(self._value)
        return ParseResult(
            self._value,
            span,
            Source(source.text, source.offset + len(self._value), span.end),
        )


class RegexParser(Parser[str]):
    """Parser which matches a regular expression at the current offset.

    The match is always anchored at the start of the remaining input; patterns
    should not use `^`, which would only match at the start of the whole text."""

    __slots__ = ("_pattern", "_description")

    def __init__(self, pattern: Union[str, Pattern], description: str) -> None:
        self._pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self._description = description

    def __repr__(self):
        return f"RegexParser({self._pattern.pattern!r}, {self._description!r})"

    def parse(self, source: Source) -> ParseResult[str]:
        if (m := source.match(self._pattern)) is None:
            raise ParseError(Expected(self._description), source.position)
        value = m.group(0)
        span = source.position.span(value)
        return ParseResult(value, span, Source(source.text, m.end(), span.end))


class MaybeParser(Parser[Optional[T]]):
    __slots__ = ("_inner",)

    def __init__(self, inner: Parser[T]) -> None:
        self._inner = inner

    def parse(self, source: Source) -> ParseResult[Optional[T]]:
        try:
            result = self._inner.parse(source)
        except ParseError:
            return ParseResult(None, Span(source.position, source.position), source)
        return ParseResult(result.value, result.span, result.next)


class MapParser(Parser[U]):
    __slots__ = ("_inner", "_f")

    def __init__(self, inner: Parser[T], f: Callable[[T], U]) -> None:
        self._inner = inner
        self._f = f

    def parse(self, source: Source) -> ParseResult[U]:
        result = self._inner.parse(source)
        return ParseResult(self._f(result.value), result.span, result.next)


class ChainParser(Parser[tuple[T, U]]):
    """Run `left` and then `right` from where `left` finished.

    There is no backtracking into `left` if `right` fails."""

    __slots__ = ("_left", "_right")

    def __init__(self, left: Parser[T], right: Parser[U]) -> None:
        self._left = left
        self._right = right

    def parse(self, source: Source) -> ParseResult[tuple[T, U]]:
        left = self._left.parse(source)
        right = self._right.parse(left.next)
        return ParseResult(
            (left.value, right.value),
            Span(left.span.start, right.span.end),
            right.next,
        )


class OrParser(Parser[Union[T, U]]):
    """Ordered choice.

    `right` is attempted from the original snapshot only if `left` fails. Once
    `left` succeeds the choice is committed: a later failure elsewhere never causes
    `right` to be tried. If both fail, the error from `right` is raised."""

    __slots__ = ("_left", "_right")

    def __init__(self, left: Parser[T], right: Parser[U]) -> None:
        self._left = left
        self._right = right

    def parse(self, source: Source) -> ParseResult[Union[T, U]]:
        try:
            return self._left.parse(source)  # type: ignore[return-value]
        except ParseError as e:
            if logger.isEnabledFor(TRACE):
                logger.log(
                    TRACE, f"Ordered choice falling back to {self._right!r}: {e}"
                )
        return self._right.parse(source)  # type: ignore[return-value]


class RepeatParser(Parser[list[T]]):
    """Parse one or more `inner` items separated by optional whitespace.

    After each item, a maximal run of whitespace is skipped before trying the next
    one. The first failure ends the sequence without an error; the continuation
    includes any whitespace skipped after the last item. The span runs from the
    start of the first item to the end of the last.

    An item which consumes no input ends the sequence after it is collected."""

    __slots__ = ("_inner",)

    def __init__(self, inner: Parser[T]) -> None:
        self._inner = inner

    def parse(self, source: Source) -> ParseResult[list[T]]:
        attempt = source
        result = self._inner.parse(attempt)
        items = [result.value]
        start, end = result.span.start, result.span.end
        next_source = result.next.skip_whitespace()

        while result.next.offset != attempt.offset:
            attempt = next_source
            try:
                result = self._inner.parse(attempt)
            except ParseError:
                break
            items.append(result.value)
            end = result.span.end
            next_source = result.next.skip_whitespace()

        return ParseResult(items, Span(start, end), next_source)


class DelimitedParser(Parser[list[T]]):
    """Parse one or more `inner` items, each after the first preceded by `delim`.

    The sequence ends when `delim` fails. Once `delim` has matched, the following
    item is mandatory and its failure is raised. No whitespace is skipped."""

    __slots__ = ("_inner", "_delim")

    def __init__(self, inner: Parser[T], delim: Parser[Any]) -> None:
        self._inner = inner
        self._delim = delim

    def parse(self, source: Source) -> ParseResult[list[T]]:
        result = self._inner.parse(source)
        items = [result.value]
        start, end = result.span.start, result.span.end
        attempt, next_source = source, result.next

        while next_source.offset != attempt.offset:
            attempt = next_source
            try:
                delim = self._delim.parse(attempt)
            except ParseError:
                break
            result = self._inner.parse(delim.next)
            items.append(result.value)
            end = result.span.end
            next_source = result.next

        return ParseResult(items, Span(start, end), next_source)


class SurroundedParser(Parser[T]):
    __slots__ = ("_inner", "_left", "_right")

    def __init__(
        self, inner: Parser[T], left: Parser[Any], right: Parser[Any]
    ) -> None:
        self._inner = inner
        self._left = left
        self._right = right

    def parse(self, source: Source) -> ParseResult[T]:
        left = self._left.parse(source)
        inner = self._inner.parse(left.next)
        right = self._right.parse(inner.next)
        return ParseResult(
            inner.value, Span(left.span.start, right.span.end), right.next
        )


class WithSpanParser(Parser[Spanned[T]]):
    """Pair the value of `inner` with the span of the text it consumed.

    The span covers all of the text between the entry and exit snapshots, including
    any whitespace `inner` skipped after its last item."""

    __slots__ = ("_inner",)

    def __init__(self, inner: Parser[T]) -> None:
        self._inner = inner

    def parse(self, source: Source) -> ParseResult[Spanned[T]]:
        result = self._inner.parse(source)
        span = source.position.span(result.next.consumed_since(source))
        return ParseResult(Spanned(result.value, span), span, result.next)


class RecognizeParser(Parser[str]):
    """Replace the value of `inner` with the exact text it consumed."""

    __slots__ = ("_inner",)

    def __init__(self, inner: Parser[Any]) -> None:
        self._inner = inner

    def parse(self, source: Source) -> ParseResult[str]:
        result = self._inner.parse(source)
        return ParseResult(result.next.consumed_since(source), result.span, result.next)


class EofParser(Parser[T]):
    """Report running out of input as such.

    If `inner` fails and there was no input left to give it, the failure is raised
    as an `Eof` error at the end of the input instead. Callers can use
    `ParseError.is_eof` to tell input which was cut short from input which is
    wrong."""

    __slots__ = ("_inner",)

    def __init__(self, inner: Parser[T]) -> None:
        self._inner = inner

    def parse(self, source: Source) -> ParseResult[T]:
        try:
            return self._inner.parse(source)
        except ParseError as e:
            if source.at_end and not e.is_eof:
                raise ParseError(EOF, source.position) from e
            raise


def literal(value: str) -> Parser[str]:
    """Return a parser which matches exactly `value`."""
    return LiteralParser(value)


def regex(pattern: Union[str, Pattern], description: str) -> Parser[str]:
    """Return a parser which matches `pattern` at the current offset, failing with
    an error that expected `description`."""
    return RegexParser(pattern, description)


whitespace: Parser[str] = RegexParser(whitespace_chars, "whitespace")
