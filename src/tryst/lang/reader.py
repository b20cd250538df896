import functools
import logging
import re
from typing import Optional

from pyrsistent import PVector, pvector

from tryst.lang import form as lform
from tryst.lang import numbers as numbers
from tryst.lang import utf8 as utf8
from tryst.lang.combinators import (
    Expected,
    ParseError,
    Parser,
    ParseResult,
    Source,
    Spanned,
    literal,
    parser,
    regex,
    whitespace,
)
from tryst.lang.form import Form
from tryst.lang.numbers import NumberReader
from tryst.lang.position import Span
from tryst.util import Maybe, timed

logger = logging.getLogger(__name__)

FILE_BLOCK_SIZE = 4096

integer_chars = re.compile(r"[0-9]+")
exponent_chars = re.compile(r"[eE][+-]?[0-9]+")

_DIGITS = frozenset("0123456789")


def _is_identifier_start(c: str) -> bool:
    # Python identifiers may also start with an underscore, which is not XID_Start.
    return c != "_" and c.isidentifier()


def _is_identifier_continue(c: str) -> bool:
    return f"a{c}".isidentifier()


@parser
def _symbol_text(source: Source) -> ParseResult[str]:
    """Match a Unicode identifier: an XID_Start character followed by any number of
    XID_Continue characters."""
    text, start = source.text, source.offset
    if not _is_identifier_start(source.peek()):
        raise ParseError(Expected("an identifier"), source.position)
    end = start + 1
    while end < len(text) and _is_identifier_continue(text[end]):
        end += 1
    next_source = source.consume(end - start)
    return ParseResult(
        text[start:end], Span(source.position, next_source.position), next_source
    )


_integer = regex(integer_chars, "an integer literal")
_exponent = regex(exponent_chars, "an exponent")

# digits ( "." ( digits exponent? )? )?
_number_text = _integer.then(
    literal(".").then(_integer.then(_exponent.optional()).optional()).optional()
).recognize()

_list_start = literal("(").then(whitespace.optional())
_list_end = literal(")").or_eof()


def _list_from_spanned(spanned: Spanned[list[Form]]) -> lform.ListForm:
    return lform.list_from(spanned.value, span=spanned.span)


class ReaderContext:
    """Grammar for a single read.

    The context owns the numeric-literal converter used for number atoms and the
    parsers built around it. The parsers are exposed so that callers can embed the
    grammar into larger parsers."""

    __slots__ = ("_number_reader", "_atom", "_list", "_form", "_forms", "_all_forms")

    def __init__(self, number_reader: Optional[NumberReader] = None) -> None:
        self._number_reader = Maybe(number_reader).or_else_get(
            numbers.number_from_str
        )
        self._atom: Parser[lform.AtomForm] = parser(self._read_atom)
        self._list: Parser[lform.ListForm] = (
            parser(self._read_forms)
            .or_eof()
            .surrounded(_list_start, _list_end)
            .with_span()
            .map(_list_from_spanned)
        )
        self._form: Parser[Form] = self._atom | self._list
        self._forms: Parser[list[Form]] = self._form.whitespace_delimited()
        self._all_forms: Parser[Spanned[list[Form]]] = (
            self._forms.or_eof().with_span()
        )

    @property
    def number_reader(self) -> NumberReader:
        return self._number_reader

    @property
    def atom(self) -> Parser[lform.AtomForm]:
        return self._atom

    @property
    def form(self) -> Parser[Form]:
        return self._form

    @property
    def forms(self) -> Parser[list[Form]]:
        return self._forms

    def _read_forms(self, source: Source) -> ParseResult[list[Form]]:
        return self._forms.parse(source)

    def _read_number(self, source: Source) -> ParseResult[lform.AtomForm]:
        result = _number_text.parse(source)
        try:
            value = self._number_reader(result.value)
        except (ValueError, ArithmeticError) as e:
            raise ParseError(Expected("a number"), source.position) from e
        return ParseResult(
            lform.number(value, span=result.span), result.span, result.next
        )

    def _read_atom(self, source: Source) -> ParseResult[lform.AtomForm]:
        """Read a number if the next character is a decimal digit and a symbol
        otherwise.

        A digit-led token which is not a valid number is an error; it is never
        read as a symbol."""
        if source.peek() in _DIGITS:
            return self._read_number(source)
        result = _symbol_text.parse(source)
        return ParseResult(
            lform.symbol(result.value, span=result.span), result.span, result.next
        )

    def read(
        self, source: Source, allow_trailing: bool = True
    ) -> Spanned[PVector[Form]]:
        """Read every form from `source`, skipping any leading whitespace.

        If `allow_trailing` is False, any input which remains after the last form
        is an error."""
        result = self._all_forms.parse(source.skip_whitespace())
        if not allow_trailing and not result.next.at_end:
            raise ParseError(Expected("end of input"), result.next.position)
        return Spanned(pvector(result.value.value), result.value.span)

    # Defined last so that `list` still names the builtin in the annotations above.
    @property
    def list(self) -> Parser[lform.ListForm]:
        return self._list


def read_str(
    s: str,
    number_reader: Optional[NumberReader] = None,
    init_line: Optional[int] = None,
    init_column: Optional[int] = None,
    allow_trailing: bool = True,
) -> Spanned[PVector[Form]]:
    """Read the contents of a string as a sequence of forms.

    The optional `init_line` and `init_column` specify where the string starts in
    the broader context, if not from the beginning.

    Callers may optionally provide a `number_reader`, which is called with the text
    of each numeric literal and should return the number it represents or raise
    `ValueError` or `ArithmeticError` if it cannot represent it. By default,
    integral literals become `int` and all others become `float`.

    The returned value holds the forms read and the span they cover. Raise a
    `ParseError` if the input is not valid. Input which remains after the last
    complete form is ignored unless `allow_trailing` is False."""
    ctx = ReaderContext(number_reader=number_reader)
    forms = ctx.read(
        Source.of(s, init_line=init_line, init_column=init_column),
        allow_trailing=allow_trailing,
    )
    logger.debug(f"Read {len(forms.value)} forms spanning {forms.span}")
    return forms


def read_stream(
    stream: utf8.ByteSource,
    number_reader: Optional[NumberReader] = None,
    init_line: Optional[int] = None,
    init_column: Optional[int] = None,
    allow_trailing: bool = True,
) -> Spanned[PVector[Form]]:
    """Read the contents of a UTF-8 encoded byte source as a sequence of forms.

    Keyword arguments to this function have the same meanings as those of
    `tryst.lang.reader.read_str`. Raise a `tryst.lang.utf8.DecodeError` if the
    stream cannot be decoded.

    The caller is responsible for closing the input stream."""
    return read_str(
        utf8.decode(stream),
        number_reader=number_reader,
        init_line=init_line,
        init_column=init_column,
        allow_trailing=allow_trailing,
    )


def read_file(
    filename: str,
    number_reader: Optional[NumberReader] = None,
    allow_trailing: bool = True,
) -> Spanned[PVector[Form]]:
    """Read the contents of a UTF-8 encoded file as a sequence of forms.

    Keyword arguments to this function have the same meanings as those of
    `tryst.lang.reader.read_str`. Parse errors raised from this function name
    the file they were raised for and carry its text."""
    with timed(
        lambda duration: logger.debug(
            f"Read file '{filename}' in {duration / 1000000}ms"
        )
    ):
        with open(filename, mode="rb") as f:
            s = utf8.decode(iter(functools.partial(f.read, FILE_BLOCK_SIZE), b""))

        try:
            return read_str(
                s, number_reader=number_reader, allow_trailing=allow_trailing
            )
        except ParseError as e:
            e.filename = filename
            e.source = s
            raise
