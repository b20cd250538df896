import io
import os
from pathlib import Path

import pytest

from tryst.lang import reader as reader
from tryst.lang.combinators import EOF, Expected, ParseError, Source
from tryst.lang.exception import format_exception
from tryst.lang.form import l, number, symbol
from tryst.lang.position import Position, Span
from tryst.lang.utf8 import EncodingError, TruncatedSequenceError


def span(start: tuple[int, int], end: tuple[int, int]) -> Span:
    return Span(Position(*start), Position(*end))


def read_str_first(s: str, *args, **kwargs):
    """Read the first form from the input string."""
    return reader.read_str(s, *args, **kwargs).value[0]


def assert_parse_error(e: pytest.ExceptionInfo, kind, position: tuple[int, int]):
    assert kind == e.value.kind
    assert Position(*position) == e.value.position


def reject_numbers(_: str):
    raise ValueError("no numbers here")


class TestEndToEnd:
    def test_nested_list(self):
        f = read_str_first("(add 2.5 (mul 3 2))")
        assert (
            l(symbol("add"), number(2.5), l(symbol("mul"), number(3), number(2)))
            == f
        )

    def test_spans(self):
        forms = reader.read_str("(add 2.5 (mul 3 2))")
        assert span((1, 0), (1, 19)) == forms.span

        f = forms.value[0]
        assert span((1, 0), (1, 19)) == f.span
        add, flt, inner = f.items
        assert span((1, 1), (1, 4)) == add.span
        assert span((1, 5), (1, 8)) == flt.span
        assert span((1, 9), (1, 18)) == inner.span
        assert [
            span((1, 10), (1, 13)),
            span((1, 14), (1, 15)),
            span((1, 16), (1, 17)),
        ] == [item.span for item in inner.items]

    def test_multiline_spans(self):
        f = read_str_first("( a\r\n  b )")
        assert l(symbol("a"), symbol("b")) == f
        assert span((1, 0), (2, 5)) == f.span
        assert span((2, 2), (2, 3)) == f.items[1].span

    def test_initial_position(self):
        f = read_str_first("a", init_line=3, init_column=2)
        assert span((3, 2), (3, 3)) == f.span


class TestSymbol:
    @pytest.mark.parametrize(
        "s",
        [
            "a",
            "add",
            "snake_case",
            "x1",
            "λ",
            "λx",
            "日本語",
            "Ñandú",
            "e\u0301",
            "a\u00b7b",
        ],
    )
    def test_identifier(self, s: str):
        assert symbol(s) == read_str_first(s)

    def test_multibyte_span(self):
        assert span((1, 0), (1, 2)) == read_str_first("λ").span

    @pytest.mark.parametrize("s", [":abc", "-", "+", "'a", "#a", "_a", "\u00b2"])
    def test_not_an_identifier(self, s: str):
        with pytest.raises(ParseError) as e:
            reader.ReaderContext().atom.parse(Source.of(s))

        assert_parse_error(e, Expected("an identifier"), (1, 0))

    def test_not_a_form(self):
        with pytest.raises(ParseError) as e:
            reader.read_str(":abc")

        assert_parse_error(e, Expected("("), (1, 0))

    def test_symbol_ends_at_non_word_char(self):
        assert [symbol("a")] == list(reader.read_str("a.b").value)

        with pytest.raises(ParseError) as e:
            reader.read_str("a.b", allow_trailing=False)

        assert_parse_error(e, Expected("end of input"), (1, 1))


class TestNumber:
    @pytest.mark.parametrize(
        "s,v",
        [
            ("0", 0),
            ("3", 3),
            ("1234", 1234),
            ("1.", 1.0),
            ("2.5", 2.5),
            ("1.5e3", 1500.0),
            ("1.5E+3", 1500.0),
            ("2.5e-1", 0.25),
        ],
    )
    def test_number(self, s: str, v):
        f = read_str_first(s)
        assert number(v) == f
        assert span((1, 0), (1, len(s))) == f.span

    def test_integer_longer_than_int_digit_limit(self):
        f = read_str_first("1" * 5000)
        assert number((10**5000 - 1) // 9) == f
        assert span((1, 0), (1, 5000)) == f.span

    def test_exponent_requires_fraction(self):
        assert [number(1.0), symbol("e5")] == list(reader.read_str("1.e5").value)

    def test_incomplete_exponent_is_not_consumed(self):
        assert [number(1.5), symbol("e")] == list(reader.read_str("1.5e").value)

    def test_digits_followed_by_symbol(self):
        assert [number(12), symbol("abc")] == list(reader.read_str("12abc").value)

    def test_converter_receives_matched_text(self):
        seen = []

        def number_reader(s: str):
            seen.append(s)
            return s

        forms = reader.read_str("(1 2.50 3.0e10)", number_reader=number_reader)
        assert ["1", "2.50", "3.0e10"] == seen
        assert l(number("1"), number("2.50"), number("3.0e10")) == forms.value[0]

    def test_conversion_failure(self):
        ctx = reader.ReaderContext(number_reader=reject_numbers)
        with pytest.raises(ParseError) as e:
            ctx.atom.parse(Source.of("  12").skip_whitespace())

        assert_parse_error(e, Expected("a number"), (1, 2))
        assert isinstance(e.value.__cause__, ValueError)

    def test_conversion_failure_reports_last_alternative(self):
        with pytest.raises(ParseError) as e:
            reader.read_str("12", number_reader=reject_numbers)

        assert_parse_error(e, Expected("("), (1, 0))

    def test_arithmetic_error_is_conversion_failure(self):
        def divide(s: str):
            return 1 / (int(s) - 12)

        with pytest.raises(ParseError) as e:
            reader.ReaderContext(number_reader=divide).atom.parse(Source.of("12"))

        assert_parse_error(e, Expected("a number"), (1, 0))
        assert isinstance(e.value.__cause__, ZeroDivisionError)

    def test_digit_led_token_is_never_a_symbol(self):
        with pytest.raises(ParseError) as e:
            reader.ReaderContext(number_reader=reject_numbers).atom.parse(
                Source.of("1abc")
            )

        assert_parse_error(e, Expected("a number"), (1, 0))

    def test_out_of_range_float(self):
        with pytest.raises(ParseError) as e:
            reader.ReaderContext().atom.parse(Source.of("1.0e999"))

        assert_parse_error(e, Expected("a number"), (1, 0))


class TestList:
    def test_single_item(self):
        assert l(symbol("a")) == read_str_first("(a)")

    def test_whitespace_inside_parens(self):
        f = read_str_first("(  a   b  )")
        assert l(symbol("a"), symbol("b")) == f
        assert span((1, 0), (1, 11)) == f.span

    def test_nested(self):
        assert l(l(l(symbol("a")))) == read_str_first("(((a)))")

    def test_items_need_not_be_separated(self):
        assert l(symbol("f"), l(symbol("x")), number(1)) == read_str_first("(f(x)1)")

    def test_empty_list_is_rejected(self):
        with pytest.raises(ParseError) as e:
            reader.read_str("()")

        assert_parse_error(e, Expected("("), (1, 1))

    def test_unmatched_close(self):
        with pytest.raises(ParseError) as e:
            reader.read_str(")")

        assert_parse_error(e, Expected("("), (1, 0))

    def test_wrong_closing_bracket(self):
        with pytest.raises(ParseError) as e:
            reader.read_str("(a]")

        assert_parse_error(e, Expected(")"), (1, 2))

    @pytest.mark.parametrize(
        "s,position",
        [
            ("(", (1, 1)),
            ("(a", (1, 2)),
            ("(a ", (1, 3)),
            ("(a\n", (2, 0)),
            ("((a)", (1, 4)),
        ],
    )
    def test_unexpected_eof(self, s: str, position: tuple[int, int]):
        with pytest.raises(ParseError) as e:
            reader.read_str(s)

        assert e.value.is_eof
        assert_parse_error(e, EOF, position)

    def test_unclosed_inner_list_reports_missing_close(self):
        with pytest.raises(ParseError) as e:
            reader.read_str("(a (b")

        assert not e.value.is_eof
        assert_parse_error(e, Expected(")"), (1, 3))


class TestTopLevel:
    def test_many_forms(self):
        forms = reader.read_str("a (b)\nc")
        assert [symbol("a"), l(symbol("b")), symbol("c")] == list(forms.value)
        assert span((2, 0), (2, 1)) == forms.value[2].span
        assert span((1, 0), (2, 1)) == forms.span

    def test_leading_whitespace_is_skipped(self):
        forms = reader.read_str(" \n  a")
        assert [symbol("a")] == list(forms.value)
        assert span((2, 2), (2, 3)) == forms.span

    @pytest.mark.parametrize("s,position", [("", (1, 0)), ("  ", (1, 2)), ("\n", (2, 0))])
    def test_no_forms(self, s: str, position: tuple[int, int]):
        with pytest.raises(ParseError) as e:
            reader.read_str(s)

        assert_parse_error(e, EOF, position)

    def test_trailing_input_is_ignored(self):
        assert [symbol("a"), symbol("b")] == list(reader.read_str("a b )c").value)

    def test_unclosed_list_after_forms_ends_input(self):
        assert [symbol("a")] == list(reader.read_str("a (b").value)
        assert [l(symbol("a"))] == list(reader.read_str("(a) (").value)

    def test_unclosed_list_after_forms_is_rejected(self):
        with pytest.raises(ParseError) as e:
            reader.read_str("a (b", allow_trailing=False)

        assert_parse_error(e, Expected("end of input"), (1, 2))

    def test_trailing_input_is_rejected(self):
        with pytest.raises(ParseError) as e:
            reader.read_str("a b )c", allow_trailing=False)

        assert_parse_error(e, Expected("end of input"), (1, 4))

    def test_trailing_whitespace_is_allowed(self):
        assert [symbol("a")] == list(
            reader.read_str("a \n", allow_trailing=False).value
        )

    def test_embedded_form_parser(self):
        result = reader.ReaderContext().form.parse(Source.of("(a) b"))
        assert l(symbol("a")) == result.value
        assert " b" == result.next.remaining


class TestReadStream:
    def test_read_stream(self):
        with io.BytesIO("(λ 1)".encode("utf-8")) as stream:
            forms = reader.read_stream(stream)

        assert [l(symbol("λ"), number(1))] == list(forms.value)
        assert span((1, 0), (1, 6)) == forms.span

    def test_read_chunks(self):
        data = "(a\r\nb)".encode("utf-8")
        forms = reader.read_stream([data[:3], data[3:]])
        assert span((2, 0), (2, 1)) == forms.value[0].items[1].span

    def test_invalid_utf8(self):
        with pytest.raises(EncodingError):
            reader.read_stream(io.BytesIO(b"(a \xff)"))

    def test_truncated_utf8(self):
        with pytest.raises(TruncatedSequenceError):
            reader.read_stream(io.BytesIO(b"(a \xce"))


class TestReadFile:
    @pytest.fixture
    def source_file(self, tmp_path: Path) -> Path:
        return tmp_path / "reader_test.tr"

    def test_read_file(self, source_file: Path):
        source_file.write_bytes("(add 1\n  (mul λ 2))\n".encode("utf-8"))
        forms = reader.read_file(str(source_file))
        assert [
            l(symbol("add"), number(1), l(symbol("mul"), symbol("λ"), number(2)))
        ] == list(forms.value)

    def test_error_names_file(self, source_file: Path):
        source_file.write_text("(a")

        with pytest.raises(ParseError) as e:
            reader.read_file(str(source_file))

        assert str(source_file) == e.value.filename
        assert f"unexpected end of input (file: {source_file}, line: 1, col: 2)" == str(
            e.value
        )

    def test_format_error_with_source_context(self, source_file: Path):
        source_file.write_text("(a")

        with pytest.raises(ParseError) as e:
            reader.read_file(str(source_file))

        assert [
            os.linesep,
            f"  exception: <class 'tryst.lang.combinators.ParseError'>{os.linesep}",
            f"    message: unexpected end of input{os.linesep}",
            f"   location: {source_file}:1:2{os.linesep}",
            f"    context:{os.linesep}",
            os.linesep,
            f" 1 > | (a{os.linesep}",
        ] == format_exception(e.value, disable_color=True)

    def test_format_error_with_unicode_line_separators(self, source_file: Path):
        source_file.write_bytes("(a\u2028b\u2028c\n".encode("utf-8"))

        with pytest.raises(ParseError) as e:
            reader.read_file(str(source_file))

        assert e.value.is_eof
        assert Position(4, 0) == e.value.position
        assert [
            f"   location: {source_file}:4:0{os.linesep}",
            f"    context:{os.linesep}",
            os.linesep,
            f" 1   | (a{os.linesep}",
            f" 2   | b{os.linesep}",
            f" 3   | c{os.linesep}",
            f" 4 > | {os.linesep}",
        ] == format_exception(e.value, disable_color=True)[3:]


def test_format_error_without_file():
    with pytest.raises(ParseError) as e:
        reader.read_str("(add 1")

    assert [
        os.linesep,
        f"  exception: <class 'tryst.lang.combinators.ParseError'>{os.linesep}",
        f"    message: unexpected end of input{os.linesep}",
        f"       line: 1:6{os.linesep}",
    ] == format_exception(e.value)
