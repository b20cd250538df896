import re

import attr

# CRLF must be tried before the bare CR so the pair counts as one break.
_LINE_BREAK = re.compile("\r\n|[\n\r\x0b\x0c\x85\u2028\u2029]")


def _utf8_width(s: str) -> int:
    return len(s.encode("utf-8", "surrogatepass"))


@attr.frozen(order=True)
class Position:
    """A line and column in source text.

    Lines start at 1. Columns start at 0 and count the UTF-8 byte width of the
    characters read since the last line break, not user-perceived characters.

    `after_cr` records that the text consumed so far ended in a carriage return,
    so that a following line feed is absorbed even if the CRLF pair is split
    across two calls to `advance`. It does not participate in comparisons."""

    line: int = 1
    col: int = 0
    after_cr: bool = attr.field(default=False, eq=False, order=False, repr=False)

    def advance(self, text: str) -> "Position":
        """Return the position reached after consuming `text` from this one."""
        if not text:
            return self

        start = 1 if self.after_cr and text[0] == "\n" else 0
        breaks = 0
        tail_start = start
        for m in _LINE_BREAK.finditer(text, start):
            breaks += 1
            tail_start = m.end()

        width = _utf8_width(text[tail_start:])
        if breaks:
            return Position(self.line + breaks, width, after_cr=text[-1] == "\r")
        return Position(self.line, self.col + width, after_cr=text[-1] == "\r")

    def span(self, text: str) -> "Span":
        """Return the span covering `text` starting at this position."""
        return Span(self, self.advance(text))

    def __str__(self):
        return f"{self.line}:{self.col}"


@attr.frozen(order=True)
class Span:
    """A half-open range of source positions."""

    start: Position
    end: Position = attr.field()

    @end.validator
    def _check_end(self, _, value: Position) -> None:
        if value < self.start:
            raise ValueError(f"Span end {value} precedes start {self.start}")

    def __str__(self):
        return f"{self.start}-{self.end}"


START = Position()


def advance(position: Position, text: str) -> Position:
    return position.advance(text)


def span(position: Position, text: str) -> Span:
    return position.span(text)


def lines(text: str) -> list[str]:
    """Split `text` into lines using the same line terminators as `advance`.

    The terminators themselves are dropped. A trailing terminator does not
    produce an extra empty line."""
    parts = _LINE_BREAK.split(text)
    if len(parts) > 1 and parts[-1] == "":
        parts.pop()
    return parts
