import enum
from collections.abc import Iterator

import attr

from tryst.lang import utf8 as utf8
from tryst.lang.position import START, Position


class TokenKind(enum.Enum):
    LEFT_PAREN = "("
    RIGHT_PAREN = ")"


_TOKEN_KINDS = {kind.value: kind for kind in TokenKind}


@attr.frozen
class Token:
    kind: TokenKind
    position: Position


@attr.define(repr=False, str=False)
class UnexpectedCharError(Exception):
    char: str
    position: Position

    def __repr__(self):
        return f"tryst.lang.lexer.UnexpectedCharError({self.char!r}, {self.position!r})"

    def __str__(self):
        return (
            f"Character {self.char!r} does not match any token "
            f"(line: {self.position.line}, col: {self.position.col})"
        )


def lex(source: utf8.ByteSource) -> Iterator[Token]:
    """Lazily split the UTF-8 bytes in `source` into parenthesis tokens.

    Whitespace between tokens is skipped. Any other character raises an
    `UnexpectedCharError` naming the character and where it was found. Errors from
    the decoder are raised unchanged. No tokens are produced after an error."""
    pos = START
    for c in utf8.chars(source):
        if (kind := _TOKEN_KINDS.get(c)) is not None:
            yield Token(kind, pos)
        elif not c.isspace():
            raise UnexpectedCharError(c, pos)
        pos = pos.advance(c)
