import itertools
import logging
import os
from collections.abc import Iterable, Sequence
from typing import Optional

import pygments
import pygments.formatters
import pygments.lexers
import pygments.styles

from tryst.lang import utf8 as utf8
from tryst.lang.position import lines as split_lines

logger = logging.getLogger(__name__)


def _get_formatter_name(
    disable_color: Optional[bool] = None,
) -> Optional[str]:  # pragma: no cover
    """Get the Pygments formatter name for formatting the source code by
    inspecting various environment variables set by terminals.

    If `disable_color` is explicitly True or `TRYST_NO_COLOR` is set to a truthy
    value, use no formatting."""
    if (disable_color is True) or os.environ.get(
        "TRYST_NO_COLOR", "false"
    ).lower() in {"1", "true"}:
        return None
    elif os.environ.get("COLORTERM", "") in {"truecolor", "24bit"}:
        return "terminal16m"
    elif "256" in os.environ.get("TERM", ""):
        return "terminal256"
    else:
        return "terminal"


def _format_source(s: str, disable_color: Optional[bool] = None) -> str:
    """Format source code for terminal output.

    If `disable_color` is True, no formatting will be applied to the source code."""
    if (formatter_name := _get_formatter_name(disable_color)) is None:
        return f"{s}{os.linesep}"
    return pygments.highlight(
        s,
        lexer=pygments.lexers.get_lexer_by_name("scheme"),
        formatter=pygments.formatters.get_formatter_by_name(
            formatter_name, style=pygments.styles.get_style_by_name("emacs")
        ),
    )


def _source_lines(filename: str, source: Optional[str]) -> Sequence[str]:
    """Return the lines of `source`, or of the file named by `filename`, split on
    the same line terminators the reader counts."""
    if source is None:
        if filename.startswith("<") and filename.endswith(">"):
            return []
        try:
            with open(filename, mode="rb") as f:
                source = utf8.decode(f.read())
        except (OSError, utf8.DecodeError) as e:
            logger.debug(f"No source context available for '{filename}': {e}")
            return []
    return split_lines(source)


def format_source_context(
    filename: str,
    line: int,
    num_context_lines: int = 5,
    disable_color: Optional[bool] = None,
    source: Optional[str] = None,
) -> list[str]:
    """Format up to `num_context_lines` lines of source code on either side of
    `line`, with line numbers and a marker on `line` itself.

    Lines are taken from `source` if it is given, otherwise from the file named by
    `filename`. Pseudo-filenames such as `<REPL Input>` produce no context unless
    `source` is given.

    If `disable_color` is True, no color formatting will be applied to the source code.
    """
    assert num_context_lines >= 0

    if not (source_lines := _source_lines(filename, source)):
        return []

    selected_lines: Iterable[str]
    if line > len(source_lines):
        # Errors at the end of input may fall on the empty line after the last one.
        end = len(source_lines) + 1
        start = max(end - num_context_lines, 0)
        selected_lines = itertools.chain(source_lines[start:end], itertools.repeat(""))
    else:
        start = max(0, line - num_context_lines)
        end = min(line + num_context_lines, len(source_lines))
        selected_lines = source_lines[start:end]

    lines = []
    num_justify = max(len(str(start)), len(str(end))) + 1
    for n, source_line in zip(range(start, end), selected_lines):
        line_marker = " > " if n + 1 == line else "   "
        line_num = str(n + 1).rjust(num_justify)
        lines.append(
            f"{line_num}{line_marker}| {_format_source(source_line.rstrip(), disable_color=disable_color)}"
        )

    return lines
