import functools
import os
import sys
import traceback
from collections.abc import Iterable
from types import TracebackType
from typing import Optional

# Width of the right-aligned label column in formatted reader errors, wide enough
# for the longest label ("exception") plus its indent.
_LABEL_WIDTH = 11


def format_fields(fields: Iterable[tuple[str, object]]) -> list[str]:
    """Format `(label, value)` pairs as newline terminated lines with the labels
    right-aligned, preceded by a blank line.

    Values are converted with `str`; a pair whose value is `None` is skipped."""
    lines = [os.linesep]
    for label, value in fields:
        if value is None:
            continue
        lines.append(f"{label:>{_LABEL_WIDTH}}: {value}{os.linesep}")
    return lines


@functools.singledispatch
def format_exception(  # pylint: disable=unused-argument
    e: Optional[BaseException],
    tp: Optional[type[BaseException]] = None,
    tb: Optional[TracebackType] = None,
    disable_color: Optional[bool] = None,
) -> list[str]:
    """Format an exception into a list of newline terminated strings.

    Anything without a registered formatter falls back to
    `traceback.format_exception`. Reader and decoder errors print where in the input
    the problem is instead of a traceback.

    `disable_color` is only meaningful to formatters which print source code."""
    if isinstance(e, BaseException):
        tp = tp or type(e)
        tb = tb or e.__traceback__
    return traceback.format_exception(tp, e, tb)


def print_exception(
    e: Optional[BaseException],
    tp: Optional[type[BaseException]] = None,
    tb: Optional[TracebackType] = None,
) -> None:
    """Write `format_exception(e, tp, tb)` to standard error."""
    print("".join(format_exception(e, tp, tb)), file=sys.stderr)
