import decimal
import math
import re
from typing import Any, Callable, Union

NumberReader = Callable[[str], Any]

integer_literal = re.compile(r"[0-9]+")


def number_from_str(s: str) -> Union[int, float]:
    """Convert numeric literal text into a Python number.

    Text consisting only of digits becomes an `int` of any length; anything else is
    read as a `float`. Raise `ValueError` if the text is not a number or if the
    value is too large to be represented as a finite float."""
    if integer_literal.fullmatch(s) is not None:
        # int(s) refuses more digits than sys.get_int_max_str_digits(); going
        # through Decimal does not.
        return int(decimal.Decimal(s))

    v = float(s)
    if not math.isfinite(v):
        raise ValueError(f"Numeric literal out of range: {s}")
    return v
