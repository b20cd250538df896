from collections.abc import Iterable
from typing import Optional

from tryst.lang import reader as reader
from tryst.lang.form import Form, lrepr
from tryst.lang.numbers import NumberReader


def eval_form(form: Form) -> Form:
    """Evaluate a form.

    Forms currently evaluate to themselves."""
    return form


def eval_forms(forms: Iterable[Form]) -> list[Form]:
    return [eval_form(form) for form in forms]


def rep(
    line: str,
    number_reader: Optional[NumberReader] = None,
    init_line: Optional[int] = None,
) -> str:
    """Read every form in `line`, evaluate each and return their printed
    representations, one per line.

    The whole line must consist of complete forms; anything left over after the
    last form is an error."""
    forms = reader.read_str(
        line, number_reader=number_reader, init_line=init_line, allow_trailing=False
    )
    return "\n".join(lrepr(result) for result in eval_forms(forms.value))
