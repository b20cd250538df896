import decimal
import functools
import numbers
from collections.abc import Iterable
from typing import Any, Optional, Union

import attr
from pyrsistent import PVector, pvector

from tryst.lang.position import Span


@attr.frozen
class Symbol:
    name: str

    def __str__(self):
        return self.name


@attr.frozen
class Number:
    """A numeric literal.

    `value` is whatever the numeric-literal converter produced for the literal
    text; the reader places no constraints on it."""

    value: Any

    def __str__(self):
        return str(self.value)


Atom = Union[Symbol, Number]


@attr.frozen
class AtomForm:
    atom: Atom
    span: Optional[Span] = attr.field(default=None, eq=False)


@attr.frozen
class ListForm:
    items: PVector = attr.field(converter=pvector)
    span: Optional[Span] = attr.field(default=None, eq=False)

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.items)


Form = Union[AtomForm, ListForm]


def symbol(name: str, span: Optional[Span] = None) -> AtomForm:
    """Create a new symbol form."""
    return AtomForm(Symbol(name), span=span)


def number(value: Any, span: Optional[Span] = None) -> AtomForm:
    """Create a new number form."""
    return AtomForm(Number(value), span=span)


def l(*items: Form, span: Optional[Span] = None) -> ListForm:
    """Create a new list form from the given items."""
    return ListForm(items, span=span)


def list_from(items: Iterable[Form], span: Optional[Span] = None) -> ListForm:
    return ListForm(items, span=span)


@functools.singledispatch
def lrepr(o: Any) -> str:
    """Return the readable representation of a form, such that reading the
    returned string produces an equal form (ignoring spans)."""
    raise TypeError(f"Cannot print object of type {type(o)}")


@lrepr.register(AtomForm)
def _lrepr_atom_form(o: AtomForm) -> str:
    return lrepr(o.atom)


@lrepr.register(Symbol)
def _lrepr_symbol(o: Symbol) -> str:
    return o.name


@lrepr.register(Number)
def _lrepr_number(o: Number) -> str:
    if isinstance(o.value, int) and not isinstance(o.value, bool):
        # Decimal formatting is not subject to the int digit limit.
        return str(decimal.Decimal(o.value))
    if isinstance(o.value, numbers.Number):
        return str(o.value)
    return repr(o.value)


@lrepr.register(ListForm)
def _lrepr_list_form(o: ListForm) -> str:
    return f"({' '.join(lrepr(item) for item in o.items)})"
