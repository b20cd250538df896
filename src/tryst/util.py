import contextlib
import time
from typing import Callable, Generic, Optional, TypeVar


@contextlib.contextmanager
def timed(f: Optional[Callable[[int], None]] = None):
    """Time the execution of code in the with-block, calling the function
    f (if it is given) with the resulting time in nanoseconds.

    The time is reported even if the block raises."""
    start = time.perf_counter()
    try:
        yield
    finally:
        end = time.perf_counter()
        if f:
            ns = int((end - start) * 1_000_000_000)
            f(ns)


T = TypeVar("T")


class Maybe(Generic[T]):
    """Wrapper around a value which may be `None`.

    Only `None` counts as absent; falsey values such as `0` are present."""

    __slots__ = ("_inner",)

    def __init__(self, inner: Optional[T]) -> None:
        self._inner = inner

    def __eq__(self, other):
        if isinstance(other, Maybe):
            return self._inner == other.value
        return self._inner == other

    def __repr__(self):
        return repr(self._inner)

    def or_else_get(self, else_v: T) -> T:
        if self._inner is None:
            return else_v
        return self._inner

    @property
    def value(self) -> Optional[T]:
        return self._inner
