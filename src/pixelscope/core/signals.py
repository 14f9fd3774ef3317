"""Observable value cells.

A :class:`Signal` holds one value and calls its listeners synchronously
whenever :meth:`Signal.set` changes it. :class:`Computed` derives a value
from other signals and recomputes on every read.
"""

from __future__ import annotations

from typing import Callable, Generic, List, TypeVar

T = TypeVar("T")


class Signal(Generic[T]):
    def __init__(self, initial: T) -> None:
        self._value = initial
        self._listeners: List[Callable[[T], None]] = []

    def __call__(self) -> T:
        return self._value

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        """Store *value* and notify listeners if it differs from the current one."""
        if value is self._value or value == self._value:
            self._value = value
            return
        self._value = value
        for cb in list(self._listeners):
            cb(value)

    def subscribe(self, cb: Callable[[T], None]) -> None:
        if cb not in self._listeners:
            self._listeners.append(cb)

    def unsubscribe(self, cb: Callable[[T], None]) -> None:
        if cb in self._listeners:
            self._listeners.remove(cb)

    def __repr__(self) -> str:  # pragma: no cover
        return f"Signal({self._value!r})"


class Computed(Generic[T]):
    def __init__(self, fn: Callable[[], T]) -> None:
        self._fn = fn

    def __call__(self) -> T:
        return self._fn()

    def get(self) -> T:
        return self._fn()
