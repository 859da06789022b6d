"""Opaque handles exchanged between native code and config scripts."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, TypeVar
from weakref import WeakKeyDictionary

from .errors import BorrowError, TypeMismatchError

if TYPE_CHECKING:
    from .environment import TypeValues

T = TypeVar("T")

# type tag for the attribute surface holding this package's globals
CONTEXT_TYPE = "Oxenv"

CONTEXT_NAME = "CONTEXT"

# entities live beside their handles, never on them
_entities: WeakKeyDictionary[OpaqueValue, Any] = WeakKeyDictionary()


class OpaqueValue:
    """A native entity tagged with a declared type name.

    Scripts can pass the value around but never reach the entity; it is only
    handed out through downcast_ref() and downcast_mut().
    """

    __slots__ = ("_type_name", "_shared", "_exclusive", "__weakref__")

    def __init__(self, entity: Any, type_name: str) -> None:
        self._type_name = type_name
        _entities[self] = entity
        self._shared = 0
        self._exclusive = False

    @property
    def type_name(self) -> str:
        return self._type_name

    @property
    def borrow_state(self) -> str:
        if self._exclusive:
            return "exclusive"
        if self._shared:
            return "shared"
        return "unborrowed"

    def __repr__(self) -> str:
        return f"<{self._type_name}>"

    __str__ = __repr__


def wrap(entity: Any, type_name: str | None = None) -> OpaqueValue:
    """Wrap entity under its declared TYPE (or an explicit type_name)."""
    if type_name is None:
        type_name = getattr(type(entity), "TYPE", None)
        if not isinstance(type_name, str):
            raise TypeError(f"{type(entity).__name__} does not declare a TYPE")
    return OpaqueValue(entity, type_name)


def _check(value: Any, cls: type[T]) -> T:
    expected = getattr(cls, "TYPE", cls.__name__)
    if not isinstance(value, OpaqueValue):
        raise TypeMismatchError(f"expected {expected}, got {type(value).__name__}")
    entity = _entities.get(value)
    if value.type_name != expected or not isinstance(entity, cls):
        raise TypeMismatchError(f"expected {expected}, got {value.type_name}")
    return entity


@contextmanager
def downcast_ref(value: Any, cls: type[T]) -> Iterator[T]:
    """Borrow a shared view of the entity behind value."""
    entity = _check(value, cls)
    if value._exclusive:
        raise BorrowError(f"{value.type_name} is already mutably borrowed")

    value._shared += 1
    try:
        yield entity
    finally:
        value._shared -= 1


@contextmanager
def downcast_mut(value: Any, cls: type[T]) -> Iterator[T]:
    """Borrow an exclusive view of the entity behind value."""
    entity = _check(value, cls)
    if value._exclusive:
        raise BorrowError(f"{value.type_name} is already mutably borrowed")
    if value._shared:
        raise BorrowError(f"{value.type_name} is already borrowed")

    value._exclusive = True
    try:
        yield entity
    finally:
        value._exclusive = False


def resolve(type_values: TypeValues, name: str) -> Any:
    """Fetch one of this package's globals from the attribute surface."""
    return type_values.get_type_value(CONTEXT_TYPE, name)


def get_context(type_values: TypeValues) -> Any:
    """Return the wrapped ExecutionContext for the running evaluation."""
    return resolve(type_values, CONTEXT_NAME)
