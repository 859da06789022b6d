"""Exception types raised across the evaluation bridge."""

from __future__ import annotations


class PathResolutionError(ValueError):
    """A directory could not be determined or a path could not be normalized."""


class ContextResolutionError(LookupError):
    """A reserved binding was missing when it was looked up."""


class TypeMismatchError(TypeError):
    """An opaque value was downcast against the wrong type."""


class UnknownKeyError(KeyError):
    """A state lookup used a key outside the declared key set."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"invalid state key: '{self.key}'"


class BorrowError(RuntimeError):
    """An opaque value was borrowed while an exclusive view was outstanding."""


class ScriptError(Exception):
    """A user-visible failure raised while evaluating a config script."""

    def __init__(self, message: str, *, code: str = "OXENV", label: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.label = label

    def __str__(self) -> str:
        if self.label:
            return f"[{self.code}] {self.label}: {self.message}"
        return f"[{self.code}] {self.message}"
