"""Script environment: global bindings, type attributes and evaluation."""

from __future__ import annotations

import ast
import builtins
import logging
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

from .bridge import OpaqueValue
from .errors import ContextResolutionError, ScriptError

logger = logging.getLogger(__name__)

_BUILTINS_KEY = "__builtins__"

# ordinary runtime failures of script code, reported as script errors
SCRIPT_ERRORS = (
    AttributeError,
    IndexError,
    KeyError,
    NameError,
    TypeError,
    ValueError,
    ZeroDivisionError,
)


def _fail(*args: Any) -> None:
    """fail(*args) -- abort evaluation with a message."""
    raise ScriptError(" ".join(str(arg) for arg in args), code="fail")


def _type(value: Any) -> str:
    if isinstance(value, OpaqueValue):
        return value.type_name
    return type(value).__name__


# attributes leading from script values to frames, code, partial internals or
# format-string field access
_BLOCKED_ATTRS = frozenset(
    {
        "ag_await",
        "ag_code",
        "ag_frame",
        "args",
        "cr_await",
        "cr_code",
        "cr_frame",
        "f_back",
        "f_builtins",
        "f_code",
        "f_globals",
        "f_locals",
        "format",
        "format_map",
        "func",
        "gi_code",
        "gi_frame",
        "gi_yieldfrom",
        "keywords",
        "tb_frame",
        "tb_next",
    }
)


def _is_private(name: str) -> bool:
    return name.startswith("_") or name in _BLOCKED_ATTRS


def _check_attr(name: str) -> None:
    if _is_private(name):
        raise ScriptError(f"attribute '{name}' is not accessible", label="getattr()")


_MISSING = object()


def _getattr(value: Any, name: str, default: Any = _MISSING) -> Any:
    _check_attr(name)
    if default is _MISSING:
        return getattr(value, name)
    return getattr(value, name, default)


def _hasattr(value: Any, name: str) -> bool:
    _check_attr(name)
    return hasattr(value, name)


_SAFE_BUILTINS = (
    "abs",
    "all",
    "any",
    "bool",
    "dict",
    "enumerate",
    "float",
    "int",
    "len",
    "list",
    "max",
    "min",
    "range",
    "repr",
    "reversed",
    "sorted",
    "str",
    "tuple",
    "zip",
)

BASE_BUILTINS: Mapping[str, Any] = MappingProxyType(
    {name: getattr(builtins, name) for name in _SAFE_BUILTINS}
    | {
        "fail": _fail,
        "getattr": _getattr,
        "hasattr": _hasattr,
        "type": _type,
    }
)


class _ScriptChecker(ast.NodeVisitor):
    """Reject syntax outside the config dialect."""

    def __init__(self, filename: str) -> None:
        self.filename = filename

    def _reject(self, node: ast.AST, message: str) -> None:
        line = getattr(node, "lineno", "?")
        raise ScriptError(f"{message} (line {line})", code="OXENV_SYNTAX", label=self.filename)

    def visit_Import(self, node: ast.AST) -> None:
        self._reject(node, "import statements are not allowed")

    visit_ImportFrom = visit_Import

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if _is_private(node.attr):
            self._reject(node, f"attribute '{node.attr}' is not accessible")
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("__"):
            self._reject(node, f"name '{node.id}' is not accessible")


class TypeValues:
    """Attribute surface mapping (type name, attribute) to values.

    Native code holding only this surface can still reach globals that were
    published onto it.
    """

    def __init__(self) -> None:
        self._values: dict[str, dict[str, Any]] = {}

    def add_type_value(self, type_name: str, name: str, value: Any) -> None:
        self._values.setdefault(type_name, {})[name] = value

    def get_type_value(self, type_name: str, name: str) -> Any:
        try:
            return self._values[type_name][name]
        except KeyError:
            raise ContextResolutionError(
                f"unable to resolve {type_name}.{name} (this should never happen)"
            ) from None

    def has_type_value(self, type_name: str, name: str) -> bool:
        return name in self._values.get(type_name, {})

    def names(self, type_name: str) -> list[str]:
        return list(self._values.get(type_name, {}))

    def __repr__(self) -> str:
        types = ", ".join(f"{t}={len(v)}" for t, v in self._values.items())
        return f"TypeValues({types})"


class Environment(Mapping[str, Any]):
    """Global bindings a config script is evaluated against."""

    def __init__(self, name: str = "global", builtins: Mapping[str, Any] | None = None) -> None:
        self.name = name
        self._frozen = False
        self._globals: dict[str, Any] = {
            _BUILTINS_KEY: dict(BASE_BUILTINS if builtins is None else builtins)
        }

    @property
    def builtins(self) -> Mapping[str, Any]:
        """The base built-ins layer."""
        return MappingProxyType(self._globals[_BUILTINS_KEY])

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Refuse any further writes to this environment."""
        self._frozen = True

    def set(self, name: str, value: Any) -> None:
        if self._frozen:
            raise RuntimeError(f"cannot set '{name}'; environment '{self.name}' is frozen")
        if name == _BUILTINS_KEY:
            raise ValueError(f"'{name}' is reserved")
        self._globals[name] = value

    def lookup(self, name: str) -> Any:
        """Return the binding for name; a missing name is an assembly defect."""
        try:
            return self[name]
        except KeyError:
            raise ContextResolutionError(f"global '{name}' is not defined in '{self.name}'") from None

    def evaluate(self, source: str, filename: str = "<config>") -> Any:
        """Execute source against this environment.

        Top-level bindings created by the script are kept. When the final
        statement is an expression, its value is returned.
        """
        if self._frozen:
            raise RuntimeError(f"environment '{self.name}' is frozen")

        try:
            tree = ast.parse(source, filename=filename)
        except SyntaxError as exc:
            raise ScriptError(
                f"{exc.msg} (line {exc.lineno})", code="OXENV_SYNTAX", label=filename
            ) from exc

        _ScriptChecker(filename).visit(tree)

        result: ast.Expression | None = None
        if tree.body and isinstance(tree.body[-1], ast.Expr):
            result = ast.Expression(tree.body.pop().value)

        logger.debug("Evaluating %s in environment '%s'", filename, self.name)
        try:
            exec(compile(tree, filename, "exec"), self._globals)
            if result is None:
                return None
            return eval(compile(result, filename, "eval"), self._globals)
        except SCRIPT_ERRORS as exc:
            raise ScriptError(str(exc), code="OXENV_EVAL", label=filename) from exc

    def __getitem__(self, name: str) -> Any:
        if name == _BUILTINS_KEY:
            raise KeyError(name)
        return self._globals[name]

    def __iter__(self) -> Iterator[str]:
        return (name for name in self._globals if name != _BUILTINS_KEY)

    def __len__(self) -> int:
        return len(self._globals) - 1

    def __repr__(self) -> str:
        return f"Environment(name={self.name}, bindings={len(self)}, frozen={self._frozen})"
