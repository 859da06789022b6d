"""Built-in functions exposed to config scripts."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from .bridge import downcast_mut, downcast_ref, get_context
from .context import ExecutionContext
from .errors import PathResolutionError, ScriptError, TypeMismatchError

if TYPE_CHECKING:
    from .environment import TypeValues


def print_(type_values: TypeValues, *args: Any) -> None:
    """print(*args)"""
    try:
        with downcast_ref(get_context(type_values), ExecutionContext) as context:
            line = " ".join(str(arg) for arg in args)
            context.logger.warning("%s", line, extra={"config_path": str(context.config_path)})
    except TypeMismatchError as exc:
        raise ScriptError(str(exc), label="print()") from exc


def set_build_path(type_values: TypeValues, path: str | os.PathLike[str]) -> None:
    """set_build_path(path)"""
    if not isinstance(path, (str, os.PathLike)):
        raise ScriptError(
            f"expected a path string, got {type(path).__name__}",
            code="OXENV_BUILD",
            label="set_build_path()",
        )

    try:
        with downcast_mut(get_context(type_values), ExecutionContext) as context:
            context.set_build_path(path)
    except (PathResolutionError, TypeMismatchError) as exc:
        raise ScriptError(str(exc), code="OXENV_BUILD", label="set_build_path()") from exc

