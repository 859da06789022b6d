"""Generic build-target dialect: named, lazily resolved targets."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, Field

from .bridge import downcast_mut, downcast_ref, wrap
from .errors import ScriptError
from .state import StateAccessor, read_build_state

if TYPE_CHECKING:
    from .environment import Environment, TypeValues

logger = logging.getLogger(__name__)

BUILD_TARGETS_CONTEXT = "BUILD_TARGETS_CONTEXT"


class Target(BaseModel):
    """A registered target and, once resolved, its value."""

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    name: str
    fn: Callable[..., Any]
    depends: list[str] = Field(default_factory=list)
    resolved: bool = False
    value: Any = None


class TargetsContext:
    """Target registry for one evaluation."""

    TYPE: ClassVar[str] = "BuildTargets"

    def __init__(
        self,
        logger: logging.Logger,
        resolve_targets: list[str] | None = None,
        build_script_mode: bool = False,
    ) -> None:
        self.logger = logger
        self.resolve_targets = resolve_targets
        self.build_script_mode = build_script_mode
        self.targets: dict[str, Target] = {}
        self.default_target: str | None = None
        self.default_build_script_target: str | None = None

    def register(
        self,
        name: str,
        fn: Callable[..., Any],
        depends: list[str] | None = None,
        default: bool = False,
        default_build_script: bool = False,
    ) -> None:
        """Register (or replace) a target."""
        logger.debug("Registering target '%s'", name)
        self.targets[name] = Target(name=name, fn=fn, depends=list(depends or []))

        if default or self.default_target is None:
            self.default_target = name
        if default_build_script or self.default_build_script_target is None:
            self.default_build_script_target = name

    def get(self, name: str) -> Target:
        try:
            return self.targets[name]
        except KeyError:
            raise ScriptError(f"target '{name}' does not exist", label="resolve_target()") from None

    def mark_resolved(self, name: str, value: Any) -> None:
        self.targets[name] = self.targets[name].model_copy(update={"resolved": True, "value": value})

    def targets_to_resolve(self) -> list[str]:
        """Target names the host should resolve after evaluation."""
        if self.resolve_targets is not None:
            return list(self.resolve_targets)
        if self.build_script_mode:
            target = self.default_build_script_target
        else:
            target = self.default_target
        return [target] if target is not None else []

    def __repr__(self) -> str:
        return f"TargetsContext(targets={list(self.targets)}, default={self.default_target})"


def _targets_value(type_values: TypeValues) -> Any:
    return type_values.get_type_value(TargetsContext.TYPE, BUILD_TARGETS_CONTEXT)


def _resolve(type_values: TypeValues, name: str, resolving: set[str]) -> Any:
    value = _targets_value(type_values)
    with downcast_ref(value, TargetsContext) as ctx:
        target = ctx.get(name)

    if target.resolved:
        return target.value
    if name in resolving:
        raise ScriptError(f"circular dependency on target '{name}'", label="resolve_target()")
    resolving.add(name)

    args = [_resolve(type_values, dep, resolving) for dep in target.depends]

    # the registry must not be borrowed while target code runs; it may
    # register or resolve further targets
    logger.debug("Resolving target '%s'", name)
    result = target.fn(*args)

    with downcast_mut(value, TargetsContext) as ctx:
        ctx.mark_resolved(name, result)

    resolving.discard(name)
    return result


def register_target(
    type_values: TypeValues,
    name: str,
    fn: Callable[..., Any],
    depends: list[str] | None = None,
    default: bool = False,
    default_build_script: bool = False,
) -> None:
    """register_target(name, fn, depends=None, default=False, default_build_script=False)"""
    if not isinstance(name, str):
        raise ScriptError("target name must be a string", label="register_target()")
    if not callable(fn):
        raise ScriptError(f"target '{name}' is not callable", label="register_target()")

    with downcast_mut(_targets_value(type_values), TargetsContext) as ctx:
        ctx.register(name, fn, depends, default=default, default_build_script=default_build_script)


def resolve_target(type_values: TypeValues, name: str) -> Any:
    """resolve_target(name)"""
    return _resolve(type_values, name, set())


def resolve_targets(type_values: TypeValues) -> list[Any]:
    """resolve_targets()"""
    with downcast_ref(_targets_value(type_values), TargetsContext) as ctx:
        names = ctx.targets_to_resolve()
    return [resolve_target(type_values, name) for name in names]


def build_target(type_values: TypeValues, name: str, state: StateAccessor) -> Any:
    """Resolve a target and build it against the given build state.

    Values exposing a build(state) method are built; anything else is
    returned as resolved.
    """
    value = resolve_target(type_values, name)
    build = getattr(value, "build", None)
    if not callable(build):
        return value

    info = read_build_state(state)
    logger.info("Building target '%s' for %s in %s", name, info.target_triple, info.output_path)
    return build(state)


def populate_environment(env: Environment, type_values: TypeValues, context: TargetsContext) -> None:
    """Register the dialect's environment context."""
    value = wrap(context)
    env.set(BUILD_TARGETS_CONTEXT, value)
    type_values.add_type_value(TargetsContext.TYPE, BUILD_TARGETS_CONTEXT, value)


def build_targets_module(env: Environment, type_values: TypeValues) -> None:
    """Register the dialect's built-ins."""
    for fn in (register_target, resolve_target, resolve_targets):
        env.set(fn.__name__, functools.partial(fn, type_values))
