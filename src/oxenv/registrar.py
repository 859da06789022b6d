"""Assembly of the global environment config scripts run in."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from .bridge import CONTEXT_NAME, CONTEXT_TYPE, wrap
from .context import ExecutionContext
from .environment import Environment, TypeValues
from .functions import print_, set_build_path
from .targets import TargetsContext, build_targets_module, populate_environment

logger = logging.getLogger(__name__)

# registers extra globals; called with (env, type_values)
EnvironmentModule = Callable[[Environment, TypeValues], None]


@dataclass(frozen=True)
class Binding:
    """A global produced from the live context.

    Aliased bindings are also published on the CONTEXT_TYPE attribute surface
    so code holding only the TypeValues can reach them.
    """

    name: str
    value: Callable[[ExecutionContext, TypeValues], Any]
    alias: bool = False


_BUILTINS: tuple[Binding, ...] = (
    Binding("print", lambda ctx, tv: functools.partial(print_, tv)),
    Binding("set_build_path", lambda ctx, tv: functools.partial(set_build_path, tv), alias=True),
)

_CONSTANTS: tuple[Binding, ...] = (
    Binding("CWD", lambda ctx, tv: str(ctx.cwd), alias=True),
    Binding("CONFIG_PATH", lambda ctx, tv: str(ctx.config_path), alias=True),
    Binding("BUILD_TARGET_TRIPLE", lambda ctx, tv: ctx.target_triple, alias=True),
    Binding(CONTEXT_NAME, lambda ctx, tv: wrap(ctx), alias=True),
)


def _bind(
    env: Environment,
    type_values: TypeValues,
    context: ExecutionContext,
    bindings: Iterable[Binding],
) -> None:
    for binding in bindings:
        value = binding.value(context, type_values)
        env.set(binding.name, value)
        if binding.alias:
            type_values.add_type_value(CONTEXT_TYPE, binding.name, value)
        logger.debug("Bound global '%s'%s", binding.name, " (aliased)" if binding.alias else "")


def global_environment(
    context: ExecutionContext,
    resolve_targets: list[str] | None = None,
    build_script_mode: bool = False,
    modules: Iterable[EnvironmentModule] = (),
) -> tuple[Environment, TypeValues]:
    """Build the environment for evaluating a config against context."""
    targets_context = TargetsContext(
        context.logger,
        resolve_targets=resolve_targets,
        build_script_mode=build_script_mode,
    )

    env = Environment()
    type_values = TypeValues()

    populate_environment(env, type_values, targets_context)
    build_targets_module(env, type_values)

    _bind(env, type_values, context, _BUILTINS)

    for module in modules:
        module(env, type_values)

    # constants and the context handle take precedence over module globals
    _bind(env, type_values, context, _CONSTANTS)

    return env, type_values
