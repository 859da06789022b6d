"""Evaluate config files and hand the result to the build pipeline."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .bridge import downcast_ref
from .context import HOST_TRIPLE, ExecutionContext
from .distribution import DistributionCache
from .environment import SCRIPT_ERRORS, Environment, TypeValues
from .errors import ScriptError
from .registrar import EnvironmentModule, global_environment
from .targets import BUILD_TARGETS_CONTEXT, TargetsContext, resolve_target

logger = logging.getLogger(__name__)


@dataclass
class EvaluationResult:
    """Final state of an evaluated config."""

    context: ExecutionContext
    env: Environment
    type_values: TypeValues
    value: Any = None
    resolved: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, name: str) -> Any:
        """Return a resolved target value."""
        return self.resolved[name]


def evaluate_config(
    context: ExecutionContext,
    source: str,
    *,
    filename: str = "<config>",
    resolve_targets: list[str] | None = None,
    build_script_mode: bool = False,
    modules: Iterable[EnvironmentModule] = (),
) -> EvaluationResult:
    """Evaluate source against context and resolve the requested targets."""
    env, type_values = global_environment(
        context,
        resolve_targets=resolve_targets,
        build_script_mode=build_script_mode,
        modules=modules,
    )

    value = env.evaluate(source, filename=filename)
    env.freeze()

    with downcast_ref(env.lookup(BUILD_TARGETS_CONTEXT), TargetsContext) as targets:
        names = targets.targets_to_resolve()

    logger.debug("Resolving %d target(s) from %s", len(names), filename)
    try:
        resolved = {name: resolve_target(type_values, name) for name in names}
    except SCRIPT_ERRORS as exc:
        raise ScriptError(str(exc), code="OXENV_EVAL", label=filename) from exc

    return EvaluationResult(
        context=context,
        env=env,
        type_values=type_values,
        value=value,
        resolved=resolved,
    )


def evaluate_file(
    logger: logging.Logger,
    config_path: str | os.PathLike[str],
    *,
    host_triple: str = HOST_TRIPLE,
    target_triple: str | None = None,
    release: bool = False,
    opt_level: str = "0",
    verbose: bool = False,
    distribution_cache: DistributionCache | None = None,
    resolve_targets: list[str] | None = None,
    build_script_mode: bool = False,
    modules: Iterable[EnvironmentModule] = (),
) -> EvaluationResult:
    """Load the config file at config_path and evaluate it."""
    config_path = Path(config_path)
    context = ExecutionContext.create(
        logger,
        verbose,
        config_path,
        host_triple,
        target_triple or host_triple,
        release,
        opt_level,
        distribution_cache,
    )
    source = config_path.read_text()
    return evaluate_config(
        context,
        source,
        filename=str(config_path),
        resolve_targets=resolve_targets,
        build_script_mode=build_script_mode,
        modules=modules,
    )
