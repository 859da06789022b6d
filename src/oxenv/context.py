"""Execution state for evaluating a single config file."""

from __future__ import annotations

import logging
import os
import platform
import sys
from pathlib import Path, PurePath
from typing import ClassVar

from pydantic import BaseModel, PrivateAttr, field_validator

from .distribution import DistributionCache
from .errors import PathResolutionError, UnknownKeyError

logger = logging.getLogger(__name__)

DISTRIBUTIONS_DIR = "python_distributions"

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "i686": "i686",
    "x86": "i686",
}


def _host_triple() -> str:
    machine = platform.machine().lower()
    arch = _ARCH_ALIASES.get(machine, machine) or "unknown"
    if sys.platform.startswith("linux"):
        return f"{arch}-unknown-linux-gnu"
    if sys.platform == "darwin":
        return f"{arch}-apple-darwin"
    if sys.platform == "win32":
        return f"{arch}-pc-windows-msvc"
    return f"{arch}-unknown-{sys.platform}"


HOST_TRIPLE = _host_triple()


def normalize_path(path: PurePath) -> Path:
    """Collapse '.' and '..' segments without touching the filesystem.

    A '..' at the root of an anchored path stays at the root.
    """
    text = str(path)
    if "\x00" in text:
        raise PathResolutionError(f"path contains a NUL byte: {text!r}")

    anchor = path.anchor
    parts: list[str] = []
    for part in path.parts[1 if anchor else 0 :]:
        if part == ".":
            continue
        if part == "..":
            if parts:
                parts.pop()
            elif not anchor:
                raise PathResolutionError(f"'{text}' escapes its starting directory")
            continue
        parts.append(part)

    return Path(anchor, *parts)


def resolve_cwd(config_path: Path) -> Path:
    """Return the absolute directory containing config_path."""
    if not config_path.name:
        raise PathResolutionError(f"unable to resolve parent directory of config '{config_path}'")

    parent = config_path.parent
    if parent.is_absolute():
        return parent

    try:
        return Path(os.getcwd()) / parent
    except OSError as exc:
        raise PathResolutionError(f"unable to read current directory: {exc}") from exc


class BuildContext(BaseModel):
    """Build metadata handed to dialect built-ins that produce artifacts."""

    model_config = {"arbitrary_types_allowed": True}

    logger: logging.Logger
    host_triple: str
    target_triple: str
    release: bool = False
    opt_level: str = "0"
    output_path: Path

    def get_state_string(self, key: str) -> str:
        match key:
            case "host_triple":
                return self.host_triple
            case "target_triple":
                return self.target_triple
            case "opt_level":
                return self.opt_level
        raise UnknownKeyError(key)

    def get_state_bool(self, key: str) -> bool:
        if key == "release":
            return self.release
        raise UnknownKeyError(key)

    def get_state_path(self, key: str) -> Path:
        if key == "output_path":
            return self.output_path
        raise UnknownKeyError(key)


class ExecutionContext(BaseModel):
    """Holds state for evaluating a config file."""

    TYPE: ClassVar[str] = "EnvironmentContext"

    model_config = {"arbitrary_types_allowed": True}

    logger: logging.Logger
    verbose: bool = False
    # directory the config is evaluated from; used to resolve relative paths
    cwd: Path
    config_path: Path
    host_triple: str
    target_triple: str
    release: bool = False
    opt_level: str = "0"
    distribution_cache: DistributionCache | None = None

    # (build_path, distribution_path), always replaced as a pair
    _paths: tuple[Path, Path] = PrivateAttr()

    @field_validator("cwd")
    @classmethod
    def _absolute_cwd(cls, value: Path) -> Path:
        if value.is_absolute():
            return value
        return Path(os.getcwd()) / value

    def model_post_init(self, __context: object) -> None:
        self._paths = self._paths_for(self.cwd / "build")
        if self.distribution_cache is None:
            self.distribution_cache = DistributionCache(self.distribution_path)

    @classmethod
    def create(
        cls,
        logger: logging.Logger,
        verbose: bool,
        config_path: str | os.PathLike[str],
        host_triple: str,
        target_triple: str,
        release: bool,
        opt_level: str,
        distribution_cache: DistributionCache | None = None,
    ) -> ExecutionContext:
        """Create a context for the config file at config_path."""
        config_path = Path(config_path)
        cwd = resolve_cwd(config_path)
        ctx = cls(
            logger=logger,
            verbose=verbose,
            cwd=cwd,
            config_path=config_path,
            host_triple=host_triple,
            target_triple=target_triple,
            release=release,
            opt_level=opt_level,
            distribution_cache=distribution_cache,
        )
        logger.debug("Evaluating '%s' from %s (build path %s)", config_path, cwd, ctx.build_path)
        return ctx

    @staticmethod
    def _paths_for(build_path: Path) -> tuple[Path, Path]:
        return build_path, build_path / DISTRIBUTIONS_DIR

    @property
    def build_path(self) -> Path:
        """Base directory for build state."""
        return self._paths[0]

    @property
    def distribution_path(self) -> Path:
        """Directory where Python distributions are written."""
        return self._paths[1]

    def set_build_path(self, path: str | os.PathLike[str]) -> None:
        """Point build state at path, resolved against the working directory."""
        path = Path(path)
        if not path.is_absolute():
            path = self.cwd / path

        self._paths = self._paths_for(normalize_path(path))
        logger.debug("Build path set to %s", self.build_path)

    def build_context(self, output_path: Path | None = None) -> BuildContext:
        """Derive the build metadata for artifacts written to output_path."""
        return BuildContext(
            logger=self.logger,
            host_triple=self.host_triple,
            target_triple=self.target_triple,
            release=self.release,
            opt_level=self.opt_level,
            output_path=output_path if output_path is not None else self.build_path,
        )

    # state reads go through a BuildContext whose output_path is the build path
    def get_state_string(self, key: str) -> str:
        return self.build_context().get_state_string(key)

    def get_state_bool(self, key: str) -> bool:
        return self.build_context().get_state_bool(key)

    def get_state_path(self, key: str) -> Path:
        return self.build_context().get_state_path(key)

    def __repr__(self) -> str:
        return (
            f"ExecutionContext(config_path={self.config_path}, "
            f"target_triple={self.target_triple}, build_path={self.build_path})"
        )
