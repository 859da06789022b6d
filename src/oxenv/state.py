"""Read capability over build metadata, independent of the concrete context."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

# keys consumed by the generic build-target built-ins, per key space
BUILD_STATE_KEYS: dict[str, tuple[str, ...]] = {
    "string": ("host_triple", "target_triple", "opt_level"),
    "bool": ("release",),
    "path": ("output_path",),
}


@runtime_checkable
class StateAccessor(Protocol):
    """Anything offering string, bool and path lookups over declared keys.

    Each lookup raises UnknownKeyError for a key outside its declared set.
    """

    def get_state_string(self, key: str) -> str: ...

    def get_state_bool(self, key: str) -> bool: ...

    def get_state_path(self, key: str) -> Path: ...


class BuildState(BaseModel):
    """Snapshot of the build metadata visible through a StateAccessor."""

    host_triple: str
    target_triple: str
    opt_level: str
    release: bool
    output_path: Path


def read_build_state(state: StateAccessor) -> BuildState:
    """Read every declared build key through the accessor."""
    values: dict[str, object] = {}
    for key in BUILD_STATE_KEYS["string"]:
        values[key] = state.get_state_string(key)
    for key in BUILD_STATE_KEYS["bool"]:
        values[key] = state.get_state_bool(key)
    for key in BUILD_STATE_KEYS["path"]:
        values[key] = state.get_state_path(key)
    return BuildState(**values)
