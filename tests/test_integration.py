"""End-to-end integration test for oxenv."""

from __future__ import annotations

import logging
from pathlib import Path

from oxenv import (
    DistributionCache,
    ExecutionContext,
    downcast_ref,
    evaluate_file,
    get_context,
    read_build_state,
)

LOGGER_NAME = "oxenv.test.integration"


def _write_config(tmp_path: Path, filename: str, content: str) -> Path:
    f = tmp_path / filename
    f.write_text(content)
    return f


class Executable:
    """Stand-in for a domain object produced by a target."""

    def __init__(self, name: str) -> None:
        self.name = name

    def build(self, state):
        return state.get_state_path("output_path") / self.name


class TestEndToEnd:
    def test_full_pipeline(self, tmp_path, caplog):
        """Evaluate a config, then hand its final state downstream."""
        caplog.set_level(logging.WARNING, logger=LOGGER_NAME)
        path = _write_config(
            tmp_path,
            "cfg.star",
            """
set_build_path("out")

def make_dist():
    return "cpython"

def make_exe(dist):
    print("building", dist, "for", BUILD_TARGET_TRIPLE)
    return make_executable(dist)

register_target("dist", make_dist)
register_target("exe", make_exe, depends=["dist"], default=True)
""",
        )

        def domain_module(env, type_values):
            env.set("make_executable", Executable)

        result = evaluate_file(
            logging.getLogger(LOGGER_NAME),
            path,
            host_triple="x86_64-unknown-linux-gnu",
            release=True,
            opt_level="3",
            modules=[domain_module],
        )

        # final context state
        assert result.context.build_path == tmp_path / "out"
        assert result.context.distribution_path == tmp_path / "out" / "python_distributions"

        # resolved targets
        exe = result["exe"]
        assert isinstance(exe, Executable)
        assert exe.name == "cpython"

        # script output
        messages = [r.getMessage() for r in caplog.records if r.name == LOGGER_NAME]
        assert messages == ["building cpython for x86_64-unknown-linux-gnu"]

        # downstream view through the state capability
        info = read_build_state(result.context)
        assert info.release is True
        assert info.opt_level == "3"
        assert info.output_path == tmp_path / "out"
        assert exe.build(result.context.build_context(info.output_path / "exe")) == (
            tmp_path / "out" / "exe" / "cpython"
        )

        # native code holding only the attribute surface sees the same context
        with downcast_ref(get_context(result.type_values), ExecutionContext) as ctx:
            assert ctx is result.context

    def test_shared_cache_across_sessions(self, tmp_path):
        """A cache built in one session is reused by the next."""
        cache = DistributionCache(tmp_path / "dists")
        built = []

        def factory(dest_dir):
            built.append(dest_dir)
            return "distribution"

        def domain_module(env, type_values):
            def distribution():
                with downcast_ref(get_context(type_values), ExecutionContext) as ctx:
                    shared = ctx.distribution_cache
                return shared.get_or_create("cpython", factory)

            env.set("distribution", distribution)

        for name in ("one", "two"):
            project = tmp_path / name
            project.mkdir()
            path = _write_config(project, "cfg.star", "register_target('d', distribution)\n")
            result = evaluate_file(
                logging.getLogger(LOGGER_NAME),
                path,
                distribution_cache=cache,
                modules=[domain_module],
            )
            assert result.context.distribution_cache is cache
            assert result["d"] == "distribution"

        assert built == [tmp_path / "dists"]
