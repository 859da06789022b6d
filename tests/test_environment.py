"""Tests for oxenv.environment."""

from __future__ import annotations

import pytest

from oxenv.bridge import wrap
from oxenv.environment import BASE_BUILTINS, Environment, TypeValues
from oxenv.errors import ContextResolutionError, ScriptError


class Widget:
    TYPE = "Widget"
    color = "red"
    _secret = "hidden"


class TestEnvironmentBindings:
    def test_empty_environment(self):
        env = Environment()
        assert len(env) == 0
        assert list(env) == []
        assert "__builtins__" not in env

    def test_set_and_get(self):
        env = Environment()
        env.set("NAME", "value")
        assert env["NAME"] == "value"
        assert "NAME" in env
        assert len(env) == 1

    def test_lookup_missing_raises(self):
        env = Environment()
        with pytest.raises(ContextResolutionError, match="CONTEXT"):
            env.lookup("CONTEXT")

    def test_getitem_missing_raises_key_error(self):
        with pytest.raises(KeyError):
            Environment()["missing"]

    def test_reserved_name(self):
        with pytest.raises(ValueError, match="reserved"):
            Environment().set("__builtins__", {})

    def test_builtins_layer(self):
        env = Environment()
        assert set(env.builtins) == set(BASE_BUILTINS)
        assert "open" not in env.builtins
        assert "print" not in env.builtins

    def test_custom_builtins(self):
        env = Environment(builtins={"len": len})
        assert list(env.builtins) == ["len"]

    def test_freeze(self):
        env = Environment(name="cfg")
        env.set("A", 1)
        env.freeze()
        assert env.frozen
        with pytest.raises(RuntimeError, match="frozen"):
            env.set("B", 2)
        assert env["A"] == 1

    def test_repr(self):
        env = Environment(name="cfg")
        assert "cfg" in repr(env)


class TestEvaluate:
    def test_returns_last_expression(self):
        assert Environment().evaluate("1 + 2") == 3

    def test_statement_returns_none(self):
        assert Environment().evaluate("x = 1") is None

    def test_bindings_kept(self):
        env = Environment()
        env.evaluate("x = 40\ny = x + 2")
        assert env["y"] == 42
        assert env.evaluate("y") == 42

    def test_reads_globals(self):
        env = Environment()
        env.set("CWD", "/proj")
        assert env.evaluate("CWD + '/build'") == "/proj/build"

    def test_functions_defined_in_script(self):
        env = Environment()
        env.evaluate("def double(v):\n    return v * 2\n")
        assert env.evaluate("double(21)") == 42
        assert env["double"](2) == 4

    def test_base_builtins_available(self):
        assert Environment().evaluate("sorted([3, 1, 2])") == [1, 2, 3]

    def test_syntax_error(self):
        with pytest.raises(ScriptError) as excinfo:
            Environment().evaluate("x = (", filename="cfg.star")
        assert excinfo.value.code == "OXENV_SYNTAX"
        assert excinfo.value.label == "cfg.star"

    @pytest.mark.parametrize("source", ["import os", "from os import path"])
    def test_imports_rejected(self, source):
        with pytest.raises(ScriptError, match="import"):
            Environment().evaluate(source)

    def test_private_attribute_rejected(self):
        env = Environment()
        env.set("w", Widget())
        with pytest.raises(ScriptError, match="_secret"):
            env.evaluate("w._secret")

    @pytest.mark.parametrize(
        "source",
        [
            "def g():\n    yield 1\ngen = g()\ngen.gi_frame",
            "def g():\n    yield 1\ng().gi_frame.f_back",
            "'{0.x}'.format(w)",
            "'{x}'.format_map({'x': w})",
        ],
    )
    def test_frame_and_format_attributes_rejected(self, source):
        env = Environment()
        env.set("w", wrap(Widget()))
        with pytest.raises(ScriptError, match="not accessible") as excinfo:
            env.evaluate(source, filename="cfg.star")
        assert excinfo.value.code == "OXENV_SYNTAX"

    def test_dunder_name_rejected(self):
        with pytest.raises(ScriptError, match="__builtins__"):
            Environment().evaluate("__builtins__")

    def test_runtime_error_reported(self):
        with pytest.raises(ScriptError) as excinfo:
            Environment().evaluate("undefined_name", filename="cfg.star")
        assert excinfo.value.code == "OXENV_EVAL"
        assert "undefined_name" in str(excinfo.value)

    def test_builtin_not_exposed(self):
        with pytest.raises(ScriptError, match="open"):
            Environment().evaluate("open('/etc/passwd')")

    def test_frozen_refuses_evaluation(self):
        env = Environment()
        env.freeze()
        with pytest.raises(RuntimeError):
            env.evaluate("1")


class TestBaseBuiltins:
    def test_fail(self):
        with pytest.raises(ScriptError) as excinfo:
            Environment().evaluate("fail('bad', 'value', 1)")
        assert excinfo.value.code == "fail"
        assert excinfo.value.message == "bad value 1"

    def test_type_of_value(self):
        assert Environment().evaluate("type('x')") == "str"

    def test_type_of_opaque_value(self):
        env = Environment()
        env.set("w", wrap(Widget()))
        assert env.evaluate("type(w)") == "Widget"

    def test_getattr(self):
        env = Environment()
        env.set("w", Widget())
        assert env.evaluate("getattr(w, 'color')") == "red"
        assert env.evaluate("getattr(w, 'size', 3)") == 3
        assert env.evaluate("hasattr(w, 'color')") is True

    @pytest.mark.parametrize(
        "source",
        [
            "getattr(w, '_secret')",
            "hasattr(w, '_secret')",
            "getattr('{0}', 'format')",
            "getattr(gen, 'gi_frame')",
            "hasattr(gen, 'gi_code')",
        ],
    )
    def test_private_getattr_rejected(self, source):
        env = Environment()
        env.set("w", Widget())
        env.evaluate("def g():\n    yield 1\ngen = g()")
        with pytest.raises(ScriptError, match="not accessible"):
            env.evaluate(source)


class TestTypeValues:
    def test_add_and_get(self):
        type_values = TypeValues()
        type_values.add_type_value("Oxenv", "CWD", "/proj")
        assert type_values.get_type_value("Oxenv", "CWD") == "/proj"
        assert type_values.has_type_value("Oxenv", "CWD")

    def test_missing_raises(self):
        type_values = TypeValues()
        type_values.add_type_value("Oxenv", "CWD", "/proj")
        with pytest.raises(ContextResolutionError, match="Oxenv.CONTEXT"):
            type_values.get_type_value("Oxenv", "CONTEXT")

    def test_names_in_order(self):
        type_values = TypeValues()
        for name in ("b", "a", "c"):
            type_values.add_type_value("T", name, name)
        assert type_values.names("T") == ["b", "a", "c"]
        assert type_values.names("missing") == []

    def test_repr(self):
        type_values = TypeValues()
        type_values.add_type_value("T", "a", 1)
        assert repr(type_values) == "TypeValues(T=1)"
