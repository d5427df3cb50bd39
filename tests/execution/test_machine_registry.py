"""Tests for machina.execution.registry."""

import math

import pytest

from machina.core.errors import DependencyNotFoundError, MachineNotFoundError
from machina.execution.machine import Machine, MachineDefinition
from machina.execution.registry import (
    clear_registry,
    define_machine,
    get_machine_definition,
    list_machines,
    register_machine,
    resolve_dependencies,
    resolve_dependency,
)


def _fn(inputs, exits, deps):
    return exits.success(None)


class TestRegistry:
    def test_register_and_get(self):
        definition = register_machine(MachineDefinition(id="noop", fn=_fn))
        assert get_machine_definition("noop") is definition
        assert list_machines() == ["noop"]

    def test_duplicate_rejected(self):
        register_machine(MachineDefinition(id="noop", fn=_fn))
        with pytest.raises(ValueError, match="already registered"):
            register_machine(MachineDefinition(id="noop", fn=_fn))

    def test_replace(self):
        register_machine(MachineDefinition(id="noop", fn=_fn))
        replacement = register_machine(MachineDefinition(id="noop", fn=_fn, description="v2"), replace=True)
        assert get_machine_definition("noop") is replacement

    def test_unknown(self):
        register_machine(MachineDefinition(id="known", fn=_fn))
        with pytest.raises(MachineNotFoundError, match="known"):
            get_machine_definition("unknown")

    def test_list_sorted(self):
        for name in ("b", "a", "c"):
            register_machine(MachineDefinition(id=name, fn=_fn))
        assert list_machines() == ["a", "b", "c"]

    def test_clear(self):
        register_machine(MachineDefinition(id="noop", fn=_fn))
        clear_registry()
        assert list_machines() == []


class TestDefineMachine:
    def test_decorator_registers_definition(self):
        @define_machine("add", exits=["overflow"])
        async def add(inputs, exits, deps):
            """Add two numbers."""
            return exits.success(inputs["a"] + inputs["b"])

        assert isinstance(add, MachineDefinition)
        assert get_machine_definition("add") is add
        assert add.description == "Add two numbers."
        assert add.exit_names == ("overflow", "success", "error")

    @pytest.mark.asyncio
    async def test_loaded_machine_runs(self):
        @define_machine("mul", description="Multiply")
        def mul(inputs, exits, deps):
            return exits.success(inputs["a"] * inputs["b"])

        outcome = await Machine.load("mul").configure({"a": 3, "b": 4}).run()
        assert outcome.value == 12
        assert mul.description == "Multiply"


class TestResolveDependency:
    def test_module(self):
        assert resolve_dependency("m", "math") is math

    def test_missing_module(self):
        with pytest.raises(DependencyNotFoundError):
            resolve_dependency("m", "machina_no_such_module", machine="x")

    def test_registered_machine_gets_fresh_instance(self):
        register_machine(MachineDefinition(id="noop", fn=_fn))
        first = resolve_dependency("dep", "noop")
        second = resolve_dependency("dep", "noop")
        assert isinstance(first, Machine)
        assert first is not second

    def test_resolve_many_reports_failure(self, error_sink):
        resolved = resolve_dependencies({"m": "math", "bad": "machina_no_such_module"}, machine="x", on_error=error_sink)
        assert resolved == {"m": math}
        assert isinstance(error_sink[0], DependencyNotFoundError)
