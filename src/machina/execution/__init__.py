"""machina.execution -- running machines.

Architecture::

    machine.py      MachineDefinition + Machine (configure / run / sinks)
    runner.py       Execution core: lookup, GC scheduling, interception, invoke
    registry.py     Machine registry + dependency resolution
"""

from machina.execution.machine import Machine, MachineDefinition
from machina.execution.registry import (
    clear_registry,
    define_machine,
    get_machine_definition,
    list_machines,
    register_machine,
)
from machina.execution.runner import RunState, execute, invoke

__all__ = [
    "Machine",
    "MachineDefinition",
    "clear_registry",
    "define_machine",
    "get_machine_definition",
    "list_machines",
    "register_machine",
    "RunState",
    "execute",
    "invoke",
]
