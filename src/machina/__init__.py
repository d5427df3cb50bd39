"""
Machina - units of work with named exits and memoized outcomes.

Public surface:
- machina.core: errors, outcomes, exits, hashing, settings, logging
- machina.cache: cache options, stores, lookup, interception, GC
- machina.execution: Machine, MachineDefinition, registry
"""

__version__ = "0.1.0"

from machina.cache import CacheOptions, InMemoryCacheStore
from machina.core import Exit, Failure, MachineError, Outcome, Success
from machina.core.exits import ExitSet
from machina.execution import Machine, MachineDefinition, define_machine, register_machine

__all__ = [
    "__version__",
    "CacheOptions",
    "InMemoryCacheStore",
    "Exit",
    "ExitSet",
    "Failure",
    "MachineError",
    "Outcome",
    "Success",
    "Machine",
    "MachineDefinition",
    "define_machine",
    "register_machine",
]
