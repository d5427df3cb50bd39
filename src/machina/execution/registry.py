"""Machine registry and dependency resolution.

Manifesto:
    Units find each other by name. A definition registered here can be
    loaded with ``Machine.load(name)`` and can be declared as a dependency
    of another machine without the two modules importing each other.

Tags:
    machina, execution, registry, dependencies, discovery

Doc-Types:
    api-reference
"""

from __future__ import annotations

import importlib
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from machina.core.errors import DependencyNotFoundError, MachineNotFoundError
from machina.core.logging import get_logger

if TYPE_CHECKING:
    from machina.cache.config import CacheOptions
    from machina.execution.machine import MachineDefinition

logger = get_logger(__name__)

# Global machine registry
_registry: dict[str, MachineDefinition] = {}


def register_machine(definition: MachineDefinition, *, replace: bool = False) -> MachineDefinition:
    """Register *definition* under its id."""
    if definition.id in _registry and not replace:
        raise ValueError(f"Machine '{definition.id}' is already registered")
    _registry[definition.id] = definition
    logger.debug("machine.registered", name=definition.id, description=definition.description)
    return definition


def define_machine(
    id: str,
    *,
    inputs: dict[str, Any] | None = None,
    exits: dict[str, Any] | Iterable[str] | None = None,
    dependencies: dict[str, Any] | None = None,
    description: str | None = None,
    cache: CacheOptions | None = None,
) -> Callable[[Callable[..., Any]], MachineDefinition]:
    """Decorator turning a unit function into a registered definition.

    Example:
        @define_machine("add", exits=["overflow"])
        async def add(inputs, exits, deps):
            total = inputs["a"] + inputs["b"]
            if total > 255:
                return exits.overflow(total)
            return exits.success(total)
    """
    from machina.execution.machine import MachineDefinition

    def decorator(fn: Callable[..., Any]) -> MachineDefinition:
        definition = MachineDefinition(
            id=id,
            fn=fn,
            inputs=dict(inputs or {}),
            exits=exits or {},
            dependencies=dict(dependencies or {}),
            description=description if description is not None else (fn.__doc__ or "").strip(),
            cache=cache,
        )
        return register_machine(definition)

    return decorator


def get_machine_definition(name: str) -> MachineDefinition:
    """Get a registered definition by name."""
    if name not in _registry:
        raise MachineNotFoundError(name, available=sorted(_registry))
    return _registry[name]


def list_machines() -> list[str]:
    """List all registered machine names."""
    return sorted(_registry.keys())


def clear_registry() -> None:
    """Clear registry (for testing)."""
    _registry.clear()


def resolve_dependency(name: str, target: Any, *, machine: str | None = None) -> Any:
    """Resolve one declared dependency.

    A string target names a registered machine (which is instantiated) or
    an importable module. An empty target imports *name* itself. Any other
    target is an already-built object and is returned as is.
    """
    if target is not None and not isinstance(target, str):
        return target

    path = target or name
    if path in _registry:
        from machina.execution.machine import Machine

        return Machine(_registry[path])

    try:
        return importlib.import_module(path)
    except ImportError as exc:
        raise DependencyNotFoundError(path, machine, cause=exc) from exc


def resolve_dependencies(
    dependencies: dict[str, Any],
    *,
    machine: str | None,
    on_error: Callable[[Exception], Any],
) -> dict[str, Any]:
    """Resolve every dependency, reporting the first failure to *on_error*.

    Resolution stops at the first dependency that cannot be found; the
    ones resolved so far are returned.
    """
    resolved: dict[str, Any] = {}
    for name, target in dependencies.items():
        try:
            resolved[name] = resolve_dependency(name, target, machine=machine)
        except DependencyNotFoundError as exc:
            logger.error("machine.dependency.missing", machine=machine, dependency=name, error=str(exc))
            on_error(exc)
            break
    return resolved


__all__ = [
    "clear_registry",
    "define_machine",
    "get_machine_definition",
    "list_machines",
    "register_machine",
    "resolve_dependencies",
    "resolve_dependency",
]
