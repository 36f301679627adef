"""
Architecture registry for sigpolicy.

The registry maps architecture names to Architecture classes so that
configuration (for example a CLI flag or a program config) can pick a chain
family by name.

Design:
    - Single global registry (default_registry) pre-populated with EVM
    - Support for multiple registries for testing/isolation
    - Clear error messages for unknown architectures

Usage:
    from sigpolicy.architectures.registry import default_registry

    evm = default_registry.get("evm")
    tx = evm.parse("0xef01...")
"""

from typing import Iterator

from sigpolicy.architectures.base import Architecture
from sigpolicy.architectures.evm import Evm
from sigpolicy.errors import UnknownArchitectureError


class ArchitectureRegistry:
    """
    Registry for looking up architectures by name.

    Attributes:
        _architectures: Internal mapping of names to Architecture classes
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._architectures: dict[str, type[Architecture]] = {}

    def register(self, architecture: type[Architecture]) -> None:
        """
        Register an architecture.

        Re-registering a name replaces the previous entry.

        Args:
            architecture: The Architecture subclass to register

        Raises:
            ValueError: If architecture is None or has an empty name
        """
        if architecture is None:
            msg = "Cannot register None as an architecture"
            raise ValueError(msg)

        name = getattr(architecture, "name", "")
        if not name:
            msg = "Architecture must have a non-empty name"
            raise ValueError(msg)

        self._architectures[name] = architecture

    def get(self, name: str) -> type[Architecture]:
        """
        Look up an architecture by name.

        Raises:
            UnknownArchitectureError: If no architecture with that name is registered
        """
        architecture = self._architectures.get(name)
        if architecture is None:
            raise UnknownArchitectureError(architecture=name)
        return architecture

    def get_optional(self, name: str) -> type[Architecture] | None:
        """Look up an architecture by name, returning None if not found."""
        return self._architectures.get(name)

    def has(self, name: str) -> bool:
        """Check if an architecture is registered."""
        return name in self._architectures

    def unregister(self, name: str) -> bool:
        """Remove an architecture; returns False if it wasn't registered."""
        return self._architectures.pop(name, None) is not None

    def list_architectures(self) -> list[str]:
        """List all registered architecture names in sorted order."""
        return sorted(self._architectures.keys())

    def __len__(self) -> int:
        return len(self._architectures)

    def __iter__(self) -> Iterator[type[Architecture]]:
        return iter(self._architectures.values())

    def __contains__(self, name: str) -> bool:
        return name in self._architectures

    def __repr__(self) -> str:
        names = ", ".join(self.list_architectures())
        return f"<ArchitectureRegistry: [{names}]>"


default_registry = ArchitectureRegistry()
default_registry.register(Evm)


def get_architecture(name: str) -> type[Architecture]:
    """Get an architecture from the default registry."""
    return default_registry.get(name)
