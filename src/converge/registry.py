"""Registry of the resource types an executable serves.

An executable may host one resource type or several. With a single type
registered, commands resolve to it without a `--resource` argument.
"""

from __future__ import annotations

from collections.abc import Iterator

from .errors import InvalidArgumentError
from .resource import Resource


class ResourceRegistry:
    """Case-insensitive mapping from type name to resource class."""

    def __init__(self, resources: list[type[Resource]] | None = None) -> None:
        self._resources: dict[str, type[Resource]] = {}
        for resource_cls in resources or []:
            self.register(resource_cls)

    def register(self, resource_cls: type[Resource]) -> type[Resource]:
        """Register a resource class.

        Returns the class, so this also works as a class decorator.

        Raises:
            ValueError: If the type name is already registered.
        """
        key = resource_cls.type_name.casefold()
        if key in self._resources:
            raise ValueError(f"Resource type '{resource_cls.type_name}' is already registered")
        self._resources[key] = resource_cls
        return resource_cls

    def __len__(self) -> int:
        return len(self._resources)

    def __iter__(self) -> Iterator[type[Resource]]:
        return iter(self._resources.values())

    def __contains__(self, type_name: object) -> bool:
        return isinstance(type_name, str) and type_name.casefold() in self._resources

    @property
    def multi(self) -> bool:
        """Whether commands must name the resource type."""
        return len(self._resources) > 1

    @property
    def type_names(self) -> list[str]:
        return [resource_cls.type_name for resource_cls in self._resources.values()]

    def resolve(self, type_name: str | None) -> type[Resource]:
        """Get the resource class for a type name.

        Args:
            type_name: Requested type, or None when the executable serves a
                single type.

        Raises:
            InvalidArgumentError: If the type is unknown, or omitted while
                several types are registered.
        """
        if type_name is None:
            if len(self._resources) == 1:
                return next(iter(self._resources.values()))
            raise InvalidArgumentError(
                f"A resource type is required. Available types: {self.type_names}"
            )

        resource_cls = self._resources.get(type_name.casefold())
        if resource_cls is None:
            raise InvalidArgumentError(
                f"Unknown resource type '{type_name}'. Available types: {self.type_names}"
            )
        return resource_cls
