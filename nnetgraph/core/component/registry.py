"""Lookup of component classes by their persisted marker token."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nnetgraph.utils.errors.exceptions import ConfigError
from nnetgraph.utils.registries import CaseInsensitiveRegistry

if TYPE_CHECKING:
    from nnetgraph.core.component.base import Component

COMPONENT_REGISTRY: CaseInsensitiveRegistry = CaseInsensitiveRegistry()


def register_component(cls: type[Component]) -> type[Component]:
    """
    Register a component class under its ``marker``.

    Args:
        cls (type[Component]): Class to register. Must define ``marker``.

    Returns:
        type[Component]: The class itself, so this can be used as a decorator.

    Raises:
        KeyError: If another class already uses the same marker.

    """
    if not getattr(cls, "marker", None):
        msg = f"{cls.__name__} does not define a marker."
        raise ValueError(msg)
    COMPONENT_REGISTRY.register(cls.marker, cls)
    return cls


def lookup_component(marker: str) -> type[Component]:
    """
    Return the class registered for `marker` (case-insensitive).

    Raises:
        ConfigError: If no class is registered for `marker`.

    """
    cls = COMPONENT_REGISTRY.get(marker)
    if cls is None:
        msg = (
            f"Unknown component marker `{marker}`. "
            f"Known markers: {sorted(COMPONENT_REGISTRY.keys())}"
        )
        raise ConfigError(msg, token=marker)
    return cls
