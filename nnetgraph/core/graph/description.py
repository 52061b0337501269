"""Parsing of line-oriented network descriptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from nnetgraph.core.component.base import Component
from nnetgraph.utils.errors.exceptions import ConfigError
from nnetgraph.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from nnetgraph.core.context import ComputeContext

logger = get_logger("graph.description")

_IGNORED_TOKENS = ("<NnetProto>", "</NnetProto>")


class StructureType(str, Enum):
    """How components in a description are wired together."""

    SIMPLE = "simple"
    GRAPH = "graph"


@dataclass
class NetworkDescription:
    """
    Components parsed from a description, before ids are assigned.

    Attributes:
        structure (StructureType): ``simple`` chains components in order,
            ``graph`` wires them by name.
        components (list[Component]): Components in declaration order.

    """

    structure: StructureType = StructureType.SIMPLE
    components: list[Component] = field(default_factory=list)


def parse_description(lines: Iterable[str], ctx: ComputeContext) -> NetworkDescription:
    """
    Parse description lines into components.

    Each non-empty line is either a directive (``<NnetProto>``,
    ``</NnetProto>``, ``<StructureType> simple|graph``) or a component line
    such as ``<Sigmoid> <InputDim> 8 <Name> s1 <Input> h1``.

    Args:
        lines (Iterable[str]): Description lines.
        ctx (ComputeContext): Context used for parameter initialization.

    Returns:
        NetworkDescription: Parsed structure type and components.

    Raises:
        ConfigError: On a bad structure type or an invalid component line.

    """
    desc = NetworkDescription()
    for line in lines:
        stripped = line.strip()
        if not stripped:
            continue
        logger.debug(stripped)
        tokens = stripped.split()
        if tokens[0] in _IGNORED_TOKENS:
            continue
        if tokens[0] == "<StructureType>":
            value = tokens[1] if len(tokens) > 1 else ""
            try:
                desc.structure = StructureType(value)
            except ValueError as exc:
                msg = f"The structure type must be `simple` or `graph`, got `{value}`."
                raise ConfigError(msg, token=value) from exc
            continue
        desc.components.append(Component.init(stripped, ctx))
    return desc
