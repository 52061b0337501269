"""Assignment of dense ids to a name-wired component list."""

from __future__ import annotations

from collections import defaultdict, deque
from typing import TYPE_CHECKING

from nnetgraph.core.component.base import EXTERNAL_INPUT
from nnetgraph.utils.errors.exceptions import ConfigError, CycleError
from nnetgraph.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from nnetgraph.core.component.base import Component

logger = get_logger("graph.assigner")


def _is_external(component: Component) -> bool:
    return not component.input_names or component.input_names == [EXTERNAL_INPUT]


def default_offsets(producer_dims: Sequence[int]) -> list[int]:
    """Offsets that place producers side by side in declaration order."""
    offsets, running = [], 0
    for dim in producer_dims:
        offsets.append(running)
        running += dim
    return offsets


class TopologicalAssigner:
    """
    Order a graph description so every producer precedes its consumers.

    Components are keyed by ``name`` and reference their producers through
    ``input_names``. A component with no inputs, or whose sole input is
    ``"-1"``, reads external data. Ordering uses Kahn's algorithm with a
    FIFO ready queue, so input terminals take the lowest ids in declaration
    order. Output terminals nobody consumes are placed last, also in
    declaration order.
    """

    def _validate(self, components: Sequence[Component]) -> dict[str, int]:
        """Check names and references; return ``name -> declaration index``."""
        index_of: dict[str, int] = {}
        for i, comp in enumerate(components):
            if not comp.name:
                msg = f"Component #{i} ({comp.marker}) has no <Name>; graph descriptions require one."
                raise ConfigError(msg, token=comp.marker)
            if comp.name == EXTERNAL_INPUT:
                msg = f"`{EXTERNAL_INPUT}` is reserved for external input and cannot be a name."
                raise ConfigError(msg, token=comp.name)
            if comp.name in index_of:
                msg = f"Duplicate component name `{comp.name}`."
                raise ConfigError(msg, token=comp.name)
            index_of[comp.name] = i

        for comp in components:
            if _is_external(comp):
                continue
            for name in comp.input_names:
                if name == comp.name:
                    msg = f"Component `{comp.name}` has a self-referential input."
                    raise ConfigError(msg, token=name)
                if name == EXTERNAL_INPUT:
                    msg = f"Component `{comp.name}` mixes external input `-1` with named inputs."
                    raise ConfigError(msg, token=name)
                if name not in index_of:
                    msg = f"Component `{comp.name}` has an unresolved input name `{name}`."
                    raise ConfigError(msg, token=name)
            if comp.offsets and len(comp.offsets) != len(comp.input_names):
                msg = (
                    f"Component `{comp.name}` declares {len(comp.input_names)} inputs "
                    f"but {len(comp.offsets)} offsets."
                )
                raise ConfigError(msg, token=comp.name)
        return index_of

    def _order(self, components: Sequence[Component]) -> list[int]:
        """Return declaration indices in execution order (Kahn, FIFO)."""
        in_degree: list[int] = []
        consumers: dict[str, list[int]] = defaultdict(list)
        for i, comp in enumerate(components):
            if _is_external(comp):
                in_degree.append(0)
                continue
            in_degree.append(len(comp.input_names))
            for name in comp.input_names:
                consumers[name].append(i)

        def is_sink(i: int) -> bool:
            comp = components[i]
            return comp.is_output_terminal and not consumers[comp.name]

        queue = deque(i for i, d in enumerate(in_degree) if d == 0 and not is_sink(i))
        sinks = [i for i, d in enumerate(in_degree) if d == 0 and is_sink(i)]
        order: list[int] = []
        while queue:
            current = queue.popleft()
            order.append(current)
            for consumer in consumers[components[current].name]:
                in_degree[consumer] -= 1
                if in_degree[consumer] == 0:
                    if is_sink(consumer):
                        sinks.append(consumer)
                    else:
                        queue.append(consumer)
        # Output terminals keep their declaration order
        order.extend(sorted(sinks))

        if len(order) != len(components):
            placed = set(order)
            unresolved = [c.name for i, c in enumerate(components) if i not in placed]
            raise CycleError(assigned=len(order), total=len(components), unresolved=unresolved)
        return order

    def assign(self, components: Sequence[Component]) -> list[Component]:
        """
        Assign ids and resolve named inputs.

        Nothing is modified until the description has been fully validated
        and ordered.

        Args:
            components (Sequence[Component]): Components in declaration order.

        Returns:
            list[Component]: The same components, sorted by their new ids,
            with ``inputs`` and ``offsets`` filled in.

        Raises:
            ConfigError: On missing/duplicate names, self-references or
                unresolved input names.
            CycleError: If the description contains a cycle.

        """
        self._validate(components)
        order = self._order(components)

        ordered = [components[i] for i in order]
        id_of = {comp.name: new_id for new_id, comp in enumerate(ordered)}
        for new_id, comp in enumerate(ordered):
            comp.id = new_id
            if _is_external(comp):
                comp.inputs = [-1]
                comp.offsets = [0]
                continue
            comp.inputs = [id_of[name] for name in comp.input_names]
            if not comp.offsets:
                comp.offsets = default_offsets([ordered[p].output_dim for p in comp.inputs])

        logger.debug(
            "Assigned ids: %s",
            ", ".join(f"{c.name}={c.id}" for c in ordered),
        )
        return ordered
