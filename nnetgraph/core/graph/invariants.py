"""Structural and numeric checks applied after every graph mutation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from nnetgraph.utils.errors.exceptions import NumericInstabilityError, StructuralInvariantError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from nnetgraph.core.component.base import Component

# Producer id left on an edge whose producer was removed from the graph
DETACHED = -2


def check_structure(
    nodes: Sequence[Component | None],
    terminals_in: Sequence[int],
    terminals_out: Sequence[int],
) -> None:
    """
    Verify terminals, id density and edge validity.

    Args:
        nodes (Sequence[Component | None]): Graph nodes in id order.
        terminals_in (Sequence[int]): Ids of the input terminals.
        terminals_out (Sequence[int]): Ids of the output terminals.

    Raises:
        StructuralInvariantError: On the first violated invariant.

    """
    if not terminals_in:
        msg = "Must have at least one InputLayer."
        raise StructuralInvariantError(msg)
    if not terminals_out:
        msg = "Must have at least one OutputLayer."
        raise StructuralInvariantError(msg)

    for i, node in enumerate(nodes):
        if node is None:
            msg = f"Component ids must be contiguous, but no component has id {i}."
            raise StructuralInvariantError(msg, node_id=i)
        if node.id != i:
            msg = f"Component at index {i} has id {node.id}."
            raise StructuralInvariantError(msg, node_id=i)

    for node in nodes:
        if node.is_input_terminal:
            continue
        if len(node.inputs) != len(node.offsets):
            msg = (
                f"Component {node.id} has {len(node.inputs)} inputs "
                f"but {len(node.offsets)} offsets."
            )
            raise StructuralInvariantError(msg, node_id=node.id)
        for offset, producer_id in node.edges:
            if producer_id == DETACHED:
                msg = f"Component {node.id} references a component that was removed."
                raise StructuralInvariantError(msg, node_id=node.id, producer_id=producer_id)
            if producer_id < 0 or producer_id >= node.id:
                msg = (
                    f"Component {node.id} takes input from component {producer_id}; "
                    f"producer ids must be in [0, {node.id})."
                )
                raise StructuralInvariantError(msg, node_id=node.id, producer_id=producer_id)
            producer = nodes[producer_id]
            if offset < 0 or offset + producer.output_dim > node.input_dim:
                msg = (
                    f"Component {node.id} places input {producer_id} "
                    f"(dim {producer.output_dim}) at offset {offset}, which exceeds "
                    f"its input dim {node.input_dim}."
                )
                raise StructuralInvariantError(msg, node_id=node.id, producer_id=producer_id)


def check_numeric(params: np.ndarray) -> None:
    """
    Verify the aggregate parameter vector has a finite sum.

    Raises:
        NumericInstabilityError: If the sum is NaN or infinite.

    """
    total = float(np.sum(params, dtype=np.float64))
    if not np.isfinite(total):
        msg = f"Parameters contain non-finite values (sum = {total})."
        raise NumericInstabilityError(msg)
