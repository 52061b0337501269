"""Per-node activation and gradient storage for one graph."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Sequence

    from nnetgraph.core.component.base import Component
    from nnetgraph.core.context import ComputeContext


@dataclass
class NodeBuffers:
    """
    The four matrices owned by one node slot.

    Attributes:
        input (np.ndarray): Forward staging, ``(rows, input_dim)``.
        output (np.ndarray): Forward activation, ``(rows, output_dim)``.
        output_grad (np.ndarray): Backward staging, ``(rows, output_dim)``.
        input_grad (np.ndarray): Backward result, ``(rows, input_dim)``.

    """

    input: np.ndarray
    output: np.ndarray
    output_grad: np.ndarray
    input_grad: np.ndarray


class BufferArena:
    """
    Buffers indexed by node id.

    The arena is rebuilt whenever the node list changes and resized at the
    start of every forward and backward pass. Its content is never persisted.
    """

    def __init__(self, ctx: ComputeContext):
        self._ctx = ctx
        self._slots: list[NodeBuffers] = []
        self._dims: list[tuple[int, int]] = []

    def __len__(self) -> int:
        return len(self._slots)

    def __getitem__(self, node_id: int) -> NodeBuffers:
        return self._slots[node_id]

    def rebuild(self, nodes: Sequence[Component]) -> None:
        """Allocate one empty slot per node, in id order."""
        self._dims = [(n.input_dim, n.output_dim) for n in nodes]
        self._slots = [
            NodeBuffers(
                input=self._ctx.zeros(0, i),
                output=self._ctx.zeros(0, o),
                output_grad=self._ctx.zeros(0, o),
                input_grad=self._ctx.zeros(0, i),
            )
            for i, o in self._dims
        ]

    def reset_inputs(self, rows: int) -> None:
        """Zero every forward staging buffer at `rows` rows."""
        for slot, (i, _) in zip(self._slots, self._dims):
            if slot.input.shape == (rows, i):
                slot.input.fill(0)
            else:
                slot.input = self._ctx.zeros(rows, i)

    def reset_output_grads(self, rows: int) -> None:
        """Zero every backward staging buffer at `rows` rows."""
        for slot, (_, o) in zip(self._slots, self._dims):
            if slot.output_grad.shape == (rows, o):
                slot.output_grad.fill(0)
            else:
                slot.output_grad = self._ctx.zeros(rows, o)
