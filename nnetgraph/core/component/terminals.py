"""Input/output terminals and the identity component."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from nnetgraph.core.component.base import Component, ComponentKind

if TYPE_CHECKING:
    import numpy as np

    from nnetgraph.core.context import ComputeContext


class _PassThrough(Component):
    """Copies its input to its output and its output gradient to its input gradient."""

    same_dims: ClassVar[bool] = True

    def _propagate(self, inputs: np.ndarray, ctx: ComputeContext) -> np.ndarray:  # noqa: ARG002
        return inputs.copy()

    def _backpropagate(self, inputs, outputs, output_grad, ctx):  # noqa: ARG002
        return output_grad.copy()


class InputLayer(_PassThrough):
    """Entry point of the graph; receives one externally supplied matrix."""

    marker: ClassVar[str] = "<InputLayer>"
    kind: ClassVar[ComponentKind] = ComponentKind.INPUT_TERMINAL


class OutputLayer(_PassThrough):
    """Exit point of the graph; its output is returned to the caller."""

    marker: ClassVar[str] = "<OutputLayer>"
    kind: ClassVar[ComponentKind] = ComponentKind.OUTPUT_TERMINAL


class Identity(_PassThrough):
    """Plain identity node, useful for splitting or renaming a stream."""

    marker: ClassVar[str] = "<Identity>"
