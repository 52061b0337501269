"""Element-wise and row-wise nonlinearities."""

from __future__ import annotations

from typing import ClassVar

import numpy as np

from nnetgraph.core.component.base import Component
from nnetgraph.core.context import ComputeContext


class _Activation(Component):
    same_dims: ClassVar[bool] = True


class Sigmoid(_Activation):
    """Logistic function ``1 / (1 + exp(-x))``."""

    marker: ClassVar[str] = "<Sigmoid>"

    def _propagate(self, inputs: np.ndarray, ctx: ComputeContext) -> np.ndarray:  # noqa: ARG002
        # Split by sign so large magnitudes do not overflow exp
        out = np.empty_like(inputs)
        pos = inputs >= 0
        out[pos] = 1.0 / (1.0 + np.exp(-inputs[pos]))
        e = np.exp(inputs[~pos])
        out[~pos] = e / (1.0 + e)
        return out

    def _backpropagate(self, inputs, outputs, output_grad, ctx):  # noqa: ARG002
        return output_grad * outputs * (1.0 - outputs)


class Tanh(_Activation):
    """Hyperbolic tangent."""

    marker: ClassVar[str] = "<Tanh>"

    def _propagate(self, inputs: np.ndarray, ctx: ComputeContext) -> np.ndarray:  # noqa: ARG002
        return np.tanh(inputs)

    def _backpropagate(self, inputs, outputs, output_grad, ctx):  # noqa: ARG002
        return output_grad * (1.0 - outputs * outputs)


class ReLU(_Activation):
    """Rectified linear unit ``max(x, 0)``."""

    marker: ClassVar[str] = "<ReLU>"

    def _propagate(self, inputs: np.ndarray, ctx: ComputeContext) -> np.ndarray:  # noqa: ARG002
        return np.maximum(inputs, 0).astype(inputs.dtype, copy=False)

    def _backpropagate(self, inputs, outputs, output_grad, ctx):  # noqa: ARG002
        return output_grad * (outputs > 0)


class Softmax(_Activation):
    """
    Row-wise softmax.

    The backward pass returns the output gradient unchanged: the softmax is
    expected to be paired with a cross-entropy objective whose gradient
    w.r.t. the pre-softmax activations is already ``posterior - target``.
    """

    marker: ClassVar[str] = "<Softmax>"

    def _propagate(self, inputs: np.ndarray, ctx: ComputeContext) -> np.ndarray:  # noqa: ARG002
        shifted = inputs - inputs.max(axis=1, keepdims=True)
        e = np.exp(shifted)
        return e / e.sum(axis=1, keepdims=True)

    def _backpropagate(self, inputs, outputs, output_grad, ctx):  # noqa: ARG002
        return output_grad.copy()
