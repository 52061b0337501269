"""Dropout regularization."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np

from nnetgraph.core.component.base import Component
from nnetgraph.utils.errors.exceptions import ConfigError, DimensionMismatchError

if TYPE_CHECKING:
    from nnetgraph.core.context import ComputeContext
    from nnetgraph.core.io.tokens import TokenReader, TokenWriter


class Dropout(Component):
    """
    Zero each unit with probability ``1 - retention`` during training.

    Kept units are scaled by ``1 / retention`` so :meth:`feedforward` can
    be a plain identity. The mask drawn by the last :meth:`propagate` is
    reused by :meth:`backpropagate`.
    """

    marker: ClassVar[str] = "<Dropout>"
    same_dims: ClassVar[bool] = True
    init_options: ClassVar[dict] = {"<DropoutRetention>": float}

    def __init__(self, input_dim: int, output_dim: int, **kwargs):
        super().__init__(input_dim, output_dim, **kwargs)
        self._retention = 0.5
        self._mask: np.ndarray | None = None

    @property
    def dropout_retention(self) -> float:
        return self._retention

    def set_dropout_retention(self, retention: float) -> None:
        if not 0.0 < retention <= 1.0:
            msg = f"Dropout retention must be in (0, 1], got {retention}."
            raise ConfigError(msg)
        self._retention = float(retention)

    def _init_params(self, options: dict[str, Any], ctx: ComputeContext) -> None:  # noqa: ARG002
        if "<DropoutRetention>" in options:
            self.set_dropout_retention(options["<DropoutRetention>"])

    def _propagate(self, inputs: np.ndarray, ctx: ComputeContext) -> np.ndarray:
        keep = ctx.rng.random(inputs.shape) < self._retention
        self._mask = keep.astype(inputs.dtype) / inputs.dtype.type(self._retention)
        return inputs * self._mask

    def _feedforward(self, inputs: np.ndarray, ctx: ComputeContext) -> np.ndarray:  # noqa: ARG002
        return inputs.copy()

    def _backpropagate(self, inputs, outputs, output_grad, ctx):  # noqa: ARG002
        if self._mask is None or self._mask.shape != output_grad.shape:
            msg = f"Dropout component {self.id} has no mask for this batch; call propagate first."
            received = None if self._mask is None else self._mask.shape
            raise DimensionMismatchError(expected=output_grad.shape, received=received, message=msg)
        return output_grad * self._mask

    def read_data(self, reader: TokenReader, ctx: ComputeContext) -> None:  # noqa: ARG002
        if reader.peek_token() == "<DropoutRetention>":
            reader.expect_token("<DropoutRetention>")
            self.set_dropout_retention(reader.read_float())

    def write_data(self, writer: TokenWriter) -> None:
        writer.write_token("<DropoutRetention>")
        writer.write_float(self._retention, np.float64)
        writer.newline()

    def info(self) -> str:
        return f"\n  dropout-retention {self._retention}"
