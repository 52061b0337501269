"""Fully connected layer ``y = x W^T + b``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np

from nnetgraph.core.component.base import UpdatableComponent
from nnetgraph.utils.stats import moment_statistics

if TYPE_CHECKING:
    from nnetgraph.core.context import ComputeContext
    from nnetgraph.core.io.tokens import TokenReader, TokenWriter


class AffineTransform(UpdatableComponent):
    """
    Affine transform with momentum SGD, L1/L2 regularization and max-norm.

    Parameters are flattened as the ``(output_dim, input_dim)`` weight
    matrix in row-major order followed by the bias vector.

    Description options:
        ``<ParamStddev>``: Stddev of Gaussian weight init (default 0.1).
        ``<BiasMean>`` / ``<BiasRange>``: Bias drawn uniformly from
            ``mean +/- range / 2`` (defaults -2.0 and 2.0).
        ``<Xavier>`` / ``<NormInit>``: Use Glorot-uniform init instead,
            ``<NormInit>`` scaling the Glorot range.
        ``<LearnRateCoef>`` / ``<BiasLearnRateCoef>``: Per-layer learning
            rate multipliers.
        ``<MaxNorm>``: Clip each output neuron's weight L2 norm (0 disables).

    """

    marker: ClassVar[str] = "<AffineTransform>"
    init_options: ClassVar[dict] = {
        "<ParamStddev>": float,
        "<BiasMean>": float,
        "<BiasRange>": float,
        "<LearnRateCoef>": float,
        "<BiasLearnRateCoef>": float,
        "<MaxNorm>": float,
        "<Xavier>": int,
        "<NormInit>": float,
    }

    def __init__(self, input_dim: int, output_dim: int, **kwargs):
        super().__init__(input_dim, output_dim, **kwargs)
        self.linearity = np.zeros((output_dim, input_dim), dtype=np.float32)
        self.bias = np.zeros(output_dim, dtype=np.float32)
        self.linearity_corr = np.zeros_like(self.linearity)
        self.bias_corr = np.zeros_like(self.bias)
        self.learn_rate_coef = 1.0
        self.bias_learn_rate_coef = 1.0
        self.max_norm = 0.0

    # ================================================
    # Parameters
    # ================================================
    def parameter_layout(self) -> list[tuple[str, tuple[int, ...]]]:
        return [
            ("linearity", (self.output_dim, self.input_dim)),
            ("bias", (self.output_dim,)),
        ]

    def _parameters(self) -> list[np.ndarray]:
        return [self.linearity, self.bias]

    def _gradients(self) -> list[np.ndarray]:
        return [self.linearity_corr, self.bias_corr]

    def _set_dtype(self, dtype: np.dtype) -> None:
        self.linearity = self.linearity.astype(dtype, copy=False)
        self.bias = self.bias.astype(dtype, copy=False)
        self.linearity_corr = np.zeros_like(self.linearity)
        self.bias_corr = np.zeros_like(self.bias)

    def _init_params(self, options: dict[str, Any], ctx: ComputeContext) -> None:
        self._set_dtype(ctx.dtype)
        rng = ctx.rng
        if "<NormInit>" in options or options.get("<Xavier>", 0):
            scale = options.get("<NormInit>", 1.0) * np.sqrt(
                6.0 / (self.output_dim + self.input_dim),
            )
            self.linearity[...] = rng.uniform(-scale, scale, self.linearity.shape)
            self.bias[...] = rng.uniform(-scale, scale, self.bias.shape)
        else:
            stddev = options.get("<ParamStddev>", 0.1)
            mean = options.get("<BiasMean>", -2.0)
            spread = options.get("<BiasRange>", 2.0)
            self.linearity[...] = stddev * rng.standard_normal(self.linearity.shape)
            self.bias[...] = mean + (rng.random(self.bias.shape) - 0.5) * spread

        self.learn_rate_coef = options.get("<LearnRateCoef>", 1.0)
        self.bias_learn_rate_coef = options.get("<BiasLearnRateCoef>", 1.0)
        self.max_norm = options.get("<MaxNorm>", 0.0)

    # ================================================
    # Computation
    # ================================================
    def _propagate(self, inputs: np.ndarray, ctx: ComputeContext) -> np.ndarray:  # noqa: ARG002
        return inputs @ self.linearity.T + self.bias

    def _backpropagate(self, inputs, outputs, output_grad, ctx):  # noqa: ARG002
        return output_grad @ self.linearity

    def _update(self, inputs: np.ndarray, output_grad: np.ndarray) -> None:
        opts = self.train_options
        lr = opts.learn_rate * self.learn_rate_coef
        lr_bias = opts.learn_rate * self.bias_learn_rate_coef
        mmt = opts.momentum
        num_frames = inputs.shape[0]

        self.linearity_corr *= mmt
        self.linearity_corr += output_grad.T @ inputs
        self.bias_corr *= mmt
        self.bias_corr += output_grad.sum(axis=0)

        if opts.l2_penalty != 0.0:
            self.linearity -= lr * opts.l2_penalty * num_frames * self.linearity
        if opts.l1_penalty != 0.0:
            self._regularize_l1(lr * opts.l1_penalty * num_frames, lr)

        self.linearity -= lr * self.linearity_corr
        self.bias -= lr_bias * self.bias_corr

        if self.max_norm > 0.0:
            norms = np.sqrt((self.linearity**2).sum(axis=1))
            scale = np.maximum(norms / self.max_norm, 1.0)
            self.linearity /= scale[:, None]

    def _regularize_l1(self, l1: float, lr: float) -> None:
        """Shrink weights toward zero, clamping any that would cross it."""
        w = self.linearity
        nonzero = w != 0
        l1_signed = np.where(w < 0, -l1, l1)
        after = w - lr * self.linearity_corr - l1_signed
        crossed = nonzero & ((after > 0) != (w > 0))
        shrink = nonzero & ~crossed
        w[shrink] -= l1_signed[shrink]
        w[crossed] = 0.0
        self.linearity_corr[crossed] = 0.0

    # ================================================
    # Persistence
    # ================================================
    def read_data(self, reader: TokenReader, ctx: ComputeContext) -> None:
        if reader.peek_token() == "<LearnRateCoef>":
            reader.expect_token("<LearnRateCoef>")
            self.learn_rate_coef = reader.read_float()
            reader.expect_token("<BiasLearnRateCoef>")
            self.bias_learn_rate_coef = reader.read_float()
        if reader.peek_token() == "<MaxNorm>":
            reader.expect_token("<MaxNorm>")
            self.max_norm = reader.read_float()
        self.linearity = reader.read_matrix(self.output_dim, self.input_dim, ctx.dtype)
        self.bias = reader.read_vector(self.output_dim, ctx.dtype)
        self.linearity_corr = np.zeros_like(self.linearity)
        self.bias_corr = np.zeros_like(self.bias)

    def write_data(self, writer: TokenWriter) -> None:
        writer.write_token("<LearnRateCoef>")
        writer.write_float(self.learn_rate_coef, np.float64)
        writer.write_token("<BiasLearnRateCoef>")
        writer.write_float(self.bias_learn_rate_coef, np.float64)
        writer.write_token("<MaxNorm>")
        writer.write_float(self.max_norm, np.float64)
        writer.write_matrix(self.linearity)
        writer.write_vector(self.bias)

    def info_gradient(self) -> str:
        return (
            f"\n  linearity_grad {moment_statistics(self.linearity_corr)}"
            f", lr-coef {self.learn_rate_coef}, max-norm {self.max_norm}"
            f"\n  bias_grad {moment_statistics(self.bias_corr)}"
            f", lr-coef {self.bias_learn_rate_coef}"
        )
