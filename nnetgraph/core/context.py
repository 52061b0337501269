"""Shared numeric context threaded through every component call."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


@dataclass
class ComputeContext:
    """
    Numeric settings shared by a graph and all of its components.

    Attributes:
        dtype (np.dtype): Floating-point type of buffers and parameters.
        seed (int | None): Seed used to build :attr:`rng` when none is given.
        rng (np.random.Generator): Random source for initialization and dropout.

    """

    dtype: np.dtype = field(default_factory=lambda: np.dtype(np.float32))
    seed: int | None = None
    rng: np.random.Generator | None = None

    def __post_init__(self):
        self.dtype = np.dtype(self.dtype)
        if not np.issubdtype(self.dtype, np.floating):
            msg = f"ComputeContext dtype must be floating point, got {self.dtype}."
            raise TypeError(msg)
        if self.rng is None:
            self.rng = np.random.default_rng(self.seed)

    def zeros(self, rows: int, cols: int) -> np.ndarray:
        """Allocate a zero matrix in the context dtype."""
        return np.zeros((rows, cols), dtype=self.dtype)

    def asarray(self, values) -> np.ndarray:
        """Convert `values` to the context dtype (no copy when already matching)."""
        return np.asarray(values, dtype=self.dtype)
