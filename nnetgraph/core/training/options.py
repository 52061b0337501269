"""Hyperparameters consumed by updatable components."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any


@dataclass(frozen=True)
class TrainOptions:
    """
    Stochastic gradient descent settings.

    Attributes:
        learn_rate (float): Global learning rate. Scaled per component by
            its learn-rate coefficients.
        momentum (float): Momentum applied to accumulated gradients.
        l1_penalty (float): L1 regularization strength (per frame).
        l2_penalty (float): L2 regularization strength (per frame).

    """

    learn_rate: float = 0.008
    momentum: float = 0.0
    l1_penalty: float = 0.0
    l2_penalty: float = 0.0

    def __post_init__(self):
        for key, value in asdict(self).items():
            if value < 0:
                msg = f"TrainOptions.{key} must be non-negative, got {value}."
                raise ValueError(msg)

    def with_updates(self, **kwargs: Any) -> TrainOptions:
        """Return a copy with the given fields replaced."""
        return replace(self, **kwargs)

    def get_config(self) -> dict[str, float]:
        """Return a serializable dict of the options."""
        return asdict(self)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> TrainOptions:
        """Rebuild options from :meth:`get_config` output."""
        return cls(**config)
