"""Optional capabilities a component may implement beyond the core interface."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    import numpy as np


# ================================================
# Recurrent state
# ================================================
@runtime_checkable
class Resettable(Protocol):
    """A component that carries per-stream state across batches."""

    def reset_streams(self, stream_reset_flags: Sequence[int]) -> None:
        """
        Clear the state of every stream whose flag is non-zero.

        Args:
            stream_reset_flags (Sequence[int]): One flag per parallel stream.

        """
        ...


@runtime_checkable
class SequenceAware(Protocol):
    """A component that needs the length of each sequence in the batch."""

    def set_seq_lengths(self, seq_lengths: Sequence[int]) -> None: ...


@runtime_checkable
class ChunkAware(Protocol):
    """A component that processes its input in fixed-size chunks."""

    def set_chunk_size(self, chunk_size: int) -> None: ...


# ================================================
# Regularization & masking
# ================================================
@runtime_checkable
class DropoutAware(Protocol):
    """A component whose dropout retention can be changed during training."""

    @property
    def dropout_retention(self) -> float:
        """Probability of keeping a unit."""
        ...

    def set_dropout_retention(self, retention: float) -> None: ...


@runtime_checkable
class FrameFlagAware(Protocol):
    """A component that consumes per-frame flags (e.g. sentence boundaries)."""

    def set_flags(self, flags: np.ndarray) -> None: ...
