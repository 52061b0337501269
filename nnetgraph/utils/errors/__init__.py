from .exceptions import (
    ConfigError,
    CycleError,
    DimensionMismatchError,
    NnetGraphError,
    NumericInstabilityError,
    StructuralInvariantError,
)

__all__ = [
    "ConfigError",
    "CycleError",
    "DimensionMismatchError",
    "NnetGraphError",
    "NumericInstabilityError",
    "StructuralInvariantError",
]
