"""Public API of nnetgraph."""

from nnetgraph.core.component import (
    AffineTransform,
    ChunkAware,
    Component,
    ComponentKind,
    Dropout,
    DropoutAware,
    FrameFlagAware,
    Identity,
    InputLayer,
    OutputLayer,
    ReLU,
    Resettable,
    SequenceAware,
    Sigmoid,
    Softmax,
    Tanh,
    UpdatableComponent,
)
from nnetgraph.core.component.registry import lookup_component, register_component
from nnetgraph.core.context import ComputeContext
from nnetgraph.core.graph import ComponentGraph, StructureType, TopologicalAssigner
from nnetgraph.core.training import TrainOptions
from nnetgraph.utils.errors import (
    ConfigError,
    CycleError,
    DimensionMismatchError,
    NnetGraphError,
    NumericInstabilityError,
    StructuralInvariantError,
)

__all__ = [
    "AffineTransform",
    "ChunkAware",
    "Component",
    "ComponentGraph",
    "ComponentKind",
    "ComputeContext",
    "ConfigError",
    "CycleError",
    "DimensionMismatchError",
    "Dropout",
    "DropoutAware",
    "FrameFlagAware",
    "Identity",
    "InputLayer",
    "NnetGraphError",
    "NumericInstabilityError",
    "OutputLayer",
    "ReLU",
    "Resettable",
    "SequenceAware",
    "Sigmoid",
    "Softmax",
    "StructuralInvariantError",
    "StructureType",
    "Tanh",
    "TopologicalAssigner",
    "TrainOptions",
    "UpdatableComponent",
    "lookup_component",
    "register_component",
]
