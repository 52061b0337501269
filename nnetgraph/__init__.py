from nnetgraph.api import (
    AffineTransform,
    ChunkAware,
    Component,
    ComponentGraph,
    ComponentKind,
    ComputeContext,
    ConfigError,
    CycleError,
    DimensionMismatchError,
    Dropout,
    DropoutAware,
    FrameFlagAware,
    Identity,
    InputLayer,
    NnetGraphError,
    NumericInstabilityError,
    OutputLayer,
    ReLU,
    Resettable,
    SequenceAware,
    Sigmoid,
    Softmax,
    StructuralInvariantError,
    StructureType,
    Tanh,
    TopologicalAssigner,
    TrainOptions,
    UpdatableComponent,
    lookup_component,
    register_component,
)

from nnetgraph.registry import register_all

register_all()
