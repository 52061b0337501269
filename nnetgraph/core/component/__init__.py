from .activations import ReLU, Sigmoid, Softmax, Tanh
from .affine import AffineTransform
from .base import Component, ComponentKind, UpdatableComponent
from .dropout import Dropout
from .protocols import ChunkAware, DropoutAware, FrameFlagAware, Resettable, SequenceAware
from .terminals import Identity, InputLayer, OutputLayer

__all__ = [
    "AffineTransform",
    "ChunkAware",
    "Component",
    "ComponentKind",
    "Dropout",
    "DropoutAware",
    "FrameFlagAware",
    "Identity",
    "InputLayer",
    "OutputLayer",
    "ReLU",
    "Resettable",
    "SequenceAware",
    "Sigmoid",
    "Softmax",
    "Tanh",
    "UpdatableComponent",
]
