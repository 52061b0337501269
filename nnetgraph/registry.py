"""Registration of the built-in component types."""

from nnetgraph.core.component.registry import COMPONENT_REGISTRY, register_component


def register_all() -> None:
    """Register every built-in component class under its marker (idempotent)."""
    from nnetgraph.core.component import (
        AffineTransform,
        Dropout,
        Identity,
        InputLayer,
        OutputLayer,
        ReLU,
        Sigmoid,
        Softmax,
        Tanh,
    )

    for cls in (
        InputLayer,
        OutputLayer,
        Identity,
        AffineTransform,
        Sigmoid,
        Tanh,
        ReLU,
        Softmax,
        Dropout,
    ):
        if cls.marker not in COMPONENT_REGISTRY:
            register_component(cls)
