from .assigner import TopologicalAssigner
from .buffers import BufferArena, NodeBuffers
from .component_graph import ComponentGraph
from .description import NetworkDescription, StructureType, parse_description

__all__ = [
    "BufferArena",
    "ComponentGraph",
    "NetworkDescription",
    "NodeBuffers",
    "StructureType",
    "TopologicalAssigner",
    "parse_description",
]
