"""Graph traversal and auto-layout engine for a knowledge canvas."""

from knowledge_canvas.graph import (
    Edge,
    FileType,
    GraphIndex,
    GraphSnapshot,
    Node,
    NodeKind,
    Point,
    Size,
    file_type_for_name,
)
from knowledge_canvas.layout import (
    ForceConfig,
    HierarchicalConfig,
    LayoutCoordinator,
    LayoutStrategy,
    PositionUpdate,
    SimulationState,
    force_directed_layout,
    hierarchical_layout,
    step,
)
from knowledge_canvas.traversal import SearchQuery, TraversalResult, contextual_traversal

__all__ = [
    "Edge",
    "FileType",
    "ForceConfig",
    "GraphIndex",
    "GraphSnapshot",
    "HierarchicalConfig",
    "LayoutCoordinator",
    "LayoutStrategy",
    "Node",
    "NodeKind",
    "Point",
    "PositionUpdate",
    "SearchQuery",
    "SimulationState",
    "Size",
    "TraversalResult",
    "contextual_traversal",
    "file_type_for_name",
    "force_directed_layout",
    "hierarchical_layout",
    "step",
]
