"""Auto-layout strategies and the coordinator that drives them."""

from knowledge_canvas.layout.coordinator import LayoutCoordinator, LayoutStrategy
from knowledge_canvas.layout.force import ForceConfig, SimulationState, force_directed_layout, run, step
from knowledge_canvas.layout.hierarchical import HierarchicalConfig, compute_hierarchy, hierarchical_layout
from knowledge_canvas.layout.types import LayoutNode, PositionUpdate

__all__ = [
    "ForceConfig",
    "HierarchicalConfig",
    "LayoutCoordinator",
    "LayoutNode",
    "LayoutStrategy",
    "PositionUpdate",
    "SimulationState",
    "compute_hierarchy",
    "force_directed_layout",
    "hierarchical_layout",
    "run",
    "step",
]
