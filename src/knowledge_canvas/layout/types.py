"""Layout IR types and geometry constants shared by the layout strategies."""

from __future__ import annotations

from dataclasses import dataclass, field

from knowledge_canvas.graph import Point

# ─── Geometry constants (world units) ─────────────────────────────────────────

MARGIN: float = 40.0  # distance of the first column/row from the origin
H_GAP: float = 120.0  # horizontal gap between columns
V_GAP: float = 40.0  # vertical gap between nodes stacked in a column
COMPONENT_GAP: float = 80.0  # extra vertical gap between component blocks

# Positions closer than this to the current one are not reported as changed.
POSITION_TOLERANCE: float = 1e-6


@dataclass
class LayoutNode:
    """A positioned node produced by the hierarchical layout."""

    id: str
    column: int
    row: int
    component: int
    x: float
    y: float
    width: float
    height: float

    @property
    def position(self) -> Point:
        return Point(self.x, self.y)


@dataclass(frozen=True)
class PositionUpdate:
    """Diff emitted for the persistence collaborator.

    Attributes:
        positions: Node id → new position, only for nodes that moved.
        velocities: Node id → velocity after the last simulation step
            (empty for the hierarchical strategy).
        finished: True once the layout has nothing left to do.
    """

    positions: dict[str, Point] = field(default_factory=dict)
    velocities: dict[str, Point] = field(default_factory=dict)
    finished: bool = True

    def __bool__(self) -> bool:
        return bool(self.positions)


def position_diff(
    current: dict[str, Point],
    proposed: dict[str, Point],
    tolerance: float = POSITION_TOLERANCE,
) -> dict[str, Point]:
    """Subset of ``proposed`` that differs from ``current``."""
    changed: dict[str, Point] = {}
    for node_id, point in proposed.items():
        old = current.get(node_id)
        if old is None or abs(old.x - point.x) > tolerance or abs(old.y - point.y) > tolerance:
            changed[node_id] = point
    return changed
