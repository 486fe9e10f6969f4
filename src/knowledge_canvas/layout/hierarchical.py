"""Hierarchical layout — column placement by distance to the nearest sink.

Phases:
  1. Topological order (Kahn's algorithm, stable cycle breaking)
  2. Layer assignment (longest path to a sink, walked in reverse order)
  3. Column ordering (component blocks, then in-degree, then name)
  4. Coordinate assignment (fixed-pitch columns, stacked rows)

Sinks land in the rightmost column and every node sits left of the nodes it
points to, so a chain A → B → C reads left to right.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

from knowledge_canvas.graph import DEFAULT_NODE_WIDTH, GraphIndex, GraphSnapshot, Point
from knowledge_canvas.layout.types import COMPONENT_GAP, H_GAP, MARGIN, V_GAP, LayoutNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HierarchicalConfig:
    """Spacing for the column layout, in world units."""

    margin: float = MARGIN
    horizontal_gap: float = H_GAP
    vertical_gap: float = V_GAP
    component_gap: float = COMPONENT_GAP


# ─── Topological Order ────────────────────────────────────────────────────────


def topological_order(index: GraphIndex) -> tuple[list[str], list[str]]:
    """Order nodes so that edges point forward wherever possible.

    Kahn's algorithm with id-sorted tie breaking. When the queue runs dry
    while nodes remain, the graph has a cycle: the remaining node with the
    fewest unresolved incoming edges (then the smallest id) is forced into
    the order and the algorithm resumes.

    Returns a tuple of:
    - order: every node id exactly once
    - forced: nodes that were forced to break a cycle, in forcing order
    """
    in_deg: dict[str, int] = {node_id: index.in_degree(node_id) for node_id in index.nodes}

    queue: deque[str] = deque(sorted(n for n, d in in_deg.items() if d == 0))
    placed: set[str] = set()
    order: list[str] = []
    forced: list[str] = []

    while len(order) < len(in_deg):
        if not queue:
            best = min((n for n in in_deg if n not in placed), key=lambda n: (in_deg[n], n))
            forced.append(best)
            queue.append(best)

        node = queue.popleft()
        if node in placed:
            continue
        placed.add(node)
        order.append(node)

        # One decrement per edge, so parallel edges are counted correctly.
        for _, succ in sorted(index.digraph.out_edges(node)):
            in_deg[succ] -= 1
            if in_deg[succ] == 0 and succ not in placed:
                queue.append(succ)

    if forced:
        logger.debug("Broke %d cycle(s) at %s", len(forced), forced)
    return order, forced


# ─── Layer Assignment ─────────────────────────────────────────────────────────


class LayerAssignment:
    """Result of layer assignment: each node's distance to the nearest sink.

    Layer 0 holds sinks. The visual column is ``max_layer - layer`` so that
    sources end up in column 0 and sinks in the rightmost column.

    Attributes:
        layers: Maps node id → layer (longest outgoing path to a sink).
        max_layer: Largest layer present, 0 for an empty graph.
        order: The topological order the layers were derived from.
        forced: Nodes forced into the order to break cycles.
    """

    def __init__(
        self,
        layers: dict[str, int],
        max_layer: int,
        order: list[str],
        forced: list[str],
    ) -> None:
        self.layers = layers
        self.max_layer = max_layer
        self.order = order
        self.forced = forced

    @property
    def is_approximate(self) -> bool:
        """True when the input contained a cycle."""
        return bool(self.forced)

    def column_of(self, node_id: str) -> int:
        return self.max_layer - self.layers[node_id]

    @classmethod
    def assign(cls, index: GraphIndex) -> LayerAssignment:
        """Walk the topological order in reverse, sinks first.

        A node with no successors gets layer 0. Otherwise its layer is one
        more than the largest layer among its successors. A successor that
        has not been computed yet (only possible across a broken cycle)
        counts as -1, so it adds nothing beyond the baseline.
        """
        order, forced = topological_order(index)

        layers: dict[str, int] = {}
        max_layer = 0
        for node_id in reversed(order):
            successors = index.successors(node_id)
            if not successors:
                layer = 0
            else:
                layer = 1 + max(layers.get(succ, -1) for succ in successors)
            layers[node_id] = layer
            max_layer = max(max_layer, layer)

        return cls(layers=layers, max_layer=max_layer, order=order, forced=forced)


# ─── Column Ordering ──────────────────────────────────────────────────────────


def rank_components(index: GraphIndex, columns: dict[str, int]) -> dict[str, int]:
    """Give every node the rank of its weakly connected component.

    Components are ordered by the leftmost column any of their nodes
    occupies, then by their smallest node id.
    """
    components = index.components()
    keyed = sorted(
        components,
        key=lambda comp: (min(columns.get(n, 0) for n in comp), min(comp)),
    )
    rank: dict[str, int] = {}
    for i, comp in enumerate(keyed):
        for node_id in comp:
            rank[node_id] = i
    return rank


def order_columns(
    index: GraphIndex,
    columns: dict[str, int],
    component_rank: dict[str, int],
) -> list[list[str]]:
    """Group nodes by column and order each column top to bottom.

    Within a column nodes are kept in contiguous component blocks, then
    sorted by ascending in-degree and finally by title and id.
    """
    column_count = (max(columns.values()) + 1) if columns else 0
    ordering: list[list[str]] = [[] for _ in range(column_count)]
    for node_id, column in columns.items():
        ordering[column].append(node_id)

    def sort_key(node_id: str) -> tuple[int, int, str, str]:
        return (
            component_rank.get(node_id, len(component_rank)),
            index.in_degree(node_id),
            index.nodes[node_id].title,
            node_id,
        )

    for column_nodes in ordering:
        column_nodes.sort(key=sort_key)
    return ordering


# ─── Coordinate Assignment ────────────────────────────────────────────────────


def assign_coordinates(
    index: GraphIndex,
    ordering: list[list[str]],
    component_rank: dict[str, int],
    config: HierarchicalConfig,
) -> list[LayoutNode]:
    """Place columns at a fixed pitch and stack each column's nodes.

    Column pitch is the widest node plus the horizontal gap, so no two
    columns overlap. A new component block inside a column starts after an
    extra ``component_gap``.
    """
    column_width = max((node.dimensions.width for node in index.nodes.values()), default=DEFAULT_NODE_WIDTH)
    pitch = column_width + config.horizontal_gap

    nodes: list[LayoutNode] = []
    for column, column_nodes in enumerate(ordering):
        x = config.margin + column * pitch
        y = config.margin
        previous_component: int | None = None
        for row, node_id in enumerate(column_nodes):
            size = index.nodes[node_id].dimensions
            component = component_rank.get(node_id, -1)
            if previous_component is not None and component != previous_component:
                y += config.component_gap
            nodes.append(
                LayoutNode(
                    id=node_id,
                    column=column,
                    row=row,
                    component=component,
                    x=x,
                    y=y,
                    width=size.width,
                    height=size.height,
                )
            )
            y += size.height + config.vertical_gap
            previous_component = component

    return nodes


# ─── Full Pipeline ────────────────────────────────────────────────────────────


def compute_hierarchy(
    snapshot: GraphSnapshot,
    config: HierarchicalConfig | None = None,
) -> list[LayoutNode]:
    """Run the full hierarchical pipeline and return one LayoutNode per node."""
    config = config or HierarchicalConfig()
    index = GraphIndex.build(snapshot)
    if not index.nodes:
        return []

    la = LayerAssignment.assign(index)
    columns: dict[str, int] = {node_id: la.column_of(node_id) for node_id in la.layers}

    # Anything the layering missed goes into a bucket after the last column.
    missing = [node_id for node_id in index.nodes if node_id not in columns]
    if missing:
        logger.warning("Placing %d unlayered node(s) in a fallback column", len(missing))
        fallback = (max(columns.values()) + 1) if columns else 0
        for node_id in missing:
            columns[node_id] = fallback

    component_rank = rank_components(index, columns)
    ordering = order_columns(index, columns, component_rank)
    layout_nodes = assign_coordinates(index, ordering, component_rank, config)

    logger.debug(
        "Hierarchical layout: %d node(s) in %d column(s)%s",
        len(layout_nodes),
        len(ordering),
        " (cyclic input, approximate)" if la.is_approximate else "",
    )
    return layout_nodes


def hierarchical_layout(
    snapshot: GraphSnapshot,
    config: HierarchicalConfig | None = None,
) -> dict[str, Point]:
    """Node id → new top-left position for every node in the snapshot."""
    return {ln.id: ln.position for ln in compute_hierarchy(snapshot, config)}
