"""Contextual traversal — the focused subgraph around search matches.

Every node matching the search predicate seeds a depth-bounded walk that
treats edges as undirected. Nodes reached within ``max_depth`` hops of any
seed are collected, along with the edges touching them. An edge is kept
only if both of its endpoints were collected, and none are kept at depth 0.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from knowledge_canvas.graph import Edge, GraphIndex, GraphSnapshot, Node, NodeKind

logger = logging.getLogger(__name__)

NodePredicate = Callable[[Node], bool]


# ─── Search Predicate ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SearchQuery:
    """Free-text term plus a set of required tags.

    The text matches case-insensitively against the title, the body of note
    nodes, and tag names. Every selected tag must be present on the node.
    """

    text: str = ""
    tags: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if not isinstance(self.tags, frozenset):
            object.__setattr__(self, "tags", frozenset(self.tags))

    @property
    def term(self) -> str:
        return self.text.strip().lower()

    @property
    def is_empty(self) -> bool:
        return not self.term and not self.tags

    def __call__(self, node: Node) -> bool:
        return self.matches(node)

    def matches(self, node: Node) -> bool:
        if self.tags and not self.tags <= node.tags:
            return False
        term = self.term
        if not term:
            return True
        if term in node.title.lower():
            return True
        if node.kind == NodeKind.Note and term in node.content.lower():
            return True
        return any(term in tag.lower() for tag in node.tags)


# ─── Result ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TraversalResult:
    """Filtered view handed to the renderer and to the layout coordinator."""

    nodes: tuple[Node, ...]
    edges: tuple[Edge, ...]
    matched_ids: frozenset[str]

    @property
    def node_ids(self) -> frozenset[str]:
        return frozenset(n.id for n in self.nodes)

    @property
    def edge_ids(self) -> frozenset[str]:
        return frozenset(e.id for e in self.edges)

    def as_snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(nodes=self.nodes, edges=self.edges)


# ─── Traversal ────────────────────────────────────────────────────────────────


def _walk(
    index: GraphIndex,
    source_id: str,
    max_depth: int,
    collected: set[str],
    crossed_edges: set[str],
) -> None:
    """Depth-bounded undirected walk from one seed.

    The worklist carries (node, depth, path) where ``path`` holds the nodes
    on the current branch only, so a node reachable along two branches of a
    diamond is still visited from both. ``best_depth`` prunes a revisit that
    arrives no shallower than an earlier one, since it cannot reach anything
    new.

    With ``max_depth`` of one or more, every visited node records its incident
    edges, frontier nodes included, so an edge joining two nodes at the depth
    limit survives. At depth 0 no edge is recorded.
    """
    best_depth: dict[str, int] = {}
    stack: list[tuple[str, int, frozenset[str]]] = [(source_id, 0, frozenset())]

    while stack:
        node_id, depth, path = stack.pop()
        if depth > max_depth or node_id in path:
            continue
        if best_depth.get(node_id, max_depth + 1) <= depth:
            continue
        best_depth[node_id] = depth
        collected.add(node_id)

        # Depth 0 shows the matches alone; otherwise frontier edges count too.
        if max_depth > 0:
            crossed_edges.update(edge.id for edge in index.incident_edges(node_id))

        if depth == max_depth:
            continue

        branch = path | {node_id}
        for edge in index.incident_edges(node_id):
            neighbour = edge.other_end(node_id)
            if neighbour is None or neighbour in branch:
                continue
            stack.append((neighbour, depth + 1, branch))


def contextual_traversal(
    snapshot: GraphSnapshot,
    predicate: SearchQuery | NodePredicate | None,
    max_depth: int,
) -> TraversalResult:
    """Extract the subgraph within ``max_depth`` undirected hops of any match.

    An empty ``SearchQuery`` (or None) is the no-op filter and yields the
    whole snapshot, minus dangling edges. An active predicate that matches
    nothing yields an empty result. Output order follows the snapshot.
    """
    index = GraphIndex.build(snapshot)

    if max_depth < 0:
        logger.warning("Negative traversal depth %d treated as 0", max_depth)
        max_depth = 0

    if predicate is None or (isinstance(predicate, SearchQuery) and predicate.is_empty):
        return TraversalResult(
            nodes=tuple(index.nodes.values()),
            edges=index.edges,
            matched_ids=frozenset(),
        )

    matched = [node for node in index.nodes.values() if predicate(node)]
    logger.debug("Search matched %d of %d node(s)", len(matched), len(index))
    if not matched:
        return TraversalResult(nodes=(), edges=(), matched_ids=frozenset())

    collected: set[str] = set()
    crossed_edges: set[str] = set()
    for node in matched:
        _walk(index, node.id, max_depth, collected, crossed_edges)

    nodes = tuple(node for node_id, node in index.nodes.items() if node_id in collected)
    edges = tuple(
        edge
        for edge in index.edges
        if edge.id in crossed_edges and edge.source_id in collected and edge.target_id in collected
    )
    logger.debug("Traversal depth %d kept %d node(s), %d edge(s)", max_depth, len(nodes), len(edges))

    return TraversalResult(
        nodes=nodes,
        edges=edges,
        matched_ids=frozenset(node.id for node in matched),
    )
