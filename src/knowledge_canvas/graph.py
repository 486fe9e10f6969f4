"""Graph data model and adjacency index.

A ``GraphSnapshot`` is the immutable (nodes, edges) pair handed to every
engine call. ``GraphIndex`` turns it into O(1) neighbour lookups backed by a
frozen ``networkx.MultiDiGraph``; every other component consumes the index.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

import networkx as nx

logger = logging.getLogger(__name__)

# ─── Node Defaults ────────────────────────────────────────────────────────────

DEFAULT_NODE_WIDTH: float = 256.0
NOTE_NODE_HEIGHT: float = 160.0
FILE_NODE_HEIGHT: float = 120.0


class NodeKind(str, Enum):
    """What a node on the canvas refers to."""

    Note = "note"
    File = "file"
    Link = "link"


class FileType(str, Enum):
    """Coarse file classification shown on file nodes."""

    PDF = "PDF"
    DOCX = "DOCX"
    TXT = "TXT"
    IMAGE = "IMAGE"
    OTHER = "OTHER"


_IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "svg"})


def file_type_for_name(file_name: str) -> FileType:
    """Classify a file by its extension (case-insensitive)."""
    _, dot, extension = file_name.rpartition(".")
    extension = extension.lower() if dot else ""
    if extension == "pdf":
        return FileType.PDF
    if extension in ("doc", "docx"):
        return FileType.DOCX
    if extension == "txt":
        return FileType.TXT
    if extension in _IMAGE_EXTENSIONS:
        return FileType.IMAGE
    return FileType.OTHER


# ─── Geometry ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Point:
    """A 2D point (or vector) in world coordinates."""

    x: float
    y: float

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)

    def scaled(self, factor: float) -> Point:
        return Point(self.x * factor, self.y * factor)

    def distance_to(self, other: Point) -> float:
        return ((self.x - other.x) ** 2 + (self.y - other.y) ** 2) ** 0.5


ORIGIN = Point(0.0, 0.0)


@dataclass(frozen=True)
class Size:
    width: float
    height: float


def default_size(kind: NodeKind) -> Size:
    """Size given to a node created without explicit dimensions."""
    height = NOTE_NODE_HEIGHT if kind == NodeKind.Note else FILE_NODE_HEIGHT
    return Size(DEFAULT_NODE_WIDTH, height)


# ─── Entities ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Node:
    """A positioned item on the canvas.

    ``velocity`` and ``pin`` are force-simulation fields owned by the caller;
    they travel with the record between simulation steps. ``payload`` is an
    opaque slot for whatever the host application stores alongside the node;
    the engine never inspects it.
    """

    id: str
    kind: NodeKind = NodeKind.Note
    position: Point = ORIGIN
    size: Size | None = None
    title: str = ""
    content: str = ""
    tags: frozenset[str] = frozenset()
    file_type: FileType | None = None
    velocity: Point = ORIGIN
    pin: Point | None = None
    payload: Any = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.size is None:
            object.__setattr__(self, "size", default_size(self.kind))
        if not isinstance(self.tags, frozenset):
            object.__setattr__(self, "tags", frozenset(self.tags))

    @property
    def searchable_text(self) -> str:
        """Title plus body; only notes carry a searchable body."""
        if self.kind == NodeKind.Note and self.content:
            return f"{self.title}\n{self.content}"
        return self.title

    @property
    def dimensions(self) -> Size:
        """The node's size, never None."""
        return self.size if self.size is not None else default_size(self.kind)

    @property
    def center(self) -> Point:
        size = self.dimensions
        return Point(self.position.x + size.width / 2, self.position.y + size.height / 2)

    def moved_to(self, position: Point) -> Node:
        return replace(self, position=position)


@dataclass(frozen=True)
class Edge:
    """A directed relationship ``source_id → target_id``."""

    id: str
    source_id: str
    target_id: str

    @property
    def is_self_loop(self) -> bool:
        return self.source_id == self.target_id

    def other_end(self, node_id: str) -> str | None:
        """The endpoint opposite ``node_id``, or None for a self-loop."""
        if self.is_self_loop:
            return None
        return self.target_id if self.source_id == node_id else self.source_id


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable (nodes, edges) pair passed into each engine call."""

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))

    @classmethod
    def of(cls, nodes: Iterable[Node], edges: Iterable[Edge] = ()) -> GraphSnapshot:
        return cls(nodes=tuple(nodes), edges=tuple(edges))

    def node_ids(self) -> frozenset[str]:
        return frozenset(n.id for n in self.nodes)

    def edge_ids(self) -> frozenset[str]:
        return frozenset(e.id for e in self.edges)

    def is_empty(self) -> bool:
        return not self.nodes


# ─── Graph Index ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class GraphIndex:
    """Adjacency lookups over a snapshot.

    Attributes:
        nodes: Node id → Node, first occurrence wins on duplicate ids.
        digraph: Frozen MultiDiGraph with one keyed edge per non-loop edge.
            Edge attribute ``data`` holds the ``Edge`` record.
        edges: Every kept edge (self-loops included) in snapshot order.
        dropped_edges: Edges referencing a node absent from the snapshot.
    """

    nodes: Mapping[str, Node]
    digraph: nx.MultiDiGraph
    edges: tuple[Edge, ...]
    dropped_edges: tuple[Edge, ...]
    _incident: Mapping[str, tuple[Edge, ...]]
    _loops: Mapping[str, tuple[Edge, ...]]

    @classmethod
    def build(cls, snapshot: GraphSnapshot) -> GraphIndex:
        """Index a snapshot, silently skipping dangling edges."""
        nodes: dict[str, Node] = {}
        for node in snapshot.nodes:
            if node.id in nodes:
                logger.warning("Duplicate node id %r ignored", node.id)
                continue
            nodes[node.id] = node

        g: nx.MultiDiGraph = nx.MultiDiGraph()
        g.add_nodes_from(nodes)

        kept: list[Edge] = []
        dropped: list[Edge] = []
        seen_edge_ids: set[str] = set()
        incident: dict[str, list[Edge]] = {node_id: [] for node_id in nodes}
        loops: dict[str, list[Edge]] = {}

        for edge in snapshot.edges:
            if edge.id in seen_edge_ids:
                logger.warning("Duplicate edge id %r ignored", edge.id)
                continue
            if edge.source_id not in nodes or edge.target_id not in nodes:
                dropped.append(edge)
                continue
            seen_edge_ids.add(edge.id)
            kept.append(edge)
            incident[edge.source_id].append(edge)
            if edge.is_self_loop:
                loops.setdefault(edge.source_id, []).append(edge)
                continue
            incident[edge.target_id].append(edge)
            g.add_edge(edge.source_id, edge.target_id, key=edge.id, data=edge)

        if dropped:
            logger.debug("Dropped %d dangling edge(s)", len(dropped))

        return cls(
            nodes=MappingProxyType(nodes),
            digraph=nx.freeze(g),
            edges=tuple(kept),
            dropped_edges=tuple(dropped),
            _incident=MappingProxyType({k: tuple(v) for k, v in incident.items()}),
            _loops=MappingProxyType({k: tuple(v) for k, v in loops.items()}),
        )

    def __len__(self) -> int:
        return len(self.nodes)

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def successors(self, node_id: str) -> list[str]:
        if node_id not in self.digraph:
            return []
        return list(self.digraph.successors(node_id))

    def predecessors(self, node_id: str) -> list[str]:
        if node_id not in self.digraph:
            return []
        return list(self.digraph.predecessors(node_id))

    def neighbours(self, node_id: str) -> list[str]:
        """Distinct nodes adjacent to ``node_id`` ignoring edge direction."""
        return list(dict.fromkeys(self.successors(node_id) + self.predecessors(node_id)))

    def out_degree(self, node_id: str) -> int:
        return self.digraph.out_degree(node_id) if node_id in self.digraph else 0

    def in_degree(self, node_id: str) -> int:
        return self.digraph.in_degree(node_id) if node_id in self.digraph else 0

    def incident_edges(self, node_id: str) -> tuple[Edge, ...]:
        """Every kept edge touching ``node_id``, self-loops included."""
        return self._incident.get(node_id, ())

    def loops_of(self, node_id: str) -> tuple[Edge, ...]:
        return self._loops.get(node_id, ())

    def components(self) -> list[set[str]]:
        """Weakly connected components; isolated nodes form singletons."""
        return [set(c) for c in nx.weakly_connected_components(self.digraph)]
