"""Tests for traversal.py — search matching and depth-bounded contextual traversal."""

from __future__ import annotations

from knowledge_canvas.graph import Edge, GraphSnapshot, Node, NodeKind
from knowledge_canvas.traversal import SearchQuery, TraversalResult, contextual_traversal

# ─── Helpers ──────────────────────────────────────────────────────────────────


def make_snapshot(node_ids: str, *edges: tuple[str, str]) -> GraphSnapshot:
    """Nodes titled by their id; edge ids are the concatenated endpoints."""
    nodes = [Node(id=nid, title=nid) for nid in node_ids]
    links = [Edge(id=f"{src}{tgt}", source_id=src, target_id=tgt) for src, tgt in edges]
    return GraphSnapshot.of(nodes, links)


def title_is(*titles: str):
    wanted = set(titles)
    return lambda node: node.title in wanted


def ids(result: TraversalResult) -> set[str]:
    return set(result.node_ids)


def assert_closed(result: TraversalResult) -> None:
    node_ids = result.node_ids
    for edge in result.edges:
        assert edge.source_id in node_ids and edge.target_id in node_ids, f"Edge {edge.id} escapes the node set"


# ─── SearchQuery ──────────────────────────────────────────────────────────────


class TestSearchQuery:
    def test_empty_query(self):
        assert SearchQuery().is_empty
        assert SearchQuery(text="   ").is_empty
        assert not SearchQuery(text="x").is_empty
        assert not SearchQuery(tags=frozenset({"t"})).is_empty

    def test_title_match_is_case_insensitive(self):
        assert SearchQuery(text="grAPH").matches(Node(id="1", title="Graph theory"))

    def test_note_body_matches(self):
        node = Node(id="1", kind=NodeKind.Note, title="Untitled", content="Dijkstra notes")
        assert SearchQuery(text="dijkstra").matches(node)

    def test_file_body_does_not_match(self):
        node = Node(id="1", kind=NodeKind.File, title="scan.pdf", content="dijkstra")
        assert not SearchQuery(text="dijkstra").matches(node)

    def test_text_matches_tag_names(self):
        node = Node(id="1", title="Untitled", tags=frozenset({"algorithms"}))
        assert SearchQuery(text="algo").matches(node)

    def test_all_selected_tags_required(self):
        node = Node(id="1", tags=frozenset({"a", "b"}))
        assert SearchQuery(tags=frozenset({"a"})).matches(node)
        assert SearchQuery(tags=frozenset({"a", "b"})).matches(node)
        assert not SearchQuery(tags=frozenset({"a", "c"})).matches(node)

    def test_text_and_tags_combined(self):
        node = Node(id="1", title="Graph", tags=frozenset({"math"}))
        assert SearchQuery(text="graph", tags=frozenset({"math"})).matches(node)
        assert not SearchQuery(text="tree", tags=frozenset({"math"})).matches(node)

    def test_query_is_callable(self):
        assert SearchQuery(text="a")(Node(id="1", title="abc"))


# ─── Contextual Traversal ─────────────────────────────────────────────────────


class TestContextualTraversal:
    def test_example_depth_one(self):
        """A→B→C plus isolated D; match C at depth 1 → {B, C} and edge B→C."""
        snapshot = make_snapshot("ABCD", ("A", "B"), ("B", "C"))
        result = contextual_traversal(snapshot, title_is("C"), 1)
        assert ids(result) == {"B", "C"}
        assert set(result.edge_ids) == {"BC"}
        assert result.matched_ids == {"C"}

    def test_depth_zero_returns_matches_only(self):
        snapshot = make_snapshot("ABC", ("A", "B"), ("B", "C"))
        result = contextual_traversal(snapshot, title_is("A", "B"), 0)
        assert ids(result) == {"A", "B"}
        assert result.edges == ()

    def test_edges_treated_as_undirected(self):
        snapshot = make_snapshot("ABC", ("A", "B"), ("C", "B"))
        result = contextual_traversal(snapshot, title_is("B"), 1)
        assert ids(result) == {"A", "B", "C"}
        assert set(result.edge_ids) == {"AB", "CB"}

    def test_depth_monotonic(self):
        """Each extra hop of depth only ever adds nodes."""
        snapshot = make_snapshot(
            "ABCDEFG",
            ("A", "B"),
            ("B", "C"),
            ("C", "D"),
            ("D", "B"),
            ("E", "F"),
            ("C", "E"),
        )
        previous: set[str] = set()
        for depth in range(0, 6):
            current = ids(contextual_traversal(snapshot, title_is("A"), depth))
            assert previous <= current, f"depth {depth} lost nodes {previous - current}"
            previous = current
        assert "G" not in previous

    def test_closure_invariant(self):
        snapshot = make_snapshot("ABCDE", ("A", "B"), ("B", "C"), ("C", "D"), ("D", "E"), ("E", "A"))
        for depth in range(0, 4):
            assert_closed(contextual_traversal(snapshot, title_is("A"), depth))

    def test_edge_between_frontier_nodes_kept(self):
        """B and C both sit at the depth limit; the B–C edge still shows."""
        snapshot = make_snapshot("ABC", ("A", "B"), ("A", "C"), ("B", "C"))
        result = contextual_traversal(snapshot, title_is("A"), 1)
        assert ids(result) == {"A", "B", "C"}
        assert set(result.edge_ids) == {"AB", "AC", "BC"}

    def test_every_internal_edge_kept(self):
        snapshot = make_snapshot(
            "ABCDEFG",
            ("A", "B"),
            ("A", "C"),
            ("B", "C"),
            ("C", "D"),
            ("B", "D"),
            ("D", "E"),
            ("E", "F"),
            ("D", "F"),
            ("F", "G"),
        )
        for depth in range(1, 4):
            result = contextual_traversal(snapshot, title_is("A"), depth)
            node_ids = result.node_ids
            internal = {e.id for e in snapshot.edges if e.source_id in node_ids and e.target_id in node_ids}
            assert set(result.edge_ids) == internal, f"depth {depth} missed {internal - result.edge_ids}"

    def test_cycle_terminates(self):
        snapshot = make_snapshot("ABC", ("A", "B"), ("B", "C"), ("C", "A"), ("B", "A"))
        result = contextual_traversal(snapshot, title_is("A"), 50)
        assert ids(result) == {"A", "B", "C"}
        assert set(result.edge_ids) == {"AB", "BC", "CA", "BA"}

    def test_diamond_reached_through_shorter_branch(self):
        """D is 2 hops away via B but 4 via the long branch; depth counts the short one."""
        snapshot = make_snapshot(
            "ABCDXY",
            ("A", "X"),
            ("X", "Y"),
            ("Y", "C"),
            ("C", "D"),
            ("A", "B"),
            ("B", "D"),
        )
        result = contextual_traversal(snapshot, title_is("A"), 2)
        assert {"A", "B", "D", "X", "Y"} <= ids(result)

    def test_multiple_sources_union(self):
        snapshot = make_snapshot("ABCDE", ("A", "B"), ("D", "E"))
        result = contextual_traversal(snapshot, title_is("A", "E"), 1)
        assert ids(result) == {"A", "B", "D", "E"}

    def test_self_loop_does_not_crash(self):
        snapshot = make_snapshot("AB", ("A", "A"), ("A", "B"))
        result = contextual_traversal(snapshot, title_is("A"), 1)
        assert ids(result) == {"A", "B"}
        assert set(result.edge_ids) == {"AA", "AB"}

    def test_dangling_edge_ignored(self):
        snapshot = GraphSnapshot.of(
            [Node(id="A", title="A")],
            [Edge(id="e", source_id="A", target_id="ghost")],
        )
        result = contextual_traversal(snapshot, title_is("A"), 3)
        assert ids(result) == {"A"}
        assert result.edges == ()

    def test_empty_query_returns_full_snapshot(self):
        snapshot = make_snapshot("ABC", ("A", "B"))
        result = contextual_traversal(snapshot, SearchQuery(), 0)
        assert ids(result) == {"A", "B", "C"}
        assert set(result.edge_ids) == {"AB"}

    def test_none_predicate_returns_full_snapshot(self):
        snapshot = make_snapshot("AB", ("A", "B"))
        assert ids(contextual_traversal(snapshot, None, 1)) == {"A", "B"}

    def test_active_query_without_matches_is_empty(self):
        snapshot = make_snapshot("AB", ("A", "B"))
        result = contextual_traversal(snapshot, SearchQuery(text="zzz"), 3)
        assert result.nodes == ()
        assert result.edges == ()

    def test_search_query_predicate(self):
        snapshot = GraphSnapshot.of(
            [
                Node(id="1", title="Graph layouts"),
                Node(id="2", title="Unrelated"),
                Node(id="3", title="Far"),
            ],
            [Edge(id="a", source_id="1", target_id="2"), Edge(id="b", source_id="2", target_id="3")],
        )
        result = contextual_traversal(snapshot, SearchQuery(text="layout"), 1)
        assert ids(result) == {"1", "2"}

    def test_negative_depth_treated_as_zero(self):
        snapshot = make_snapshot("AB", ("A", "B"))
        result = contextual_traversal(snapshot, title_is("A"), -3)
        assert ids(result) == {"A"}

    def test_empty_snapshot(self):
        result = contextual_traversal(GraphSnapshot(), title_is("A"), 2)
        assert result.nodes == ()
        assert result.edges == ()

    def test_output_follows_snapshot_order(self):
        snapshot = make_snapshot("DCBA", ("A", "B"), ("B", "C"), ("C", "D"))
        result = contextual_traversal(snapshot, title_is("A"), 3)
        assert [n.id for n in result.nodes] == ["D", "C", "B", "A"]

    def test_repeatable(self):
        snapshot = make_snapshot("ABCDE", ("A", "B"), ("B", "C"), ("C", "A"), ("D", "E"))
        first = contextual_traversal(snapshot, title_is("B"), 2)
        second = contextual_traversal(snapshot, title_is("B"), 2)
        assert first == second

    def test_as_snapshot(self):
        snapshot = make_snapshot("AB", ("A", "B"))
        view = contextual_traversal(snapshot, title_is("A"), 1).as_snapshot()
        assert isinstance(view, GraphSnapshot)
        assert view.node_ids() == {"A", "B"}
