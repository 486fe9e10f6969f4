"""Layout coordinator — drives one strategy over the visible subgraph."""

from __future__ import annotations

import logging
from enum import Enum

from knowledge_canvas.graph import GraphSnapshot, Point
from knowledge_canvas.layout.force import ForceConfig, SimulationState, run
from knowledge_canvas.layout.hierarchical import HierarchicalConfig, hierarchical_layout
from knowledge_canvas.layout.types import PositionUpdate, position_diff
from knowledge_canvas.traversal import NodePredicate, SearchQuery, TraversalResult, contextual_traversal

logger = logging.getLogger(__name__)


class LayoutStrategy(str, Enum):
    Hierarchical = "hierarchical"
    Force = "force"


class LayoutCoordinator:
    """Picks a layout strategy and turns its output into position diffs.

    The coordinator never touches node records. It keeps only the transient
    force-simulation state between ticks, and drops it (pins and velocities
    included) whenever the strategy or the visible subgraph changes.
    """

    def __init__(
        self,
        strategy: LayoutStrategy | str = LayoutStrategy.Hierarchical,
        hierarchical: HierarchicalConfig | None = None,
        force: ForceConfig | None = None,
    ) -> None:
        self._strategy = LayoutStrategy(strategy)
        self.hierarchical_config = hierarchical or HierarchicalConfig()
        self.force_config = force or ForceConfig()
        self._simulation: SimulationState | None = None
        self._visible_key: tuple[frozenset[str], frozenset[str]] | None = None
        self._pins: dict[str, Point] = {}

    @property
    def strategy(self) -> LayoutStrategy:
        return self._strategy

    @property
    def simulation(self) -> SimulationState | None:
        return self._simulation

    def set_strategy(self, strategy: LayoutStrategy | str) -> None:
        """Switch strategy; unknown names raise ValueError."""
        strategy = LayoutStrategy(strategy)
        if strategy != self._strategy:
            logger.debug("Layout strategy %s -> %s", self._strategy.value, strategy.value)
            self._strategy = strategy
            self.reset()

    def reset(self) -> None:
        """Forget pins, velocities and any in-flight simulation."""
        self._simulation = None
        self._visible_key = None
        self._pins.clear()

    def cancel(self) -> None:
        """Stop an in-flight simulation; same as reset."""
        self.reset()

    def pin(self, node_id: str, point: Point) -> None:
        self._pins[node_id] = point
        if self._simulation is not None:
            self._simulation = self._simulation.with_pin(node_id, point)

    def release(self, node_id: str) -> None:
        self._pins.pop(node_id, None)
        if self._simulation is not None:
            self._simulation = self._simulation.without_pin(node_id)

    @staticmethod
    def visible(
        snapshot: GraphSnapshot,
        query: SearchQuery | NodePredicate | None,
        depth: int,
    ) -> TraversalResult:
        return contextual_traversal(snapshot, query, depth)

    # ── Running ──

    def layout(self, visible: GraphSnapshot | TraversalResult) -> PositionUpdate:
        """Run the current strategy to completion over the visible subgraph."""
        snapshot = self._as_snapshot(visible)
        current = {node.id: node.position for node in snapshot.nodes}

        if self._strategy == LayoutStrategy.Hierarchical:
            proposed = hierarchical_layout(snapshot, self.hierarchical_config)
            return PositionUpdate(positions=position_diff(current, proposed), finished=True)

        # A full run always starts from the positions it was given.
        self._simulation = None
        state = run(self._sync(snapshot), self.force_config)
        self._simulation = state
        return self._force_update(state, current)

    def tick(self, visible: GraphSnapshot | TraversalResult, steps: int = 1) -> PositionUpdate:
        """Advance the force simulation by a burst of ``steps``.

        The hierarchical strategy has no incremental form, so a tick simply
        runs it.
        """
        if self._strategy == LayoutStrategy.Hierarchical:
            return self.layout(visible)

        snapshot = self._as_snapshot(visible)
        current = {node.id: node.position for node in snapshot.nodes}
        state = run(self._sync(snapshot), self.force_config, max_steps=steps)
        self._simulation = state
        return self._force_update(state, current)

    # ── Internals ──

    @staticmethod
    def _as_snapshot(visible: GraphSnapshot | TraversalResult) -> GraphSnapshot:
        if isinstance(visible, TraversalResult):
            return visible.as_snapshot()
        return visible

    def _sync(self, snapshot: GraphSnapshot) -> SimulationState:
        """Return the live simulation, starting a fresh one when the visible id sets change."""
        key = (snapshot.node_ids(), snapshot.edge_ids())
        if self._simulation is not None and key == self._visible_key:
            return self._simulation
        if self._visible_key is not None and key != self._visible_key:
            logger.debug("Visible subgraph changed, restarting force simulation")
            self._pins.clear()
        self._visible_key = key

        state = SimulationState.from_snapshot(snapshot, reset=True)
        for node_id, point in self._pins.items():
            state = state.with_pin(node_id, point)
        self._simulation = state
        return state

    def _force_update(self, state: SimulationState, current: dict[str, Point]) -> PositionUpdate:
        return PositionUpdate(
            positions=position_diff(current, state.positions()),
            velocities=state.velocities(),
            finished=state.is_finished(self.force_config),
        )
