"""Force-directed layout — damped spring/charge simulation.

The simulation is a pure function ``step(state, config, dt) -> state``. The
host schedules bursts of steps (one per animation tick, say) and cancels by
no longer calling ``step``; every intermediate state holds valid positions.

Per step, for every free node:
  - repulsion from every other node, ``repulsion / distance²``
  - a Hooke spring along each incident edge, ``spring * (distance - rest_length)``
  - ``velocity = (velocity + force * dt) * damping``, capped at ``max_speed``
  - ``position += velocity * dt``, clamped to x, y >= 0 (inelastic wall)

Pinned nodes are snapped to their pin and act as fixed anchors.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace

from knowledge_canvas.graph import ORIGIN, GraphIndex, GraphSnapshot, Point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForceConfig:
    # Force parameters
    repulsion: float = 10000.0
    spring: float = 0.02
    rest_length: float = 300.0
    damping: float = 0.85

    # Numerical guards
    epsilon: float = 1.0  # distance floor for the inverse-square term
    max_speed: float = 50.0  # per-step velocity cap

    # Termination
    max_iterations: int = 500
    convergence_threshold: float = 0.01  # mean displacement per free node
    convergence_steps: int = 5  # consecutive calm steps before stopping


@dataclass(frozen=True)
class Body:
    """Simulation view of one node. ``position`` is the node's top-left."""

    id: str
    position: Point
    velocity: Point
    half_size: Point
    pin: Point | None = None

    @property
    def center(self) -> Point:
        return self.position + self.half_size

    @property
    def is_pinned(self) -> bool:
        return self.pin is not None


@dataclass(frozen=True)
class SimulationState:
    """Caller-owned simulation state, advanced by ``step``.

    Attributes:
        bodies: One body per node, in snapshot order.
        springs: (source, target) body indices per non-loop edge.
        iteration: Steps taken so far.
        calm_steps: Consecutive steps below the convergence threshold.
        last_displacement: Mean displacement of free bodies in the last step.
        converged: True once ``calm_steps`` reached the configured count, or
            when there are fewer than two bodies.
    """

    bodies: tuple[Body, ...] = ()
    springs: tuple[tuple[int, int], ...] = ()
    iteration: int = 0
    calm_steps: int = 0
    last_displacement: float = math.inf
    converged: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: GraphSnapshot, reset: bool = False) -> SimulationState:
        """Build a state from node records.

        Velocities and pins are read from the nodes unless ``reset`` is set,
        in which case every body starts at rest and unpinned.
        """
        index = GraphIndex.build(snapshot)
        bodies: list[Body] = []
        slot: dict[str, int] = {}
        for node in index.nodes.values():
            size = node.dimensions
            slot[node.id] = len(bodies)
            bodies.append(
                Body(
                    id=node.id,
                    position=node.position,
                    velocity=ORIGIN if reset else node.velocity,
                    half_size=Point(size.width / 2, size.height / 2),
                    pin=None if reset else node.pin,
                )
            )
        springs = tuple(
            (slot[edge.source_id], slot[edge.target_id]) for edge in index.edges if not edge.is_self_loop
        )
        return cls(bodies=tuple(bodies), springs=springs)

    def positions(self) -> dict[str, Point]:
        return {b.id: b.position for b in self.bodies}

    def velocities(self) -> dict[str, Point]:
        return {b.id: b.velocity for b in self.bodies}

    def is_finished(self, config: ForceConfig) -> bool:
        return self.converged or self.iteration >= config.max_iterations

    def _with_bodies(self, bodies: tuple[Body, ...]) -> SimulationState:
        # The iteration budget starts over so a finished run can resume.
        return replace(self, bodies=bodies, iteration=0, calm_steps=0, converged=False)

    def with_pin(self, node_id: str, point: Point) -> SimulationState:
        """Pin a node (e.g. while it is dragged); wakes the simulation and
        restarts its iteration budget."""
        bodies = tuple(
            replace(b, pin=point, position=point, velocity=ORIGIN) if b.id == node_id else b for b in self.bodies
        )
        return self._with_bodies(bodies)

    def without_pin(self, node_id: str) -> SimulationState:
        bodies = tuple(replace(b, pin=None) if b.id == node_id else b for b in self.bodies)
        return self._with_bodies(bodies)


# ─── Forces ───────────────────────────────────────────────────────────────────


def _net_forces(state: SimulationState, config: ForceConfig) -> list[list[float]]:
    """Force vector per body; pinned bodies accumulate nothing."""
    bodies = state.bodies
    centers = [b.center for b in bodies]
    forces = [[0.0, 0.0] for _ in bodies]

    for i, body in enumerate(bodies):
        if body.is_pinned:
            continue
        ci = centers[i]
        for j in range(len(bodies)):
            if i == j:
                continue
            dx = ci.x - centers[j].x
            dy = ci.y - centers[j].y
            dist = math.hypot(dx, dy)
            if dist == 0.0:
                # Coincident: push apart along x, direction fixed by order.
                dx, dy, dist = (1.0 if i > j else -1.0), 0.0, 1.0
            magnitude = config.repulsion / max(dist, config.epsilon) ** 2
            forces[i][0] += magnitude * dx / dist
            forces[i][1] += magnitude * dy / dist

    for a, b in state.springs:
        dx = centers[b].x - centers[a].x
        dy = centers[b].y - centers[a].y
        dist = math.hypot(dx, dy)
        if dist == 0.0:
            continue
        magnitude = config.spring * (dist - config.rest_length)
        fx = magnitude * dx / dist
        fy = magnitude * dy / dist
        if not bodies[a].is_pinned:
            forces[a][0] += fx
            forces[a][1] += fy
        if not bodies[b].is_pinned:
            forces[b][0] -= fx
            forces[b][1] -= fy

    return forces


def _integrate(body: Body, force: list[float], config: ForceConfig, dt: float) -> Body:
    vx = (body.velocity.x + force[0] * dt) * config.damping
    vy = (body.velocity.y + force[1] * dt) * config.damping

    speed = math.hypot(vx, vy)
    if speed > config.max_speed:
        vx *= config.max_speed / speed
        vy *= config.max_speed / speed

    x = body.position.x + vx * dt
    y = body.position.y + vy * dt
    if x < 0.0:
        x, vx = 0.0, 0.0
    if y < 0.0:
        y, vy = 0.0, 0.0

    return replace(body, position=Point(x, y), velocity=Point(vx, vy))


# ─── Stepping ─────────────────────────────────────────────────────────────────


def step(state: SimulationState, config: ForceConfig | None = None, dt: float = 1.0) -> SimulationState:
    """Advance the simulation by one step and return the new state."""
    config = config or ForceConfig()
    if len(state.bodies) < 2:
        return replace(state, iteration=state.iteration + 1, last_displacement=0.0, converged=True)

    forces = _net_forces(state, config)

    bodies: list[Body] = []
    moved = 0.0
    free = 0
    for body, force in zip(state.bodies, forces):
        if body.pin is not None:
            bodies.append(replace(body, position=body.pin, velocity=ORIGIN))
            continue
        updated = _integrate(body, force, config, dt)
        moved += updated.position.distance_to(body.position)
        free += 1
        bodies.append(updated)

    displacement = moved / free if free else 0.0
    calm_steps = state.calm_steps + 1 if displacement < config.convergence_threshold else 0

    return replace(
        state,
        bodies=tuple(bodies),
        iteration=state.iteration + 1,
        calm_steps=calm_steps,
        last_displacement=displacement,
        converged=calm_steps >= config.convergence_steps,
    )


def run(
    state: SimulationState,
    config: ForceConfig | None = None,
    max_steps: int | None = None,
    dt: float = 1.0,
) -> SimulationState:
    """Run a burst of up to ``max_steps`` steps, stopping early when finished."""
    config = config or ForceConfig()
    taken = 0
    while not state.is_finished(config) and (max_steps is None or taken < max_steps):
        state = step(state, config, dt)
        taken += 1
    if state.converged and taken:
        logger.debug("Force layout converged after %d step(s)", state.iteration)
    return state


def force_directed_layout(
    snapshot: GraphSnapshot,
    config: ForceConfig | None = None,
    reset: bool = False,
) -> SimulationState:
    """Simulate a snapshot until convergence or the iteration budget."""
    return run(SimulationState.from_snapshot(snapshot, reset=reset), config)
