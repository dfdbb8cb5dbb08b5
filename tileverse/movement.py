"""Per-tick movement decisions for local agents.

Behaviors:
- random:   30% chance to turn to a random heading, else keep going. If
            blocked, try one more random heading; if that is blocked too,
            stay put and face a random heading.
- patrol:   walk straight; when blocked turn clockwise and try once more;
            stay put (facing the turned heading) if that is blocked too.
- explorer: within Manhattan distance 3 of the player, step in the first
            walkable direction that increases separation; otherwise keep the
            heading 70% of the time. Blocked moves leave it in place with a
            fresh random heading.

An agent is due when ``now - last_moved >= move_interval``. Every decision
cycle stamps ``last_moved`` even if the agent did not move, so repeatedly
blocked agents keep their cadence instead of retrying on every tick.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from .agents import BaseAgent
from .environment.generator import walkable as terrain_walkable
from .environment.helpers import manhattan_distance
from .schemas import AgentState, BehaviorKind, Direction, Position

DIRECTIONS = (Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT)
DIRECTION_VECTORS: Dict[Direction, tuple[int, int]] = {
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
}
CLOCKWISE: Dict[Direction, Direction] = {
    Direction.UP: Direction.RIGHT,
    Direction.RIGHT: Direction.DOWN,
    Direction.DOWN: Direction.LEFT,
    Direction.LEFT: Direction.UP,
}

RANDOM_TURN_CHANCE = 0.3
EXPLORER_KEEP_HEADING_CHANCE = 0.7
EXPLORER_PERSONAL_SPACE = 3

WalkableFn = Callable[[int, int], bool]


def step_position(position: Position, direction: Direction) -> Position:
    dx, dy = DIRECTION_VECTORS[direction]
    return Position(x=position.x + dx, y=position.y + dy)


@dataclass(frozen=True)
class MoveDecision:
    position: Position
    direction: Direction


class MovementEngine:
    """Decides and applies moves for local agents.

    Args:
        walkable: Terrain predicate; defaults to the procedural generator
        rng: Random source, injectable for reproducible runs
    """

    def __init__(self, *, walkable: WalkableFn = terrain_walkable, rng: Optional[random.Random] = None) -> None:
        self.walkable = walkable
        self.rng = rng or random.Random()
        self._behaviors: Dict[BehaviorKind, Callable[[AgentState, Position], MoveDecision]] = {
            BehaviorKind.RANDOM: self._random_walk,
            BehaviorKind.PATROL: self._patrol,
            BehaviorKind.EXPLORER: self._explore,
        }

    def _random_direction(self) -> Direction:
        return self.rng.choice(DIRECTIONS)

    def _can_enter(self, position: Position) -> bool:
        return self.walkable(position.x, position.y)

    def _random_walk(self, state: AgentState, player: Position) -> MoveDecision:
        here = state.position
        direction = self._random_direction() if self.rng.random() < RANDOM_TURN_CHANCE else state.direction
        target = step_position(here, direction)
        if self._can_enter(target):
            return MoveDecision(target, direction)

        alternative = self._random_direction()
        target = step_position(here, alternative)
        if self._can_enter(target):
            return MoveDecision(target, alternative)

        return MoveDecision(here, self._random_direction())

    def _patrol(self, state: AgentState, player: Position) -> MoveDecision:
        here = state.position
        target = step_position(here, state.direction)
        if self._can_enter(target):
            return MoveDecision(target, state.direction)

        turned = CLOCKWISE[state.direction]
        target = step_position(here, turned)
        if self._can_enter(target):
            return MoveDecision(target, turned)
        return MoveDecision(here, turned)

    def _explore(self, state: AgentState, player: Position) -> MoveDecision:
        here = state.position
        separation = manhattan_distance(here.as_tuple(), player.as_tuple())

        if separation < EXPLORER_PERSONAL_SPACE:
            away: List[Direction] = []
            if here.x < player.x:
                away.append(Direction.LEFT)
            if here.x > player.x:
                away.append(Direction.RIGHT)
            if here.y < player.y:
                away.append(Direction.UP)
            if here.y > player.y:
                away.append(Direction.DOWN)
            for direction in away:
                target = step_position(here, direction)
                if self._can_enter(target):
                    return MoveDecision(target, direction)

        if self.rng.random() < EXPLORER_KEEP_HEADING_CHANCE:
            direction = state.direction
        else:
            direction = self._random_direction()
        target = step_position(here, direction)
        if self._can_enter(target):
            return MoveDecision(target, direction)
        return MoveDecision(here, self._random_direction())

    def decide(self, state: AgentState, player: Position) -> MoveDecision:
        """Next position and heading for one agent (does not mutate anything)."""
        behavior = self._behaviors.get(state.behavior)
        if behavior is None:
            return MoveDecision(state.position, state.direction)
        return behavior(state, player)

    @staticmethod
    def is_due(state: AgentState, now_ms: float) -> bool:
        return now_ms - state.last_moved >= state.move_interval

    def step(self, agents: Iterable[BaseAgent], player: Position, now_ms: float) -> List[str]:
        """Run one tick over ``agents``; returns ids of agents whose position changed.

        Remote agents are skipped; their owner positions them.
        """
        moved: List[str] = []
        for agent in agents:
            if not agent.is_local:
                continue
            state = agent.state
            if not self.is_due(state, now_ms):
                continue
            decision = self.decide(state, player)
            agent.update_state(
                x=decision.position.x,
                y=decision.position.y,
                direction=decision.direction,
                last_moved=now_ms,
            )
            if decision.position != state.position:
                moved.append(agent.id)
        return moved
