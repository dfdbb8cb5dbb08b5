"""Tests for per-tick movement behaviors."""

import pytest

from tileverse.agents import LocalAgent, RemoteAgent
from tileverse.movement import MovementEngine, step_position
from tileverse.schemas import AgentState, BehaviorKind, Direction, Position


class ScriptedRandom:
    """Deterministic stand-in for random.Random with queued answers."""

    def __init__(self, values=(), choices=()):
        self.values = list(values)
        self.choices = list(choices)

    def random(self):
        return self.values.pop(0)

    def choice(self, seq):
        picked = self.choices.pop(0)
        assert picked in seq
        return picked


def open_ground(x, y):
    return True


def blocked_at(*cells):
    blocked = set(cells)
    return lambda x, y: (x, y) not in blocked


def state(behavior, direction=Direction.RIGHT, x=0, y=0, **extra) -> AgentState:
    return AgentState(id="a", name="Mover", x=x, y=y, behavior=behavior, direction=direction, **extra)


PLAYER_FAR = Position(x=100, y=100)


def test_step_position_uses_screen_axes():
    origin = Position(x=0, y=0)
    assert step_position(origin, Direction.UP) == Position(x=0, y=-1)
    assert step_position(origin, Direction.DOWN) == Position(x=0, y=1)
    assert step_position(origin, Direction.LEFT) == Position(x=-1, y=0)
    assert step_position(origin, Direction.RIGHT) == Position(x=1, y=0)


def test_patrol_walks_straight_then_turns_clockwise():
    engine = MovementEngine(walkable=blocked_at((1, 0)))

    straight = MovementEngine(walkable=open_ground).decide(state(BehaviorKind.PATROL), PLAYER_FAR)
    turned = engine.decide(state(BehaviorKind.PATROL), PLAYER_FAR)

    assert straight.position == Position(x=1, y=0)
    assert turned.position == Position(x=0, y=1)
    assert turned.direction is Direction.DOWN


def test_patrol_fully_blocked_stays_with_rotated_heading():
    engine = MovementEngine(walkable=blocked_at((1, 0), (0, 1)))

    decision = engine.decide(state(BehaviorKind.PATROL), PLAYER_FAR)

    assert decision.position == Position(x=0, y=0)
    assert decision.direction is Direction.DOWN


def test_random_walk_keeps_heading_or_turns():
    keep = MovementEngine(walkable=open_ground, rng=ScriptedRandom(values=[0.9]))
    turn = MovementEngine(walkable=open_ground, rng=ScriptedRandom(values=[0.1], choices=[Direction.UP]))

    assert keep.decide(state(BehaviorKind.RANDOM), PLAYER_FAR).position == Position(x=1, y=0)
    turned = turn.decide(state(BehaviorKind.RANDOM), PLAYER_FAR)
    assert turned.position == Position(x=0, y=-1)
    assert turned.direction is Direction.UP


def test_random_walk_retries_once_then_stays():
    retry = MovementEngine(
        walkable=blocked_at((1, 0)),
        rng=ScriptedRandom(values=[0.9], choices=[Direction.LEFT]),
    )
    stuck = MovementEngine(
        walkable=blocked_at((1, 0), (-1, 0)),
        rng=ScriptedRandom(values=[0.9], choices=[Direction.LEFT, Direction.DOWN]),
    )

    assert retry.decide(state(BehaviorKind.RANDOM), PLAYER_FAR).position == Position(x=-1, y=0)
    decision = stuck.decide(state(BehaviorKind.RANDOM), PLAYER_FAR)
    assert decision.position == Position(x=0, y=0)
    assert decision.direction is Direction.DOWN


def test_explorer_backs_away_from_nearby_player():
    engine = MovementEngine(walkable=open_ground, rng=ScriptedRandom())

    decision = engine.decide(state(BehaviorKind.EXPLORER), Position(x=1, y=1))

    assert decision.position == Position(x=-1, y=0)
    assert decision.direction is Direction.LEFT


def test_explorer_wanders_when_player_is_far():
    engine = MovementEngine(walkable=open_ground, rng=ScriptedRandom(values=[0.5]))

    decision = engine.decide(state(BehaviorKind.EXPLORER, direction=Direction.DOWN), PLAYER_FAR)

    assert decision.position == Position(x=0, y=1)


def test_explorer_blocked_stays_with_new_heading():
    engine = MovementEngine(
        walkable=blocked_at((0, 1)),
        rng=ScriptedRandom(values=[0.5], choices=[Direction.LEFT]),
    )

    decision = engine.decide(state(BehaviorKind.EXPLORER, direction=Direction.DOWN), PLAYER_FAR)

    assert decision.position == Position(x=0, y=0)
    assert decision.direction is Direction.LEFT


@pytest.mark.parametrize("now, due", [(999, False), (1000, True), (5000, True)])
def test_is_due(now, due):
    assert MovementEngine.is_due(state(BehaviorKind.PATROL, last_moved=0, move_interval=1000), now) is due


def test_step_stamps_cycle_even_when_blocked_and_skips_remote():
    walker = LocalAgent(state(BehaviorKind.PATROL, move_interval=1000).model_copy(update={"id": "walker"}))
    stuck = LocalAgent(
        AgentState(id="stuck", name="Stuck", x=10, y=10, behavior=BehaviorKind.PATROL, move_interval=1000)
    )
    remote = RemoteAgent(AgentState(id="remote", name="Oracle", x=0, y=5, behavior=BehaviorKind.REMOTE))
    engine = MovementEngine(walkable=blocked_at((11, 10), (10, 11)))

    moved = engine.step([walker, stuck, remote], PLAYER_FAR, now_ms=2000)

    assert moved == ["walker"]
    assert walker.position == Position(x=1, y=0)
    assert stuck.position == Position(x=10, y=10)
    assert stuck.state.last_moved == 2000
    assert stuck.state.direction is Direction.DOWN
    assert remote.state.last_moved == 0

    # Not due again until the interval has passed
    assert engine.step([walker, stuck], PLAYER_FAR, now_ms=2500) == []
    assert walker.position == Position(x=1, y=0)
