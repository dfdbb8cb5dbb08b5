"""Tests for scenario loading via ScenarioLoader."""

import json

import pytest

from tileverse.agents import LocalAgent, RemoteAgent
from tileverse.config import Config
from tileverse.scenario import DEFAULT_AGENTS, ScenarioLoader, build_world, default_roster
from tileverse.schemas import BehaviorKind, Direction, Position


def write_scenario(directory, name, data):
    (directory / f"{name}.json").write_text(json.dumps(data))


def test_bundled_starter_matches_default_roster():
    loader = ScenarioLoader(scenarios_dir=Config.SCENARIOS_DIR)
    player, agents = loader.load("starter")

    assert player == Position(x=0, y=0)
    assert [agent.name for agent in agents] == ["Explorer Bot", "Patrol Bot", "Wanderer"]
    assert agents == list(DEFAULT_AGENTS)
    assert "starter" in loader.list_scenarios()


def test_remote_alias_and_list_player_position():
    loader = ScenarioLoader(scenarios_dir=Config.SCENARIOS_DIR)
    player, agents = loader.load("oracle_outpost")

    assert player == Position(x=2, y=2)
    oracle = agents[1]
    assert oracle.behavior is BehaviorKind.REMOTE
    assert oracle.endpoint == "http://localhost:9999"


def test_missing_ids_are_generated(tmp_path):
    write_scenario(
        tmp_path,
        "tiny",
        {"name": "Tiny", "agents": [{"name": "Solo", "behavior": "Patrol", "direction": "down"}]},
    )

    player, agents = ScenarioLoader(scenarios_dir=tmp_path).load("tiny")

    assert player == Position(x=0, y=0)
    assert agents[0].id == "agent-1"
    assert agents[0].behavior is BehaviorKind.PATROL
    assert agents[0].direction is Direction.DOWN


@pytest.mark.parametrize(
    "data, message",
    [
        ({"agents": []}, "missing required fields"),
        ({"name": "Dupes", "agents": [{"id": "a", "name": "A"}, {"id": "a", "name": "B"}]}, "duplicate agent ids"),
        ({"name": "Bad", "agents": [{"id": "a", "name": "A", "behavior": "teleporter"}]}, "is invalid"),
        ({"name": "Bad", "agents": ["not an object"]}, "must be an object"),
    ],
)
def test_invalid_scenarios_raise(tmp_path, data, message):
    write_scenario(tmp_path, "broken", data)

    with pytest.raises(ValueError, match=message):
        ScenarioLoader(scenarios_dir=tmp_path).load("broken")


def test_missing_scenario_and_info(tmp_path):
    write_scenario(tmp_path, "one", {"name": "One", "description": "d", "agents": [{"name": "A"}]})
    write_scenario(tmp_path, "_draft", {"name": "Draft", "agents": []})
    loader = ScenarioLoader(scenarios_dir=tmp_path)

    with pytest.raises(FileNotFoundError):
        loader.load("nope")
    assert loader.list_scenarios() == ["one"]
    assert loader.get_scenario_info("one") == {
        "name": "One",
        "description": "d",
        "num_agents": 1,
        "recommended_ticks": 50,
    }
    assert ScenarioLoader(scenarios_dir=tmp_path / "absent").list_scenarios() == []


def test_build_world_uses_default_roster():
    world = build_world(broadcast_radius=6)

    assert [agent.id for agent in world.agents] == ["agent-1", "agent-2", "agent-3"]
    assert all(isinstance(agent, LocalAgent) for agent in world.agents)
    assert world.broadcast_radius == 6

    # Roster copies are independent of the module-level defaults
    world.get_agent("agent-1").update_state(x=99)
    assert DEFAULT_AGENTS[0].x == 5
    assert default_roster()[0].x == 5


def test_build_world_with_remote_agent():
    loader = ScenarioLoader(scenarios_dir=Config.SCENARIOS_DIR)
    player, agents = loader.load("oracle_outpost")

    world = build_world(player, agents)

    assert world.player_position == Position(x=2, y=2)
    assert isinstance(world.get_agent("oracle"), RemoteAgent)
