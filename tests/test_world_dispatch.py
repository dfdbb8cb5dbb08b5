"""Tests for World addressing, delays and concurrent dispatch."""

import asyncio

import pytest

from tileverse.agents import PEER_SKILLS_KEY, BaseAgent, LocalAgent
from tileverse.schemas import AgentCard, AgentSkill, AgentState, BehaviorKind, Direction, Position
from tileverse.world import (
    DISPATCH_BROADCAST,
    DISPATCH_MENTION,
    DISPATCH_OPEN,
    AgentNotFoundError,
    DuplicateAgentError,
    World,
    extract_mentions,
)


class EchoGenerator:
    async def generate(self, request):
        return f"{request.agent_name} heard '{request.user_message}'"


class FakeRemoteClient:
    def __init__(self):
        self.calls = []

    async def send_message(self, endpoint, text, *, metadata=None, context_id=None):
        self.calls.append({"endpoint": endpoint, "metadata": metadata})
        return {"result": {"kind": "message", "parts": [{"kind": "text", "text": "remote hello"}]}}


class ExplodingAgent(LocalAgent):
    async def process_message(self, message, delay, metadata=None):
        raise RuntimeError("boom")


def local(agent_id, name, x, y, behavior=BehaviorKind.RANDOM) -> LocalAgent:
    return LocalAgent(
        AgentState(id=agent_id, name=name, x=x, y=y, behavior=behavior),
        text_generator=EchoGenerator(),
    )


def make_world(*agents: BaseAgent, **options) -> World:
    options.setdefault("max_speed", 10)
    options.setdefault("base_delay_ms", 500)
    options.setdefault("stagger_delay_ms", 100)
    options.setdefault("broadcast_radius", 10)
    return World(agents, player=Position(x=0, y=0), **options)


def test_extract_mentions_is_greedy():
    assert extract_mentions("@Explorer hi") == ["Explorer hi"]
    assert extract_mentions("hey @Patrol, @Wanderer!") == ["Patrol", "Wanderer"]
    assert extract_mentions("no mentions here") == []


def test_mention_overrides_radius():
    world = make_world(local("e", "Explorer Bot", 1, 0), local("p", "Patrol Bot", 2, 0))

    plan = world.plan_dispatch("@Explorer hi", radius=10)

    assert plan.mode == DISPATCH_MENTION
    assert plan.agent_ids == ["e"]
    assert all(target.is_mentioned for target in plan.targets)


def test_mention_reaches_agents_outside_radius():
    world = make_world(local("w", "Wanderer", 50, 0))

    plan = world.plan_dispatch("@Wanderer where are you?", radius=5)

    assert plan.agent_ids == ["w"]
    assert plan.targets[0].distance == 50


def test_mention_matching_is_permissive():
    world = make_world(local("e", "Explorer Bot", 1, 0), local("p", "Patrol Bot", 2, 0), local("w", "Wanderer", 3, 0))

    assert world.plan_dispatch("@bot status?").agent_ids == ["e", "p"]
    assert world.plan_dispatch("@Patrol Bot report").agent_ids == ["p"]


def test_unresolved_mention_targets_nobody():
    world = make_world(local("e", "Explorer Bot", 1, 0))

    plan = world.plan_dispatch("@Nobody anyone?", radius=10)

    assert plan.mode == DISPATCH_MENTION
    assert plan.targets == []


def test_broadcast_radius_filters_by_distance():
    world = make_world(
        local("d2", "Two", 2, 0),
        local("d5", "Five", 0, 5),
        local("d11", "Eleven", -11, 0),
        local("d20", "Twenty", 0, -20),
    )

    plan = world.plan_dispatch("hello", radius=10)

    assert plan.mode == DISPATCH_BROADCAST
    assert plan.agent_ids == ["d2", "d5"]


def test_open_floor_targets_everyone():
    world = make_world(local("a", "A", 1, 0), local("b", "B", 100, 0))

    plan = world.plan_dispatch("hello")

    assert plan.mode == DISPATCH_OPEN
    assert plan.agent_ids == ["a", "b"]


def test_delay_grows_with_index_and_distance():
    world = make_world(local("a", "A", 1, 0), local("b", "B", 0, 1))

    plan = world.plan_dispatch("hello", radius=10)
    first, second = plan.targets

    assert first.delay == pytest.approx(600)
    assert second.delay == pytest.approx(700)
    assert first.delay < second.delay
    assert world.dispatch_delay(0, 5) > world.dispatch_delay(0, 1)


def test_world_rejects_non_positive_speed():
    with pytest.raises(ValueError):
        World(max_speed=0)


@pytest.mark.asyncio
async def test_end_to_end_broadcast_scenario():
    world = make_world(local("a", "Near", 3, 0), local("b", "Mid", 0, 8), local("c", "Far", 15, 0))

    responses = await world.send_message("hello everyone", radius=10)

    assert sorted(response.agent_id for response in responses) == ["a", "b"]
    assert len(responses) == 2
    assert all("hello everyone" in response.message for response in responses)


@pytest.mark.asyncio
async def test_broadcast_with_thread_joins_only_agents_in_range():
    near, far = local("n", "Near", 1, 0), local("f", "Far", 30, 0)
    world = make_world(near, far)

    await world.send_message("gather round", thread_id="t1", radius=10)
    follow_up = await world.send_message("still there?", thread_id="t1")

    assert near.is_in_thread("t1")
    assert not far.is_in_thread("t1")
    assert [response.agent_id for response in follow_up] == ["n"]


@pytest.mark.asyncio
async def test_failing_agent_is_dropped_from_results(capsys):
    broken = ExplodingAgent(AgentState(id="x", name="Broken", x=1, y=0))
    world = make_world(broken, local("ok", "Fine", 2, 0))

    responses = await world.send_message("hello")

    assert [response.agent_id for response in responses] == ["ok"]
    assert "Broken failed unexpectedly" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_iter_responses_yields_every_reply():
    world = make_world(local("a", "A", 1, 0), local("b", "B", 2, 0), local("c", "C", 40, 0))

    collected = [response async for response in world.iter_responses("hi", radius=10)]

    assert sorted(response.agent_id for response in collected) == ["a", "b"]


@pytest.mark.asyncio
async def test_peer_skills_forwarded_to_remote_agents():
    client = FakeRemoteClient()
    world = make_world(local("k", "Keeper", 1, 0), remote_client=client)
    card = AgentCard(name="Oracle", url="http://oracle.test/rpc", skills=[AgentSkill(name="divination")])
    other = AgentCard(name="Scribe", url="http://scribe.test/rpc", skills=[AgentSkill(name="writing")])
    world.spawn_remote_agent(card, "http://oracle.test", Position(x=2, y=0), agent_id="oracle")
    world.spawn_remote_agent(other, "http://scribe.test", Position(x=3, y=0), agent_id="scribe")

    assert [peer["agent"] for peer in world.peer_metadata()[PEER_SKILLS_KEY]] == ["Oracle", "Scribe"]

    responses = await world.send_message("@Oracle what do you see?")

    assert [response.message for response in responses] == ["remote hello"]
    forwarded = client.calls[0]["metadata"][PEER_SKILLS_KEY]
    assert [peer["agent"] for peer in forwarded] == ["Scribe"]


def test_registry_operations():
    world = make_world(local("a", "Explorer Bot", 1, 0))

    with pytest.raises(DuplicateAgentError):
        world.add_agent(local("a", "Copy", 0, 0))
    with pytest.raises(AgentNotFoundError):
        world.get_agent("missing")
    with pytest.raises(KeyError):
        world.remove_agent("missing")

    created = world.create_agent(AgentState(id="p", name="Patrol Bot", x=0, y=30, behavior=BehaviorKind.PATROL))
    assert world.get_agent("p") is created
    assert [agent.id for agent in world.agent_suggestions("bot")] == ["a", "p"]
    assert [agent.id for agent in world.agents_in_range(5)] == ["a"]
    assert [state.id for state in world.agent_states()] == ["a", "p"]

    world.remove_agent("a")
    assert [agent.id for agent in world.agents] == ["p"]

    world.close()
    assert world.agents == []


def test_move_player_respects_walkability():
    blocked = {(1, 0)}
    world = make_world(walkable=lambda x, y: (x, y) not in blocked)

    assert world.move_player(Direction.RIGHT) is False
    assert world.player_position == Position(x=0, y=0)

    assert world.move_player(Direction.UP) is True
    assert world.player_position == Position(x=0, y=-1)


class RendezvousGenerator:
    """Replies only after its partner has started generating."""

    def __init__(self, mine, theirs):
        self.mine = mine
        self.theirs = theirs

    async def generate(self, request):
        self.mine.set()
        await self.theirs.wait()
        return "ok"


@pytest.mark.asyncio
async def test_targets_are_queried_concurrently_without_waiting_on_delays():
    first, second = asyncio.Event(), asyncio.Event()
    agents = [
        LocalAgent(AgentState(id="a", name="Alpha", x=1, y=0), text_generator=RendezvousGenerator(first, second)),
        LocalAgent(AgentState(id="b", name="Beta", x=2, y=0), text_generator=RendezvousGenerator(second, first)),
    ]
    world = make_world(*agents, base_delay_ms=10_000_000)

    responses = await asyncio.wait_for(world.send_message("hello"), timeout=2)

    assert [response.message for response in responses] == ["ok", "ok"]
    assert all(response.delay >= 10_000_000 for response in responses)
