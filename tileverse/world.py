"""
World: agent registry, message addressing and dispatch.

For every player message the World decides which agents hear it and with
what reveal delay. The first matching rule applies to the whole message:

1. ``@mentions`` present: target exactly the agents the mentions resolve
   to, regardless of distance. They are flagged as mentioned.
2. Broadcast radius given: target every agent within that Euclidean
   distance of the player. With a thread id, each of them joins the thread
   as a side effect of being in range.
3. Otherwise: open floor, every agent is targeted.

Delays are computed synchronously before any agent is queried:

    delay = base_delay + index * stagger + distance / max_speed * 1000

where ``index`` is the agent's position within the targeted set. All
targeted agents are then queried concurrently. Delays are returned to the
caller to schedule the reveal; the World itself never sleeps on them.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from .agents import PEER_SKILLS_KEY, BaseAgent, RemoteAgent, create_agent
from .config import Config
from .environment.generator import walkable as terrain_walkable
from .environment.helpers import euclidean_distance
from .generation import TextGenerator
from .logging_utils import log_deterministic, log_error, log_info
from .movement import WalkableFn, step_position
from .remote import RemoteAgentClient
from .schemas import (
    AgentCard,
    AgentResponse,
    AgentState,
    BehaviorKind,
    Direction,
    Message,
    Position,
    utc_now,
)

# "@" followed by one or more words; greedy, so "@Patrol Bot hi" captures "Patrol Bot hi".
MENTION_PATTERN = re.compile(r"@(\w+(?:\s+\w+)*)")

DISPATCH_MENTION = "mention"
DISPATCH_BROADCAST = "broadcast"
DISPATCH_OPEN = "open"


class AgentNotFoundError(KeyError):
    """Raised when an agent id is not registered in the world."""

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"Agent '{agent_id}' is not in this world")


class DuplicateAgentError(ValueError):
    """Raised when registering an agent id that already exists."""

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"Agent '{agent_id}' is already in this world")


@dataclass(frozen=True)
class DispatchTarget:
    agent: BaseAgent
    distance: float
    delay: float
    is_mentioned: bool = False


@dataclass
class DispatchPlan:
    """Targets and delays for one message, fixed before any agent is queried."""

    mode: str
    mentions: List[str] = field(default_factory=list)
    targets: List[DispatchTarget] = field(default_factory=list)

    @property
    def agent_ids(self) -> List[str]:
        return [target.agent.id for target in self.targets]


def extract_mentions(content: str) -> List[str]:
    return [match.group(1) for match in MENTION_PATTERN.finditer(content)]


def _names_overlap(mention: str, name: str) -> bool:
    mention, name = mention.lower(), name.lower()
    return mention in name or name in mention


class World:
    """Owns the agents and the player position for one session.

    Args:
        agents: Initial agents, kept in the given (registry) order
        player: Player start position (defaults to the origin)
        text_generator: Generator handed to local agents created by the world
        remote_client: Protocol client handed to remote agents created by the world
        broadcast_radius: Range used by remote agents' unprompted check
        max_speed: Message travel speed in units per second
        base_delay_ms: Fixed delay added to every reply
        stagger_delay_ms: Extra delay per position in the targeted set
        walkable: Terrain predicate for player movement
    """

    def __init__(
        self,
        agents: Iterable[BaseAgent] = (),
        player: Optional[Position] = None,
        *,
        text_generator: Optional[TextGenerator] = None,
        remote_client: Optional[RemoteAgentClient] = None,
        broadcast_radius: Optional[float] = None,
        max_speed: Optional[float] = None,
        base_delay_ms: Optional[float] = None,
        stagger_delay_ms: Optional[float] = None,
        walkable: WalkableFn = terrain_walkable,
    ) -> None:
        self.text_generator = text_generator
        self.remote_client = remote_client
        self.broadcast_radius = Config.BROADCAST_RADIUS if broadcast_radius is None else broadcast_radius
        self.max_speed = Config.MAX_SPEED if max_speed is None else max_speed
        if self.max_speed <= 0:
            raise ValueError("max_speed must be positive")
        self.base_delay_ms = Config.BASE_DELAY_MS if base_delay_ms is None else base_delay_ms
        self.stagger_delay_ms = Config.STAGGER_DELAY_MS if stagger_delay_ms is None else stagger_delay_ms
        self.walkable = walkable

        self._player = player or Position(x=0, y=0)
        self._agents: Dict[str, BaseAgent] = {}
        for agent in agents:
            self.add_agent(agent)

    # Registry --------------------------------------------------------------

    @property
    def agents(self) -> List[BaseAgent]:
        return list(self._agents.values())

    def agent_states(self) -> List[AgentState]:
        """Snapshot of every agent's state, in registry order."""
        return [agent.state for agent in self._agents.values()]

    def get_agent(self, agent_id: str) -> BaseAgent:
        try:
            return self._agents[agent_id]
        except KeyError:
            raise AgentNotFoundError(agent_id) from None

    def add_agent(self, agent: BaseAgent) -> BaseAgent:
        if agent.id in self._agents:
            raise DuplicateAgentError(agent.id)
        self._agents[agent.id] = agent
        return agent

    def create_agent(self, state: AgentState) -> BaseAgent:
        """Build an agent with this world's collaborators and register it."""
        return self.add_agent(
            create_agent(
                state,
                text_generator=self.text_generator,
                remote_client=self.remote_client,
                broadcast_radius=self.broadcast_radius,
            )
        )

    def spawn_remote_agent(
        self,
        card: AgentCard,
        card_url: str,
        position: Position,
        *,
        agent_id: Optional[str] = None,
        color: str = "#4A90E2",
    ) -> RemoteAgent:
        """Place an imported remote agent in the world."""
        state = AgentState(
            id=agent_id or f"a2a-{uuid4().hex[:8]}",
            name=card.name,
            color=color,
            x=position.x,
            y=position.y,
            behavior=BehaviorKind.REMOTE,
            endpoint=card_url,
            skills=list(card.skills),
        )
        agent = RemoteAgent(state, client=self.remote_client, broadcast_radius=self.broadcast_radius)
        self.add_agent(agent)
        log_info(f"[World] Spawned remote agent {card.name} at ({position.x}, {position.y})")
        return agent

    def remove_agent(self, agent_id: str) -> BaseAgent:
        agent = self.get_agent(agent_id)
        del self._agents[agent_id]
        return agent

    def close(self) -> None:
        """Tear down the session: drop every agent."""
        self._agents.clear()

    # Player ----------------------------------------------------------------

    @property
    def player_position(self) -> Position:
        return self._player

    def update_player(self, position: Position) -> None:
        self._player = position

    def move_player(self, direction: Direction) -> bool:
        """Move the player one tile; refuses non-walkable targets."""
        target = step_position(self._player, direction)
        if not self.walkable(target.x, target.y):
            return False
        self._player = target
        return True

    def distance_to(self, agent: BaseAgent) -> float:
        return euclidean_distance(self._player.as_tuple(), agent.position.as_tuple())

    # Lookup helpers --------------------------------------------------------

    def agents_in_range(self, radius: Optional[float] = None) -> List[BaseAgent]:
        if radius is None:
            return self.agents
        return [agent for agent in self._agents.values() if self.distance_to(agent) <= radius]

    def agent_suggestions(self, partial_name: str) -> List[BaseAgent]:
        """Agents whose name contains ``partial_name`` (case-insensitive), for autocomplete."""
        term = partial_name.lower()
        return [agent for agent in self._agents.values() if term in agent.name.lower()]

    def find_mentioned_agents(self, mentions: List[str]) -> List[BaseAgent]:
        """Resolve mentions to agents, in registry order.

        A mention and a name match when either contains the other, ignoring
        case. The mention pattern is greedy, so "@Explorer hi" captures
        "Explorer hi"; when the whole capture matches nobody, shorter word
        prefixes are tried ("Explorer") and the longest one that matches wins.
        """
        matched: set[str] = set()
        for mention in mentions:
            words = mention.split()
            for size in range(len(words), 0, -1):
                candidate = " ".join(words[:size])
                hits = {a.id for a in self._agents.values() if _names_overlap(candidate, a.name)}
                if hits:
                    matched |= hits
                    break
        return [agent for agent in self._agents.values() if agent.id in matched]

    # Dispatch --------------------------------------------------------------

    def dispatch_delay(self, index: int, distance: float) -> float:
        travel = (distance / self.max_speed) * 1000
        return self.base_delay_ms + index * self.stagger_delay_ms + travel

    def plan_dispatch(self, content: str, *, radius: Optional[float] = None) -> DispatchPlan:
        """Choose targets and delays for ``content`` (no side effects)."""
        mentions = extract_mentions(content)
        if mentions:
            mode, selected, mentioned = DISPATCH_MENTION, self.find_mentioned_agents(mentions), True
        elif radius is not None:
            mode, selected, mentioned = DISPATCH_BROADCAST, self.agents_in_range(radius), False
        else:
            mode, selected, mentioned = DISPATCH_OPEN, self.agents, False

        targets: List[DispatchTarget] = []
        for index, agent in enumerate(selected):
            distance = self.distance_to(agent)
            targets.append(
                DispatchTarget(
                    agent=agent,
                    distance=distance,
                    delay=self.dispatch_delay(index, distance),
                    is_mentioned=mentioned,
                )
            )
        return DispatchPlan(mode=mode, mentions=mentions, targets=targets)

    def peer_metadata(self) -> Dict[str, Any]:
        """Metadata listing the skills of the remote agents present."""
        peers = [
            {
                "agent": agent.name,
                "skills": [skill.model_dump(exclude_none=True) for skill in agent.state.skills],
            }
            for agent in self._agents.values()
            if not agent.is_local
        ]
        return {PEER_SKILLS_KEY: peers} if peers else {}

    def _prepare(
        self,
        content: str,
        *,
        thread_id: Optional[str],
        radius: Optional[float],
        message_id: Optional[str],
    ) -> Tuple[DispatchPlan, List[Tuple[DispatchTarget, Message]]]:
        plan = self.plan_dispatch(content, radius=radius)
        if plan.mode == DISPATCH_BROADCAST and thread_id:
            for target in plan.targets:
                target.agent.join_thread(thread_id)

        message_id = message_id or str(uuid4())
        sent_at = utc_now()
        addressed = [
            (
                target,
                Message(
                    id=message_id,
                    content=content,
                    timestamp=sent_at,
                    player_position=self._player,
                    distance=target.distance,
                    is_mentioned=target.is_mentioned,
                    thread_id=thread_id,
                ),
            )
            for target in plan.targets
        ]
        log_deterministic(
            f"[Router] {plan.mode} dispatch of {message_id}: "
            f"{len(plan.targets)}/{len(self._agents)} agent(s) targeted"
            + (f" (mentions: {', '.join(plan.mentions)})" if plan.mentions else "")
        )
        return plan, addressed

    async def dispatch(
        self,
        content: str,
        *,
        thread_id: Optional[str] = None,
        radius: Optional[float] = None,
        message_id: Optional[str] = None,
    ) -> Tuple[DispatchPlan, List[AgentResponse]]:
        """Dispatch ``content`` and gather every reply, with the plan that was used.

        Returned order is not a delivery order; sort by ``delay`` for that.
        Silent agents are simply absent.
        """
        plan, addressed = self._prepare(content, thread_id=thread_id, radius=radius, message_id=message_id)
        metadata = self.peer_metadata()

        results = await asyncio.gather(
            *(target.agent.process_message(message, target.delay, metadata) for target, message in addressed),
            return_exceptions=True,
        )

        responses: List[AgentResponse] = []
        for (target, _), result in zip(addressed, results):
            if isinstance(result, BaseException):
                log_error(f"[Router] {target.agent.name} failed unexpectedly: {result}")
            elif result is not None:
                responses.append(result)
        return plan, responses

    async def send_message(
        self,
        content: str,
        *,
        thread_id: Optional[str] = None,
        radius: Optional[float] = None,
        message_id: Optional[str] = None,
    ) -> List[AgentResponse]:
        """Dispatch ``content`` and return the replies (see ``dispatch``)."""
        _, responses = await self.dispatch(content, thread_id=thread_id, radius=radius, message_id=message_id)
        return responses

    async def iter_responses(
        self,
        content: str,
        *,
        thread_id: Optional[str] = None,
        radius: Optional[float] = None,
        message_id: Optional[str] = None,
    ) -> AsyncIterator[AgentResponse]:
        """Dispatch ``content`` and yield replies as they resolve."""
        _, addressed = self._prepare(content, thread_id=thread_id, radius=radius, message_id=message_id)
        metadata = self.peer_metadata()
        tasks = [
            asyncio.ensure_future(target.agent.process_message(message, target.delay, metadata))
            for target, message in addressed
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                try:
                    result = await next_done
                except Exception as exc:
                    log_error(f"[Router] Agent failed unexpectedly: {exc}")
                    continue
                if result is not None:
                    yield result
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
