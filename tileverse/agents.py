"""
Agents living in the tile world.

Two variants share one contract (``BaseAgent``):

- ``LocalAgent`` covers the random, patrol and explorer behaviors. It moves
  on the movement tick and speaks through a ``TextGenerator``. It is chatty
  by default: any message that reaches it unprompted gets a reply.
- ``RemoteAgent`` is backed by an external A2A endpoint. Its owner moves it,
  and it only answers unprompted messages sent from within broadcast range.

Addressing gate applied by ``process_message`` (same for both variants):
- threaded message: answer only if already in the thread or mentioned;
  a mention while outside the thread joins it
- unthreaded message: answer if mentioned, otherwise ask
  ``should_respond_unprompted``

``process_message`` never raises. Local generation failures become a
deterministic fallback line and remote failures become silence (None), so
the dispatcher needs no per-agent error handling.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, Mapping, Optional, Set, Type

from .config import Config
from .generation import TextGenerator, fallback_reply
from .logging_utils import is_verbose, log_deterministic, log_error, log_remote
from .remote import NO_REPLY_TEXT, RemoteAgentClient, reply_context_id, unwrap_reply
from .schemas import (
    AgentResponse,
    AgentState,
    BehaviorKind,
    GenerationRequest,
    Message,
    Position,
)

# Metadata key carrying the skills of remote agents present in the world.
PEER_SKILLS_KEY = "agent_skills"


class BaseAgent(ABC):
    """Common state, thread membership and reply orchestration."""

    def __init__(self, state: AgentState) -> None:
        self._state = state.model_copy(deep=True)
        self._threads: Set[str] = set()
        # Serializes message processing so concurrent dispatches to the same
        # agent cannot interleave thread-membership changes.
        self._lock = asyncio.Lock()

    # Identity ------------------------------------------------------------

    @property
    def id(self) -> str:
        return self._state.id

    @property
    def name(self) -> str:
        return self._state.name

    @property
    def color(self) -> str:
        return self._state.color

    @property
    def behavior(self) -> BehaviorKind:
        return self._state.behavior

    @property
    def position(self) -> Position:
        return self._state.position

    @property
    def is_local(self) -> bool:
        return self._state.behavior.is_local

    @property
    def state(self) -> AgentState:
        """Snapshot copy; mutate through ``update_state``."""
        return self._state.model_copy(deep=True)

    def update_state(self, **changes: Any) -> AgentState:
        """Merge ``changes`` into the state and return the new snapshot.

        Raises:
            ValueError: on unknown fields, an id change, or switching
                between local and remote behavior
        """
        unknown = set(changes) - set(AgentState.model_fields)
        if unknown:
            raise ValueError(f"Unknown agent state fields: {sorted(unknown)}")
        if "id" in changes and changes["id"] != self._state.id:
            raise ValueError(f"Agent id is immutable (agent {self._state.id})")

        merged = AgentState.model_validate({**self._state.model_dump(), **changes})
        if merged.behavior.is_local != self._state.behavior.is_local:
            raise ValueError(
                f"Agent {self._state.id} cannot switch between local and remote behavior"
            )
        self._state = merged
        return self.state

    # Threads -------------------------------------------------------------

    def join_thread(self, thread_id: str) -> None:
        self._threads.add(thread_id)

    def leave_thread(self, thread_id: str) -> None:
        self._threads.discard(thread_id)

    def is_in_thread(self, thread_id: str) -> bool:
        return thread_id in self._threads

    @property
    def threads(self) -> FrozenSet[str]:
        return frozenset(self._threads)

    # Messaging -----------------------------------------------------------

    @abstractmethod
    def should_respond_unprompted(self, message: Message) -> bool:
        """Eligibility when neither mentioned nor addressed through a thread."""

    @abstractmethod
    async def _compose_reply(
        self, message: Message, metadata: Mapping[str, Any]
    ) -> Optional[str]:
        """Return reply text, or None to stay silent. Must not raise."""

    def _admit(self, message: Message) -> bool:
        if message.thread_id:
            in_thread = self.is_in_thread(message.thread_id)
            if not in_thread and not message.is_mentioned:
                return False
            if message.is_mentioned and not in_thread:
                self.join_thread(message.thread_id)
                if is_verbose():
                    log_deterministic(f"[{self.name}] Joined thread {message.thread_id} (mentioned)")
            return True
        return message.is_mentioned or self.should_respond_unprompted(message)

    def _peer_metadata(self, metadata: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Copy ``metadata`` without this agent's own entry in the peer skill list."""
        cleaned: Dict[str, Any] = dict(metadata or {})
        peers = cleaned.get(PEER_SKILLS_KEY)
        if isinstance(peers, list):
            cleaned[PEER_SKILLS_KEY] = [
                peer for peer in peers
                if not (isinstance(peer, Mapping) and peer.get("agent") == self.name)
            ]
        return cleaned

    async def process_message(
        self,
        message: Message,
        delay: float,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Optional[AgentResponse]:
        """Decide whether to answer ``message`` and produce the reply.

        Args:
            message: The player message as addressed to this agent
            delay: Precomputed reveal delay (ms) copied onto the response
            metadata: Dispatch metadata (peer skills, etc.)

        Returns:
            AgentResponse, or None when the agent stays silent
        """
        async with self._lock:
            if not self._admit(message):
                if is_verbose():
                    log_deterministic(f"[{self.name}] Not responding to message {message.id}")
                return None

            text = await self._compose_reply(message, self._peer_metadata(metadata))
            if text is None:
                return None

            return AgentResponse(
                agent_id=self.id,
                agent_name=self.name,
                message=text,
                delay=delay,
                position=self.position,
                distance=message.distance,
                thread_id=message.thread_id,
            )

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"{type(self).__name__}(id={self.id!r}, name={self.name!r}, position={self.position.as_tuple()})"


class LocalAgent(BaseAgent):
    """Heuristic NPC (random, patrol or explorer) replying via a text generator."""

    def __init__(self, state: AgentState, *, text_generator: Optional[TextGenerator] = None) -> None:
        if not state.behavior.is_local:
            raise ValueError(f"LocalAgent cannot have behavior {state.behavior.value!r}")
        super().__init__(state)
        self.text_generator = text_generator

    def should_respond_unprompted(self, message: Message) -> bool:
        return True

    async def _compose_reply(self, message: Message, metadata: Mapping[str, Any]) -> Optional[str]:
        if self.text_generator is None:
            return fallback_reply(self.name, self.position)

        request = GenerationRequest(
            agent_name=self.name,
            behavior=self.behavior,
            agent_position=self.position,
            player_position=message.player_position,
            distance=message.distance,
            user_message=message.content,
            is_mentioned=message.is_mentioned,
        )
        try:
            text = await self.text_generator.generate(request)
        except Exception as exc:
            log_error(f"[{self.name}] Text generation failed ({exc}); using fallback reply")
            return fallback_reply(self.name, self.position)

        return text.strip() if text and text.strip() else fallback_reply(self.name, self.position)


class RemoteAgent(BaseAgent):
    """Agent whose replies come from an external A2A endpoint.

    Remembers the remote conversation context per thread so follow-up
    messages in the same thread continue the remote conversation.
    """

    def __init__(
        self,
        state: AgentState,
        *,
        client: Optional[RemoteAgentClient] = None,
        broadcast_radius: Optional[float] = None,
    ) -> None:
        if state.behavior is not BehaviorKind.REMOTE:
            raise ValueError("RemoteAgent requires behavior 'remote'")
        super().__init__(state)
        self.client = client
        self.broadcast_radius = Config.BROADCAST_RADIUS if broadcast_radius is None else broadcast_radius
        self._context_ids: Dict[str, str] = {}

    @property
    def endpoint(self) -> Optional[str]:
        return self._state.endpoint

    def should_respond_unprompted(self, message: Message) -> bool:
        return message.distance <= self.broadcast_radius

    def context_id_for(self, thread_id: Optional[str]) -> Optional[str]:
        return self._context_ids.get(thread_id) if thread_id else None

    async def _compose_reply(self, message: Message, metadata: Mapping[str, Any]) -> Optional[str]:
        if not self.endpoint or self.client is None:
            log_error(f"[{self.name}] Remote agent has no endpoint or client configured")
            return None

        player = message.player_position
        annotated = f"[From player at ({player.x}, {player.y})]: {message.content}"
        try:
            envelope = await self.client.send_message(
                self.endpoint,
                annotated,
                metadata=metadata,
                context_id=self.context_id_for(message.thread_id),
            )
        except Exception as exc:
            log_error(f"[{self.name}] Remote call failed ({exc}); staying silent")
            return None

        context_id = reply_context_id(envelope)
        if context_id and message.thread_id:
            self._context_ids[message.thread_id] = context_id

        text = unwrap_reply(envelope)
        if not text or text == NO_REPLY_TEXT:
            log_remote(f"[{self.name}] No usable reply in envelope")
            return None
        return text


_AGENT_CLASSES: Dict[BehaviorKind, Type[BaseAgent]] = {
    BehaviorKind.RANDOM: LocalAgent,
    BehaviorKind.PATROL: LocalAgent,
    BehaviorKind.EXPLORER: LocalAgent,
    BehaviorKind.REMOTE: RemoteAgent,
}


def create_agent(
    state: AgentState,
    *,
    text_generator: Optional[TextGenerator] = None,
    remote_client: Optional[RemoteAgentClient] = None,
    broadcast_radius: Optional[float] = None,
) -> BaseAgent:
    """Build the agent variant matching ``state.behavior``."""
    agent_cls = _AGENT_CLASSES[state.behavior]
    if agent_cls is RemoteAgent:
        return RemoteAgent(state, client=remote_client, broadcast_radius=broadcast_radius)
    return LocalAgent(state, text_generator=text_generator)
