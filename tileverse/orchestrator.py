"""
Session orchestrator.

Owns one World, its conversation graph and the movement engine, and wires
them together:
1. Record the player message as a conversation root
2. Dispatch through the World (targets and delays decided synchronously)
3. Record replies under the root, ordered by reveal delay
4. Hand the resulting ChatTurn to listeners (the presentation layer)

Movement runs on its own tick (``step``/``run``) independently of chat.
The orchestrator never sleeps on reply delays; listeners schedule reveals.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from .config import Config
from .conversation import ConversationDAG
from .logging_utils import is_verbose, log_deterministic, log_error, log_info, log_success
from .movement import MovementEngine
from .schemas import ChatTurn, ThreadInfo
from .world import World

ResponseListener = Callable[[ChatTurn], None]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class Orchestrator:
    """Runs a chat-and-movement session over an injected World.

    Args:
        world: The world to drive
        conversation: Conversation graph (a fresh one by default)
        movement: Movement engine (defaults to one using the world's terrain predicate)
        clock: Millisecond clock used by ``step`` when no time is given
        tick_interval_ms: Sleep between ticks in ``run``
        response_listeners: Callables receiving every ChatTurn
    """

    def __init__(
        self,
        world: World,
        *,
        conversation: Optional[ConversationDAG] = None,
        movement: Optional[MovementEngine] = None,
        clock: Optional[Callable[[], float]] = None,
        tick_interval_ms: Optional[int] = None,
        response_listeners: Optional[List[ResponseListener]] = None,
    ) -> None:
        self.world = world
        self.conversation = conversation or ConversationDAG()
        self.movement = movement or MovementEngine(walkable=world.walkable)
        self.clock = clock or _monotonic_ms
        self.tick_interval_ms = Config.MOVE_TICK_MS if tick_interval_ms is None else tick_interval_ms
        self.response_listeners: List[ResponseListener] = list(response_listeners or [])
        self._threads: Dict[str, ThreadInfo] = {}

    # Chat ------------------------------------------------------------------

    @property
    def threads(self) -> List[ThreadInfo]:
        return list(self._threads.values())

    def get_thread(self, thread_id: str) -> Optional[ThreadInfo]:
        return self._threads.get(thread_id)

    def add_listener(self, listener: ResponseListener) -> None:
        self.response_listeners.append(listener)

    async def post_message(
        self,
        content: str,
        *,
        thread_id: Optional[str] = None,
        radius: Optional[float] = None,
        message_id: Optional[str] = None,
    ) -> ChatTurn:
        """Send a player message and record the replies.

        Returns:
            ChatTurn whose responses are sorted by reveal delay
        """
        message_id = message_id or str(uuid4())
        self.conversation.add_root(message_id, content)

        plan, responses = await self.world.dispatch(
            content, thread_id=thread_id, radius=radius, message_id=message_id
        )
        responses.sort(key=lambda response: response.delay)

        self.conversation.add_responses(
            message_id,
            [
                {
                    "id": f"{message_id}:{response.agent_id}",
                    "content": response.message,
                    "agent_id": response.agent_id,
                    "agent_name": response.agent_name,
                    "timestamp": response.timestamp,
                }
                for response in responses
            ],
        )

        turn = ChatTurn(
            message_id=message_id,
            content=content,
            thread_id=thread_id,
            targeted_agent_ids=plan.agent_ids,
            responses=responses,
            metadata={"mode": plan.mode, "mentions": plan.mentions},
        )
        log_success(
            f"[Chat] {len(responses)}/{len(plan.targets)} agent(s) replied to {message_id}"
        )
        self._notify(turn)
        return turn

    async def broadcast(self, content: str, *, radius: Optional[float] = None) -> Optional[ChatTurn]:
        """Open a new thread with every agent in range and send ``content`` to it.

        Returns None without sending when nobody is in range.
        """
        radius = self.world.broadcast_radius if radius is None else radius
        in_range = self.world.agents_in_range(radius)
        if not in_range:
            log_info(f"[Chat] No agents within {radius} units; broadcast not sent")
            return None

        thread_id = f"thread-{int(time.time() * 1000)}"
        while thread_id in self._threads:
            thread_id = f"{thread_id}-{len(self._threads)}"
        self._threads[thread_id] = ThreadInfo(
            id=thread_id,
            message=content,
            participants=[agent.name for agent in in_range],
        )
        log_deterministic(f"[Chat] Opened {thread_id} with {len(in_range)} agent(s)")
        return await self.post_message(content, thread_id=thread_id, radius=radius)

    def _notify(self, turn: ChatTurn) -> None:
        for listener in self.response_listeners:
            try:
                listener(turn)
            except Exception as exc:
                log_error(f"[Chat] Response listener {listener!r} failed: {exc}")

    # Movement --------------------------------------------------------------

    def step(self, now_ms: Optional[float] = None) -> List[str]:
        """Run one movement tick; returns ids of agents that moved."""
        now = self.clock() if now_ms is None else now_ms
        moved = self.movement.step(self.world.agents, self.world.player_position, now)
        if moved and is_verbose():
            log_deterministic(f"[Movement] {len(moved)} agent(s) moved: {', '.join(moved)}")
        return moved

    async def run(self, num_ticks: int) -> Dict[str, int]:
        """Run ``num_ticks`` movement ticks, sleeping ``tick_interval_ms`` between them."""
        moves = 0
        for tick in range(1, num_ticks + 1):
            moves += len(self.step())
            if tick < num_ticks:
                await asyncio.sleep(self.tick_interval_ms / 1000)
        return {"ticks": num_ticks, "moves": moves}

    def close(self) -> None:
        """End the session: drop agents, threads and conversation history."""
        self.world.close()
        self.conversation.clear()
        self._threads.clear()
