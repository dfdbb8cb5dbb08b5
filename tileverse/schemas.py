"""
Pydantic schemas for the Tileverse world/agent messaging system.

Design Philosophy:
- Positions are plain integer pairs; the world is unbounded
- AgentState is owned by one agent and replaced wholesale on update
- Message and AgentResponse are per-dispatch records (distance and mention
  flag are computed per agent at dispatch time)
- ConversationNode carries thread lineage for the conversation DAG
- Remote-agent metadata (cards, skills) stays loosely typed via extra fields
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Space
# ============================================================================


class Position(BaseModel):
    """Integer world coordinate. Hashable so it can key dicts and sets."""

    model_config = ConfigDict(frozen=True)

    x: int
    y: int

    def as_tuple(self) -> Tuple[int, int]:
        return self.x, self.y

    def __str__(self) -> str:  # pragma: no cover - display helper
        return f"({self.x}, {self.y})"


class Direction(str, Enum):
    """Cardinal heading. ``up`` decreases y (screen coordinates)."""

    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


class BehaviorKind(str, Enum):
    """Agent variants. The first three move locally; REMOTE is moved by its owner."""

    RANDOM = "random"
    PATROL = "patrol"
    EXPLORER = "explorer"
    REMOTE = "remote"

    @property
    def is_local(self) -> bool:
        return self is not BehaviorKind.REMOTE


# ============================================================================
# Agents
# ============================================================================


class AgentSkill(BaseModel):
    """Capability advertised on a remote agent's card."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class AgentCard(BaseModel):
    """Identity document served by a remote agent.

    ``url`` is the JSON-RPC endpoint messages are posted to. Unknown card
    fields are kept so nothing the remote side publishes is lost.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    url: str
    description: Optional[str] = None
    version: Optional[str] = None
    skills: List[AgentSkill] = Field(default_factory=list)


class AgentState(BaseModel):
    """Identity and simulation state of one agent.

    Owned exclusively by the agent instance; replaced only through
    ``BaseAgent.update_state``.
    """

    id: str = Field(..., description="Unique, stable agent identifier")
    name: str = Field(..., description="Display name, also the @mention target")
    color: str = Field("#FFFFFF", description="Display color")
    x: int = 0
    y: int = 0
    behavior: BehaviorKind = BehaviorKind.RANDOM
    direction: Direction = Direction.RIGHT
    # Milliseconds since epoch of the last movement decision cycle
    last_moved: float = 0.0
    move_interval: int = Field(1000, ge=0, description="Milliseconds between moves")
    # Remote agents only: agent card URL used to reach the remote endpoint
    endpoint: Optional[str] = None
    skills: List[AgentSkill] = Field(default_factory=list)

    @property
    def position(self) -> Position:
        return Position(x=self.x, y=self.y)


# ============================================================================
# Messaging
# ============================================================================


class Message(BaseModel):
    """Player message as seen by one agent.

    ``distance`` and ``is_mentioned`` differ per recipient and are filled in
    by the dispatcher.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    content: str
    sender: Literal["player"] = "player"
    timestamp: datetime = Field(default_factory=utc_now)
    player_position: Position
    distance: float = 0.0
    is_mentioned: bool = False
    thread_id: Optional[str] = None


class AgentResponse(BaseModel):
    """One agent's reply.

    ``delay`` is advisory: the presentation layer schedules the reveal, the
    core never sleeps on it. ``position`` is where the agent stood when the
    reply was generated.
    """

    agent_id: str
    agent_name: str
    message: str
    timestamp: datetime = Field(default_factory=utc_now)
    delay: float = Field(..., ge=0, description="Milliseconds before the reply should surface")
    position: Position
    distance: float = 0.0
    thread_id: Optional[str] = None


class GenerationRequest(BaseModel):
    """Everything a text generator needs to speak as a local agent."""

    agent_name: str
    behavior: BehaviorKind
    agent_position: Position
    player_position: Position
    distance: float
    user_message: str
    is_mentioned: bool = False


# ============================================================================
# Conversation
# ============================================================================


class ConversationNode(BaseModel):
    """A message in the conversation DAG.

    Invariants (kept by ConversationDAG, the only mutator):
    - every non-root node has at least one parent present in the graph
    - ``child_ids`` equals the set of nodes listing this node as a parent
    """

    id: str
    content: str
    sender: Literal["player", "agent"]
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    parent_ids: List[str] = Field(default_factory=list)
    child_ids: List[str] = Field(default_factory=list)
    depth: int = Field(0, ge=0)
    # Layout hint for tree views: (column=depth, row)
    display_position: Tuple[float, float] = (0.0, 0.0)

    @property
    def is_root(self) -> bool:
        return not self.parent_ids


class ConversationStats(BaseModel):
    total_messages: int = 0
    player_messages: int = 0
    agent_messages: int = 0
    root_count: int = 0
    max_depth: int = 0


class ThreadInfo(BaseModel):
    """A broadcast thread opened by the player."""

    id: str
    message: str
    participants: List[str] = Field(default_factory=list, description="Agent names in range at send time")
    created_at: datetime = Field(default_factory=utc_now)


class ChatTurn(BaseModel):
    """Outcome of one player message: the root id and replies sorted by delay."""

    message_id: str
    content: str
    thread_id: Optional[str] = None
    targeted_agent_ids: List[str] = Field(default_factory=list)
    responses: List[AgentResponse] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
