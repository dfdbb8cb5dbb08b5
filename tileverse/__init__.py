"""
Tileverse - multi-agent messaging on an infinite procedural tile world.

A deterministic coordinate-keyed terrain generator, local behavior-driven
agents and remote A2A agents, and a router that decides for every player
message who answers, with what delay, and where the reply sits in the
conversation graph.

All collaborators (text generation, remote protocol client, clock) are
injected. Reply delays are returned, never slept on.
"""

__version__ = "0.1.0"

# Session
from .orchestrator import Orchestrator
from .world import (
    World,
    DispatchPlan,
    DispatchTarget,
    AgentNotFoundError,
    DuplicateAgentError,
    extract_mentions,
)
from .conversation import ConversationDAG, ParentNotFoundError
from .movement import MovementEngine, MoveDecision

# Agents and their capabilities
from .agents import BaseAgent, LocalAgent, RemoteAgent, create_agent
from .generation import (
    TextGenerator,
    LLMTextGenerator,
    CannedTextGenerator,
    build_default_generator,
    fallback_reply,
)
from .remote import (
    A2AClient,
    RemoteAgentClient,
    RemoteProtocolError,
    NO_REPLY_TEXT,
    reply_text,
    unwrap_reply,
)

# Terrain
from .environment import (
    BiomeType,
    TileType,
    biome_at,
    circular_window_at,
    render_ascii_window,
    tile_at,
    visible_agents,
    walkable,
    window_at,
)

# Schemas
from .schemas import (
    Position,
    Direction,
    BehaviorKind,
    AgentSkill,
    AgentCard,
    AgentState,
    Message,
    AgentResponse,
    GenerationRequest,
    ConversationNode,
    ConversationStats,
    ThreadInfo,
    ChatTurn,
)

# Scenario helpers
from .scenario import DEFAULT_AGENTS, ScenarioLoader, build_world, load_scenario

__all__ = [
    # Session
    "Orchestrator",
    "World",
    "DispatchPlan",
    "DispatchTarget",
    "AgentNotFoundError",
    "DuplicateAgentError",
    "extract_mentions",
    "ConversationDAG",
    "ParentNotFoundError",
    "MovementEngine",
    "MoveDecision",
    # Agents
    "BaseAgent",
    "LocalAgent",
    "RemoteAgent",
    "create_agent",
    "TextGenerator",
    "LLMTextGenerator",
    "CannedTextGenerator",
    "build_default_generator",
    "fallback_reply",
    "A2AClient",
    "RemoteAgentClient",
    "RemoteProtocolError",
    "NO_REPLY_TEXT",
    "reply_text",
    "unwrap_reply",
    # Terrain
    "BiomeType",
    "TileType",
    "biome_at",
    "circular_window_at",
    "render_ascii_window",
    "tile_at",
    "visible_agents",
    "walkable",
    "window_at",
    # Schemas
    "Position",
    "Direction",
    "BehaviorKind",
    "AgentSkill",
    "AgentCard",
    "AgentState",
    "Message",
    "AgentResponse",
    "GenerationRequest",
    "ConversationNode",
    "ConversationStats",
    "ThreadInfo",
    "ChatTurn",
    # Scenario helpers
    "DEFAULT_AGENTS",
    "ScenarioLoader",
    "build_world",
    "load_scenario",
]
