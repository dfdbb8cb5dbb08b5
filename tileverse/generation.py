"""Text generation for local agents.

Local agents speak through a ``TextGenerator``. Two implementations ship:

- ``LLMTextGenerator`` asks a configured LLM provider (via mirascope, or a
  local Ollama server) for a short in-character reply.
- ``CannedTextGenerator`` returns fixed per-behavior lines and needs no
  network; it is the default when no provider is configured.

Generators may raise. Callers (``LocalAgent``) catch every failure and use
``fallback_reply`` instead.
"""

from __future__ import annotations

from typing import Optional, Protocol

from pydantic import BaseModel, Field

from .config import Config
from .llm_utils import call_llm_with_retries
from .logging_utils import log_llm
from .schemas import BehaviorKind, GenerationRequest, Position


class TextGenerator(Protocol):
    """Protocol for reply generation strategies."""

    async def generate(self, request: GenerationRequest) -> str:
        """Return plain reply text for ``request``."""
        ...


def fallback_reply(agent_name: str, position: Position) -> str:
    """Deterministic stand-in used when generation fails."""
    return (
        f"{agent_name} at ({position.x}, {position.y}) received your message "
        "but couldn't respond properly."
    )


BEHAVIOR_DESCRIPTIONS: dict[BehaviorKind, str] = {
    BehaviorKind.RANDOM: "You move randomly and unpredictably, always curious about new discoveries.",
    BehaviorKind.PATROL: "You are systematic and methodical, following patrol routes and maintaining order.",
    BehaviorKind.EXPLORER: "You are adventurous and seek out new territories, avoiding crowds when possible.",
}


class AgentReply(BaseModel):
    message: str = Field(..., min_length=1, description="One or two sentences, in character")


def build_reply_prompts(request: GenerationRequest) -> tuple[str, str]:
    """Return (system_prompt, user_prompt) for a local agent reply."""

    description = BEHAVIOR_DESCRIPTIONS.get(request.behavior, "You have a unique personality.")
    system_prompt = (
        f"You are {request.agent_name}, an agent in a tile-based adventure world. "
        f"Behavior: {request.behavior.value}. {description} "
        "Stay in character and keep replies brief."
    )
    if request.is_mentioned:
        context = "You were addressed directly with an @mention; answer personally."
    else:
        context = "You overheard this message; join in casually."
    user_prompt = f"""
Your position: ({request.agent_position.x}, {request.agent_position.y})
Player position: ({request.player_position.x}, {request.player_position.y})
Distance from player: {request.distance:.1f} units

The player said: "{request.user_message}"

{context}
Output JSON matching the AgentReply schema.
"""
    return system_prompt, user_prompt


class LLMTextGenerator:
    """Generator backed by an LLM provider."""

    def __init__(
        self,
        *,
        llm_provider: Optional[str] = None,
        llm_model: Optional[str] = None,
        max_attempts: int = 2,
    ) -> None:
        provider = llm_provider or Config.LLM_PROVIDER
        if not provider:
            raise ValueError(
                "LLMTextGenerator requires an LLM provider. Set LLM_PROVIDER or "
                "use CannedTextGenerator for offline worlds."
            )
        self.llm_provider = provider
        self.llm_model = llm_model or Config.LLM_MODEL
        self.max_attempts = max_attempts

    async def generate(self, request: GenerationRequest) -> str:
        system_prompt, user_prompt = build_reply_prompts(request)
        log_llm(f"[{request.agent_name}] Generating reply via {self.llm_provider}/{self.llm_model}...")
        reply = await call_llm_with_retries(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            llm_provider=self.llm_provider,
            llm_model=self.llm_model,
            response_model=AgentReply,
            max_attempts=self.max_attempts,
        )
        return reply.message.strip()


class CannedTextGenerator:
    """Offline generator with one fixed line per behavior kind."""

    TEMPLATES: dict[BehaviorKind, str] = {
        BehaviorKind.RANDOM: "Message received at ({x}, {y})! I'm exploring new territories.",
        BehaviorKind.PATROL: "{name} reporting from ({x}, {y}). Message acknowledged.",
        BehaviorKind.EXPLORER: "Hello from ({x}, {y})! Nice to hear from you while I wander.",
    }
    DEFAULT_TEMPLATE = "Agent {name} received your message from position ({x}, {y})."

    async def generate(self, request: GenerationRequest) -> str:
        template = self.TEMPLATES.get(request.behavior, self.DEFAULT_TEMPLATE)
        return template.format(
            name=request.agent_name,
            x=request.agent_position.x,
            y=request.agent_position.y,
        )


def build_default_generator() -> TextGenerator:
    """LLM-backed generator when a provider is configured, canned lines otherwise."""
    if Config.LLM_PROVIDER:
        return LLMTextGenerator()
    return CannedTextGenerator()
