"""
Tileverse Configuration

Loads configuration from environment variables with sensible defaults.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Text generation. An empty provider keeps agents on canned offline replies.
    LLM_PROVIDER: str | None = os.getenv("LLM_PROVIDER") or None
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-5-nano")
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

    # API Keys
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")

    # Ollama server used when LLM_PROVIDER=ollama
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434")

    # Remote (A2A) agents
    REMOTE_TIMEOUT_SECONDS: float = float(os.getenv("REMOTE_TIMEOUT_SECONDS", "30"))

    # Message routing
    BROADCAST_RADIUS: float = float(os.getenv("BROADCAST_RADIUS", "10"))
    MAX_SPEED: float = float(os.getenv("MAX_SPEED", "10"))  # units per second
    BASE_DELAY_MS: float = float(os.getenv("BASE_DELAY_MS", "500"))
    STAGGER_DELAY_MS: float = float(os.getenv("STAGGER_DELAY_MS", "100"))

    # World simulation
    MOVE_TICK_MS: int = int(os.getenv("MOVE_TICK_MS", "100"))
    VIEW_RADIUS: float = float(os.getenv("VIEW_RADIUS", "10"))

    # Project Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    SCENARIOS_DIR: Path = PROJECT_ROOT / "examples" / "scenarios"

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if required values are missing."""
        if cls.MAX_SPEED <= 0:
            raise ValueError("MAX_SPEED must be positive; it divides every travel delay.")

        if cls.BROADCAST_RADIUS < 0:
            raise ValueError("BROADCAST_RADIUS cannot be negative.")

        if cls.LLM_PROVIDER == "anthropic" and not cls.ANTHROPIC_API_KEY:
            raise ValueError(
                "ANTHROPIC_API_KEY is required when using the 'anthropic' provider"
            )

        if cls.LLM_PROVIDER == "openai" and not cls.OPENAI_API_KEY:
            raise ValueError(
                "OPENAI_API_KEY is required when using the 'openai' provider. "
                "For a local model, set LLM_PROVIDER=ollama and OLLAMA_BASE_URL instead."
            )

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Tileverse Configuration:",
            f"  LLM Provider: {cls.LLM_PROVIDER or 'none (canned replies)'}",
            f"  LLM Model: {cls.LLM_MODEL}",
            f"  Broadcast Radius: {cls.BROADCAST_RADIUS}",
            f"  Message Speed: {cls.MAX_SPEED} units/s",
            f"  Base Delay: {cls.BASE_DELAY_MS}ms (+{cls.STAGGER_DELAY_MS}ms stagger)",
            f"  Movement Tick: {cls.MOVE_TICK_MS}ms",
        ]
        return "\n".join(lines)
