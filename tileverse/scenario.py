"""
Scenario loading for JSON-defined worlds.

A scenario gives the player's starting position and the starting roster of
agents. Scenarios are data, so new worlds need no code.

Scenario file structure:
```json
{
  "name": "Starter Valley",
  "description": "...",
  "player": {"x": 0, "y": 0},
  "agents": [
    {"id": "agent-1", "name": "Explorer Bot", "behavior": "random",
     "x": 5, "y": 3, "color": "#00FF00", "move_interval": 1500, "direction": "right"},
    {"id": "oracle", "name": "Oracle", "behavior": "remote",
     "x": 2, "y": 2, "endpoint": "http://localhost:9999"}
  ]
}
```

Usage:
    loader = ScenarioLoader()
    player, agents = loader.load("starter")
    world = build_world(player, agents)
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .config import Config
from .generation import TextGenerator
from .remote import RemoteAgentClient
from .schemas import AgentState, Position
from .world import World

# Behavior labels seen in hand-written scenarios, mapped to BehaviorKind values.
BEHAVIOR_ALIASES: Dict[str, str] = {
    "a2a": "remote",
    "a2a agent": "remote",
}

DEFAULT_PLAYER = Position(x=0, y=0)

DEFAULT_AGENTS: Tuple[AgentState, ...] = (
    AgentState(
        id="agent-1",
        name="Explorer Bot",
        color="#00FF00",
        x=5,
        y=3,
        behavior="random",
        direction="right",
        move_interval=1500,
    ),
    AgentState(
        id="agent-2",
        name="Patrol Bot",
        color="#FF6600",
        x=-3,
        y=-2,
        behavior="patrol",
        direction="up",
        move_interval=2000,
    ),
    AgentState(
        id="agent-3",
        name="Wanderer",
        color="#9933FF",
        x=8,
        y=-5,
        behavior="explorer",
        direction="left",
        move_interval=1000,
    ),
)


class ScenarioLoader:
    """Load and validate world scenarios from JSON files.

    Directory structure:
    - Default: Config.SCENARIOS_DIR ({PROJECT_ROOT}/examples/scenarios/)
    - Override via constructor: ScenarioLoader(Path("/custom/scenarios"))
    - Scenario files: {scenario_name}.json

    Validation:
    - Required fields: name, agents
    - Agent ids must be unique
    - Raises ValueError if validation fails
    """

    def __init__(self, scenarios_dir: Optional[Path] = None):
        self.scenarios_dir = scenarios_dir or Config.SCENARIOS_DIR

    def _path(self, scenario_name: str) -> Path:
        return self.scenarios_dir / f"{scenario_name}.json"

    def load(self, scenario_name: str) -> Tuple[Position, List[AgentState]]:
        """Load a scenario by name.

        Args:
            scenario_name: File stem, e.g. "starter" loads "starter.json"

        Returns:
            Tuple of (player start position, agent states in file order)

        Raises:
            FileNotFoundError: If the scenario file doesn't exist
            ValueError: If the scenario is missing fields or has bad agent entries
            json.JSONDecodeError: If the file contains invalid JSON
        """
        scenario_path = self._path(scenario_name)
        if not scenario_path.exists():
            raise FileNotFoundError(
                f"Scenario '{scenario_name}' not found at {scenario_path}"
            )

        data = json.loads(scenario_path.read_text())
        self._validate_scenario(data)

        player = self._parse_player(data.get("player"))
        agents = [self._parse_agent(entry, index) for index, entry in enumerate(data["agents"])]
        return player, agents

    def _validate_scenario(self, data: Dict[str, Any]) -> None:
        required = ["name", "agents"]
        missing = [field for field in required if field not in data]
        if missing:
            raise ValueError(f"Scenario missing required fields: {missing}")

        if not isinstance(data["agents"], list):
            raise ValueError("Scenario 'agents' must be a list")

        ids = [entry.get("id") for entry in data["agents"] if isinstance(entry, dict)]
        duplicates = sorted({agent_id for agent_id in ids if agent_id and ids.count(agent_id) > 1})
        if duplicates:
            raise ValueError(f"Scenario has duplicate agent ids: {duplicates}")

    def _parse_player(self, raw: Any) -> Position:
        # Accepts {"x": 1, "y": 2} or [1, 2]; missing means the origin.
        if raw is None:
            return DEFAULT_PLAYER
        if isinstance(raw, (list, tuple)) and len(raw) == 2:
            return Position(x=int(raw[0]), y=int(raw[1]))
        if isinstance(raw, dict):
            return Position(x=int(raw.get("x", 0)), y=int(raw.get("y", 0)))
        raise ValueError(f"Unrecognised player position: {raw!r}")

    def _parse_agent(self, entry: Any, index: int) -> AgentState:
        if not isinstance(entry, dict):
            raise ValueError(f"Agent entry {index} must be an object")

        fields = dict(entry)
        fields.setdefault("id", f"agent-{index + 1}")
        behavior = fields.get("behavior")
        if isinstance(behavior, str):
            fields["behavior"] = BEHAVIOR_ALIASES.get(behavior.strip().lower(), behavior.strip().lower())
        if "position" in fields:
            position = self._parse_player(fields.pop("position"))
            fields.setdefault("x", position.x)
            fields.setdefault("y", position.y)

        try:
            return AgentState.model_validate(fields)
        except ValidationError as exc:
            raise ValueError(f"Agent entry {index} ({fields.get('name', '?')}) is invalid: {exc}") from exc

    def list_scenarios(self) -> List[str]:
        """Scenario names (file stems) available in the scenarios directory."""
        if not self.scenarios_dir.exists():
            return []
        return sorted(
            f.stem for f in self.scenarios_dir.glob("*.json")
            if not f.name.startswith("_")
        )

    def get_scenario_info(self, scenario_name: str) -> Dict[str, Any]:
        """Scenario metadata without building agent states."""
        data = json.loads(self._path(scenario_name).read_text())
        return {
            "name": data.get("name", scenario_name),
            "description": data.get("description", "No description"),
            "num_agents": len(data.get("agents", [])),
            "recommended_ticks": data.get("recommended_ticks", 50),
        }


def load_scenario(scenario_name: str) -> Tuple[Position, List[AgentState]]:
    """Convenience function to load a scenario from the default directory."""
    return ScenarioLoader().load(scenario_name)


def default_roster() -> List[AgentState]:
    """Fresh copies of the three built-in agents."""
    return [state.model_copy(deep=True) for state in DEFAULT_AGENTS]


def build_world(
    player: Optional[Position] = None,
    agents: Optional[List[AgentState]] = None,
    *,
    text_generator: Optional[TextGenerator] = None,
    remote_client: Optional[RemoteAgentClient] = None,
    **world_options: Any,
) -> World:
    """Create a World and register ``agents`` (the built-in roster by default)."""
    world = World(
        player=player or DEFAULT_PLAYER,
        text_generator=text_generator,
        remote_client=remote_client,
        **world_options,
    )
    for state in default_roster() if agents is None else agents:
        world.create_agent(state)
    return world
