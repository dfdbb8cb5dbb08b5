"""
Conversation graph for player messages and agent replies.

Every player message is a root; agent replies hang under the message they
answer. Nodes carry a ``parent_ids`` list, but every construction path
here gives a node at most one parent, so the graph is a forest of trees
and traversal follows the first parent only.

Usage:
    dag = ConversationDAG()
    dag.add_root("m1", "hello")
    dag.add_responses("m1", [{"id": "r1", "content": "hi", "agent_id": "a1", "agent_name": "Ann"}])
    dag.thread_path("r1")  # [m1, r1]
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .schemas import ConversationNode, ConversationStats, utc_now


def _as_utc(timestamp: Optional[datetime]) -> datetime:
    """Default to now; read naive times as UTC so every node sorts together."""
    if timestamp is None:
        return utc_now()
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp


class ParentNotFoundError(KeyError):
    """Raised when replies are attached to a node id that is not in the graph."""

    def __init__(self, parent_id: str) -> None:
        self.parent_id = parent_id
        super().__init__(f"Parent node '{parent_id}' not found in conversation")


class ConversationDAG:
    """Forest of player messages and their replies, keyed by node id."""

    def __init__(self) -> None:
        self._nodes: Dict[str, ConversationNode] = {}
        self._roots: List[str] = []
        # Insertion-ordered set of leaf ids
        self._leaves: Dict[str, None] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def _check_new_id(self, node_id: str) -> None:
        if node_id in self._nodes:
            raise ValueError(f"Conversation node '{node_id}' already exists")

    def add_root(self, node_id: str, content: str, *, timestamp: Optional[datetime] = None) -> ConversationNode:
        """Record a player message as a new root."""
        self._check_new_id(node_id)
        node = ConversationNode(
            id=node_id,
            content=content,
            sender="player",
            timestamp=_as_utc(timestamp),
            depth=0,
            display_position=(0.0, float(len(self._roots))),
        )
        self._nodes[node_id] = node
        self._roots.append(node_id)
        self._leaves[node_id] = None
        return node

    def add_responses(
        self, parent_id: str, responses: Iterable[Mapping[str, Any]]
    ) -> List[ConversationNode]:
        """Attach agent replies under ``parent_id``, preserving their order.

        Each response mapping needs ``id`` and ``content``; ``agent_id``,
        ``agent_name`` and ``timestamp`` are optional.

        Raises:
            ParentNotFoundError: ``parent_id`` is unknown (graph unchanged)
            ValueError: a reply id already exists (graph unchanged)
        """
        parent = self._nodes.get(parent_id)
        if parent is None:
            raise ParentNotFoundError(parent_id)

        entries = list(responses)
        ids = [entry["id"] for entry in entries]
        for node_id in ids:
            self._check_new_id(node_id)
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate reply ids under '{parent_id}'")

        # Build everything first so a bad entry leaves the graph untouched.
        count = len(entries)
        parent_row = parent.display_position[1]
        created = [
            ConversationNode(
                id=entry["id"],
                content=entry["content"],
                sender="agent",
                agent_id=entry.get("agent_id"),
                agent_name=entry.get("agent_name"),
                timestamp=_as_utc(entry.get("timestamp")),
                parent_ids=[parent_id],
                depth=parent.depth + 1,
                display_position=(float(parent.depth + 1), parent_row + index - (count - 1) / 2),
            )
            for index, entry in enumerate(entries)
        ]

        self._leaves.pop(parent_id, None)
        for node in created:
            self._nodes[node.id] = node
            self._leaves[node.id] = None
            parent.child_ids.append(node.id)
        return created

    def get_node(self, node_id: str) -> Optional[ConversationNode]:
        return self._nodes.get(node_id)

    def thread_path(self, node_id: str) -> List[ConversationNode]:
        """Nodes from the root down to ``node_id`` (empty if unknown)."""
        path: List[ConversationNode] = []
        current = self._nodes.get(node_id)
        while current is not None:
            path.append(current)
            current = self._nodes.get(current.parent_ids[0]) if current.parent_ids else None
        path.reverse()
        return path

    def responses_of(self, node_id: str) -> List[ConversationNode]:
        node = self._nodes.get(node_id)
        if node is None:
            return []
        return [self._nodes[child_id] for child_id in node.child_ids]

    def all_nodes_chronological(self) -> List[ConversationNode]:
        # sorted() is stable, so same-timestamp nodes keep insertion order
        return sorted(self._nodes.values(), key=lambda node: node.timestamp)

    @property
    def roots(self) -> List[ConversationNode]:
        return [self._nodes[node_id] for node_id in self._roots]

    @property
    def leaves(self) -> List[ConversationNode]:
        return [self._nodes[node_id] for node_id in self._leaves]

    def stats(self) -> ConversationStats:
        nodes = list(self._nodes.values())
        player = sum(1 for node in nodes if node.sender == "player")
        return ConversationStats(
            total_messages=len(nodes),
            player_messages=player,
            agent_messages=len(nodes) - player,
            root_count=len(self._roots),
            max_depth=max((node.depth for node in nodes), default=0),
        )

    def tree(self) -> Dict[str, List[Dict[str, Any]]]:
        """Nodes and parent->child edges, for tree views and JSON export."""
        nodes = [node.model_dump(mode="json") for node in self.all_nodes_chronological()]
        edges = [
            {"from": parent_id, "to": node.id}
            for node in self._nodes.values()
            for parent_id in node.parent_ids
        ]
        return {"nodes": nodes, "edges": edges}

    def snapshot(self) -> "ConversationDAG":
        """Independent deep copy of the graph."""
        clone = ConversationDAG()
        clone._nodes = {node_id: node.model_copy(deep=True) for node_id, node in self._nodes.items()}
        clone._roots = list(self._roots)
        clone._leaves = dict(self._leaves)
        return clone

    def clear(self) -> None:
        self._nodes.clear()
        self._roots.clear()
        self._leaves.clear()
