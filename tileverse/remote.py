"""Client for remote agents speaking the A2A (agent-to-agent) JSON-RPC protocol.

A remote agent is known by its agent card URL. The card names the agent,
lists its skills and gives the JSON-RPC endpoint that accepts
``message/send`` calls.

Reply envelopes vary between servers, so text extraction is an explicit,
ordered list of shape rules (``ENVELOPE_RULES``) applied to the raw JSON.
The first rule whose shape matches decides where the reply message lives;
text is then read from that message's parts.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Protocol
from urllib.parse import urlparse
from uuid import uuid4

from pydantic import ValidationError

from .config import Config
from .logging_utils import log_remote
from .schemas import AgentCard
from .transport import TransportError, get_json, post_json

NO_REPLY_TEXT = "Agent received your message but did not respond."
WELL_KNOWN_CARD_PATH = "/.well-known/agent-card.json"


class RemoteProtocolError(RuntimeError):
    """Raised when a remote agent cannot be reached or answers with an error."""

    def __init__(self, message: str, *, endpoint: str) -> None:
        self.endpoint = endpoint
        super().__init__(message)


class RemoteAgentClient(Protocol):
    """What ``RemoteAgent`` needs from a protocol client."""

    async def send_message(
        self,
        endpoint: str,
        text: str,
        *,
        metadata: Optional[Mapping[str, Any]] = None,
        context_id: Optional[str] = None,
    ) -> Mapping[str, Any]:
        ...


# ============================================================================
# Envelope unwrapping
# ============================================================================

_UNMATCHED = object()


def _mapping(value: Any) -> Optional[Mapping[str, Any]]:
    return value if isinstance(value, Mapping) else None


def _result_is_message(envelope: Mapping[str, Any]) -> Any:
    # JSON-RPC result that is itself a message or task (has a ``kind``).
    # Tasks nest the agent's reply under status.message.
    result = _mapping(envelope.get("result"))
    if result is None or "kind" not in result:
        return _UNMATCHED
    status = _mapping(result.get("status"))
    if status is not None and "message" in status:
        return status["message"]
    return result


def _result_message(envelope: Mapping[str, Any]) -> Any:
    result = _mapping(envelope.get("result"))
    if result is None or "message" not in result:
        return _UNMATCHED
    return result["message"]


def _top_level_message(envelope: Mapping[str, Any]) -> Any:
    return envelope["message"] if "message" in envelope else _UNMATCHED


def _data_message(envelope: Mapping[str, Any]) -> Any:
    data = _mapping(envelope.get("data"))
    if data is None or "message" not in data:
        return _UNMATCHED
    return data["message"]


ENVELOPE_RULES: tuple[tuple[str, Callable[[Mapping[str, Any]], Any]], ...] = (
    ("result-kind", _result_is_message),
    ("result.message", _result_message),
    ("message", _top_level_message),
    ("data.message", _data_message),
)


def find_reply_message(envelope: Any) -> Optional[Mapping[str, Any]]:
    """Return the message-like object of the first matching envelope rule."""
    envelope = _mapping(envelope)
    if envelope is None:
        return None
    for _name, rule in ENVELOPE_RULES:
        found = rule(envelope)
        if found is not _UNMATCHED:
            return _mapping(found)
    return None


def extract_message_text(message: Mapping[str, Any]) -> Optional[str]:
    """Join the text parts of a message; fall back to a direct ``text`` field."""
    parts = message.get("parts")
    if isinstance(parts, list):
        texts = [
            part["text"]
            for part in parts
            if isinstance(part, Mapping)
            and part.get("kind") == "text"
            and isinstance(part.get("text"), str)
        ]
        if not texts:
            return None
        return " ".join(texts).strip()
    text = message.get("text")
    return text if isinstance(text, str) else None


def unwrap_reply(envelope: Any) -> Optional[str]:
    """Reply text carried by ``envelope``, or None when it has none."""
    message = find_reply_message(envelope)
    if message is None:
        return None
    text = extract_message_text(message)
    return text or None


def reply_text(envelope: Any) -> str:
    """Like ``unwrap_reply`` but substitutes the fixed no-reply placeholder."""
    return unwrap_reply(envelope) or NO_REPLY_TEXT


def reply_context_id(envelope: Any) -> Optional[str]:
    message = find_reply_message(envelope)
    if message is None:
        return None
    context_id = message.get("contextId")
    return context_id if isinstance(context_id, str) and context_id else None


# ============================================================================
# Client
# ============================================================================


def resolve_card_url(url: str) -> str:
    """Accept a bare agent base URL as well as a full card URL."""
    parsed = urlparse(url)
    if parsed.path in ("", "/"):
        return url.rstrip("/") + WELL_KNOWN_CARD_PATH
    return url


def build_send_request(
    text: str,
    *,
    metadata: Optional[Mapping[str, Any]] = None,
    context_id: Optional[str] = None,
) -> dict[str, Any]:
    """JSON-RPC ``message/send`` request carrying one user text part."""
    message: dict[str, Any] = {
        "kind": "message",
        "messageId": str(uuid4()),
        "role": "user",
        "parts": [{"kind": "text", "text": text}],
    }
    if metadata:
        message["metadata"] = dict(metadata)
    if context_id:
        message["contextId"] = context_id
    return {
        "jsonrpc": "2.0",
        "id": str(uuid4()),
        "method": "message/send",
        "params": {"message": message},
    }


class A2AClient:
    """A2A client with a per-instance agent card cache.

    Args:
        timeout: Seconds allowed for each HTTP exchange
    """

    def __init__(self, *, timeout: Optional[float] = None) -> None:
        self.timeout = timeout or Config.REMOTE_TIMEOUT_SECONDS
        self._cards: dict[str, AgentCard] = {}

    async def fetch_agent_card(self, card_url: str) -> AgentCard:
        card_url = resolve_card_url(card_url)
        cached = self._cards.get(card_url)
        if cached is not None:
            return cached

        log_remote(f"Fetching agent card from {card_url}")
        try:
            raw = await get_json(card_url, timeout=self.timeout)
            card = AgentCard.model_validate(raw)
        except TransportError as exc:
            raise RemoteProtocolError(str(exc), endpoint=card_url) from exc
        except ValidationError as exc:
            raise RemoteProtocolError(
                f"Agent card at {card_url} is malformed: {exc.error_count()} issue(s)",
                endpoint=card_url,
            ) from exc

        self._cards[card_url] = card
        return card

    async def send_message(
        self,
        endpoint: str,
        text: str,
        *,
        metadata: Optional[Mapping[str, Any]] = None,
        context_id: Optional[str] = None,
    ) -> Mapping[str, Any]:
        """Send ``text`` to the agent whose card lives at ``endpoint``.

        Returns the raw JSON-RPC envelope; use ``unwrap_reply`` to read it.

        Raises:
            RemoteProtocolError: transport failure, JSON-RPC error, or non-object reply
        """
        card = await self.fetch_agent_card(endpoint)
        payload = build_send_request(text, metadata=metadata, context_id=context_id)

        log_remote(f"[{card.name}] message/send -> {card.url}")
        try:
            envelope = await post_json(card.url, payload, timeout=self.timeout)
        except TransportError as exc:
            raise RemoteProtocolError(str(exc), endpoint=card.url) from exc

        if not isinstance(envelope, Mapping):
            raise RemoteProtocolError("Reply envelope is not a JSON object.", endpoint=card.url)
        if envelope.get("error"):
            raise RemoteProtocolError(f"Remote agent returned an error: {envelope['error']}", endpoint=card.url)
        return envelope
