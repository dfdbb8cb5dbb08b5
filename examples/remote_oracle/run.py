"""
Remote Oracle - Importing an A2A Agent
======================================

WHAT THIS SHOWS:
- Fetching an agent card from a running A2A server
- Placing the remote agent next to local bots
- Peer skill metadata forwarded with every message
- Threaded follow-ups continuing the remote conversation (contextId)

RUN (with any A2A server listening, e.g. on port 9999):
    uv run python -m examples.remote_oracle.run http://localhost:9999
"""

import asyncio
import sys

from tileverse import A2AClient, Orchestrator, Position, RemoteProtocolError, build_world
from tileverse.logging_utils import log_error


async def main(card_url: str):
    client = A2AClient()
    try:
        card = await client.fetch_agent_card(card_url)
    except RemoteProtocolError as exc:
        log_error(f"Could not import agent from {card_url}: {exc}")
        return

    print(f"Imported {card.name}: {card.description or 'no description'}")
    for skill in card.skills:
        print(f"  skill: {skill.name} {skill.tags}")

    world = build_world(remote_client=client)
    oracle = world.spawn_remote_agent(card, card_url, Position(x=2, y=1))
    orchestrator = Orchestrator(world)

    turn = await orchestrator.broadcast("What lies beyond the eastern road?")
    if turn is None:
        print("Nobody in range.")
        return
    for response in turn.responses:
        print(f"  +{response.delay:.0f}ms {response.agent_name}: {response.message}")

    follow_up = await orchestrator.post_message(
        f"@{oracle.name} tell me more", thread_id=turn.thread_id
    )
    for response in follow_up.responses:
        print(f"  +{response.delay:.0f}ms {response.agent_name}: {response.message}")
    print(f"Remote context for {turn.thread_id}: {oracle.context_id_for(turn.thread_id)}")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "http://localhost:9999"))
