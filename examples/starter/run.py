"""
Starter Valley - Chat With Three Bots
=====================================

WHAT THIS SHOWS:
- Loading a world from a JSON scenario
- The procedural terrain around the player (ASCII view)
- Open-floor, broadcast and @mention addressing
- Reply delays returned by the core and revealed by the caller
- Movement ticks running independently of chat

No LLM needed: without LLM_PROVIDER the bots use canned replies.

RUN:
    uv run python -m examples.starter.run
"""

import asyncio

from tileverse import (
    ChatTurn,
    Orchestrator,
    ScenarioLoader,
    build_default_generator,
    build_world,
    circular_window_at,
    render_ascii_window,
    visible_agents,
)
from tileverse.config import Config
from tileverse.schemas import Direction

VIEW_SIZE = 21


def draw_view(orchestrator: Orchestrator) -> str:
    """Render the circular view around the player with agents overlaid."""
    world = orchestrator.world
    player = world.player_position.as_tuple()
    grid = circular_window_at(player[0], player[1], Config.VIEW_RADIUS, VIEW_SIZE, VIEW_SIZE)

    on_screen = visible_agents(
        [(agent.id, agent.position.as_tuple()) for agent in world.agents],
        player,
        radius=Config.VIEW_RADIUS,
        width=VIEW_SIZE,
        height=VIEW_SIZE,
    )
    markers = {cell: agent_id[-1] + " " for agent_id, cell in on_screen.items()}
    markers[(VIEW_SIZE // 2, VIEW_SIZE // 2)] = "@ "
    return render_ascii_window(grid, markers=markers)


async def reveal(turn: ChatTurn) -> None:
    """Show replies the way a chat UI would: each after its own delay."""
    elapsed = 0.0
    for response in turn.responses:
        await asyncio.sleep((response.delay - elapsed) / 1000)
        elapsed = response.delay
        print(f"  +{response.delay:>6.0f}ms  {response.agent_name}: {response.message}")
    if not turn.responses:
        print("  (silence)")


async def main():
    print("=" * 60)
    print("STARTER VALLEY")
    print("=" * 60)
    print(Config.display())
    print()

    # ========================================
    # Build the world from the scenario file
    # ========================================
    player, agents = ScenarioLoader().load("starter")
    world = build_world(player, agents, text_generator=build_default_generator())
    orchestrator = Orchestrator(world)

    print(draw_view(orchestrator))
    print()

    # ========================================
    # Three ways to address agents
    # ========================================
    print('Open floor: "hello everyone"')
    await reveal(await orchestrator.post_message("hello everyone"))

    print(f'\nBroadcast within {Config.BROADCAST_RADIUS} units: "anyone nearby?"')
    turn = await orchestrator.broadcast("anyone nearby?")
    if turn is None:
        print("  (nobody in range)")
    else:
        await reveal(turn)
        print(f"  thread {turn.thread_id}: {orchestrator.get_thread(turn.thread_id).participants}")

    print('\nMention: "@Patrol Bot how is the route?"')
    await reveal(await orchestrator.post_message("@Patrol Bot how is the route?"))

    # ========================================
    # Let the world move for a couple of seconds
    # ========================================
    for _ in range(3):
        world.move_player(Direction.RIGHT)
    await orchestrator.run(num_ticks=20)

    print("\nAfter 20 movement ticks:")
    for agent in world.agents:
        print(f"  {agent.name:<13} at {agent.position.as_tuple()} facing {agent.state.direction.value}")
    print()
    print(draw_view(orchestrator))

    stats = orchestrator.conversation.stats()
    print(
        f"\nConversation: {stats.player_messages} player message(s), "
        f"{stats.agent_messages} agent replies, depth {stats.max_depth}"
    )


if __name__ == "__main__":
    asyncio.run(main())
