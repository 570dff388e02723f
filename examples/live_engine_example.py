"""Example: drive the live interaction engine end to end (demo mode).

Loads the broadcast directory, joins the first broadcast, sends a chat, a like
and a gift, scrolls to the next broadcast and prints the view model after
each step. With DEMO_MODE=true every collaborator is an in-process stub, so
no network access is needed.

Run:
    DEMO_MODE=true python examples/live_engine_example.py
"""

import asyncio

from livecast.domain.live.engine import create_live_engine
from livecast.schemas import BroadcastViewModel


def print_view(label: str, view: BroadcastViewModel | None) -> None:
    print(f"\n{label}")
    if view is None:
        print("   (no active broadcast)")
        return
    print(f"   broadcast={view.broadcast_id} state={view.connection_state} layout={view.layout}")
    print(f"   viewers={view.viewer_count} likes={view.like_count} balance={view.wallet_balance}")
    print(f"   battle={view.battle.left}:{view.battle.right} active={view.battle.active}")
    for entry in view.rendered_chat:
        print(f"   [{entry.username}] {entry.text}")
    if view.recharge_prompt:
        print(f"   recharge: {view.recharge_prompt.message}")


async def main():
    print("Live Interaction Engine Example")
    print("=" * 50)

    engine = create_live_engine()
    try:
        broadcasts = await engine.load()
        print(f"\n1. Loaded {len(broadcasts)} broadcasts")
        for broadcast in broadcasts:
            print(f"   - {broadcast.id}: {broadcast.title} ({broadcast.category})")
        await engine.refresh_wallet()
        print_view("2. Joined first broadcast:", engine.view())

        chat = await engine.send_chat("hello from the example")
        like = await engine.send_like()
        gift = await engine.send_gift("rose")
        print(f"\n3. Actions: chat={chat.status} like={like.status} gift={gift.status}")
        print_view("   View after actions:", engine.view())

        if len(broadcasts) > 1:
            # Slot 1 crosses the visibility threshold, slot 0 scrolls away
            await engine.on_visibility([(0, 0.3), (1, 0.8)])
            print_view("4. Scrolled to next broadcast:", engine.view())

        playback = engine.report_playback_error("decoder error")
        print(f"\n5. Playback after error: {playback.status} source={playback.source}")
    finally:
        await engine.close()


if __name__ == "__main__":
    asyncio.run(main())
