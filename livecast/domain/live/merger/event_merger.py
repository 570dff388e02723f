"""Merges channel events into a broadcast's view state.

The merger is the only writer of a broadcast's counters, chat log, pinned
product and affordances. Every mutation is commutative with respect to event
arrival order except the pinned product, which is resolved by `sent_at`.
Duplicate deliveries (same `event_id`) are applied once.
"""

from __future__ import annotations

import math
import time
from collections import deque
from collections.abc import Callable
from uuid import uuid4

from loguru import logger

from livecast.domain.live.battle.battle_engine import BattleEngine
from livecast.schemas.broadcast import Broadcast, Product
from livecast.schemas.channel_state import ChannelState
from livecast.schemas.events import (
    BattleEndEvent,
    BattleStartEvent,
    ChatEvent,
    GiftEvent,
    LikeEvent,
    LiveEvent,
    PinProductEvent,
    PresenceEvent,
    UnpinProductEvent,
)
from livecast.schemas.view_model import (
    Affordance,
    BroadcastViewModel,
    ChatEntry,
    LayoutMode,
    PlaybackView,
    RechargePrompt,
)

from .chat_log import ChatLog


def layout_for(broadcast: Broadcast, *, battle_active: bool) -> LayoutMode:
    if broadcast.is_gaming:
        return LayoutMode.GAMING
    if battle_active:
        return LayoutMode.BATTLE
    tiles = broadcast.tile_count
    if tiles <= 1:
        return LayoutMode.SINGLE
    if tiles == 2:
        return LayoutMode.SPLIT
    if tiles <= 4:
        return LayoutMode.GRID_2X2
    return LayoutMode.GRID_3X3


class EventMerger:
    def __init__(
        self,
        broadcast: Broadcast,
        *,
        chat_log: ChatLog | None = None,
        battle: BattleEngine | None = None,
        clock: Callable[[], float] = time.monotonic,
        like_ttl: float = 1.0,
        gift_ttl: float = 2.0,
        dedupe_window: int = 512,
    ):
        self._broadcast = broadcast
        self._chat_log = chat_log or ChatLog()
        self._battle = battle or BattleEngine()
        self._clock = clock
        self._like_ttl = like_ttl
        self._gift_ttl = gift_ttl

        self._viewer_count = broadcast.viewers
        self._like_count = broadcast.likes
        self._pinned: Product | None = broadcast.pinned_product
        self._pin_stamp = -math.inf
        self._presence_keys: set[str] = set()
        self._affordances: list[Affordance] = []

        self._seen_order: deque[str] = deque(maxlen=dedupe_window)
        self._seen_ids: set[str] = set()

    @property
    def broadcast(self) -> Broadcast:
        return self._broadcast

    @property
    def battle(self) -> BattleEngine:
        return self._battle

    @battle.setter
    def battle(self, engine: BattleEngine) -> None:
        self._battle = engine

    @property
    def chat_log(self) -> ChatLog:
        return self._chat_log

    @property
    def viewer_count(self) -> int:
        return self._viewer_count

    @property
    def like_count(self) -> int:
        return self._like_count

    @property
    def pinned_product(self) -> Product | None:
        return self._pinned

    def apply(self, event: LiveEvent, *, local: bool = False) -> bool:
        """Apply one event. Returns False when it was a duplicate or ignored."""
        if not self._remember(event.event_id):
            logger.debug("Duplicate event_id={} ignored", event.event_id)
            return False

        if isinstance(event, ChatEvent):
            self._chat_log.push(
                ChatEntry(
                    entry_id=event.event_id,
                    username=event.sender.username,
                    avatar_url=event.sender.avatar_url,
                    text=event.text,
                    is_privileged=event.sender.is_privileged,
                    created_at=event.sent_at,
                )
            )
        elif isinstance(event, LikeEvent):
            self._like_count += 1
            self._spawn("heart", "❤️", self._like_ttl, local)
            self._battle.record_like(local=local)
        elif isinstance(event, GiftEvent):
            self._chat_log.push(
                ChatEntry(
                    entry_id=event.event_id,
                    username=event.sender.username,
                    avatar_url=event.sender.avatar_url,
                    text=f"sent {event.name} {event.emoji}".rstrip(),
                    is_system=True,
                    created_at=event.sent_at,
                )
            )
            self._spawn("gift", event.emoji, self._gift_ttl, local)
            self._battle.record_gift(event.value, local=local)
        elif isinstance(event, PinProductEvent):
            return self._set_pin(event.product, event.sent_at)
        elif isinstance(event, UnpinProductEvent):
            return self._set_pin(None, event.sent_at)
        elif isinstance(event, PresenceEvent):
            if event.action == "join" and event.key not in self._presence_keys:
                self._presence_keys.add(event.key)
                self._viewer_count += 1
        elif isinstance(event, BattleStartEvent):
            self._battle.start(event.battle_id)
        elif isinstance(event, BattleEndEvent):
            self._battle.end(event.battle_id)
        else:
            return False
        return True

    def layout(self) -> LayoutMode:
        return layout_for(self._broadcast, battle_active=self._battle.is_active)

    def snapshot(
        self,
        *,
        connection_state: ChannelState = ChannelState.DISCONNECTED,
        playback: PlaybackView | None = None,
        is_followed: bool = False,
        wallet_balance: int = 0,
        recharge_prompt: RechargePrompt | None = None,
    ) -> BroadcastViewModel:
        self._prune_affordances()
        return BroadcastViewModel(
            broadcast_id=self._broadcast.id,
            connection_state=connection_state,
            viewer_count=self._viewer_count,
            like_count=self._like_count,
            pinned_product=self._pinned,
            chat_entries=self._chat_log.newest_first(),
            rendered_chat=self._chat_log.rendered(),
            affordances=tuple(self._affordances),
            battle=self._battle.scores(),
            playback=playback,
            layout=self.layout(),
            is_followed=is_followed,
            wallet_balance=wallet_balance,
            recharge_prompt=recharge_prompt,
        )

    def _remember(self, event_id: str) -> bool:
        if event_id in self._seen_ids:
            return False
        if len(self._seen_order) == self._seen_order.maxlen:
            self._seen_ids.discard(self._seen_order[0])
        self._seen_order.append(event_id)
        self._seen_ids.add(event_id)
        return True

    def _set_pin(self, product: Product | None, sent_at: float) -> bool:
        if sent_at < self._pin_stamp:
            logger.debug("Out-of-order pin change ignored for broadcast_id={}", self._broadcast.id)
            return False
        self._pin_stamp = sent_at
        self._pinned = product
        return True

    def _spawn(self, kind: str, emoji: str, ttl: float, local: bool) -> None:
        self._affordances.append(
            Affordance(
                affordance_id=uuid4().hex[:12],
                kind=kind,
                emoji=emoji,
                is_local=local,
                expires_at=self._clock() + ttl,
            )
        )

    def _prune_affordances(self) -> None:
        now = self._clock()
        self._affordances = [a for a in self._affordances if a.expires_at > now]
