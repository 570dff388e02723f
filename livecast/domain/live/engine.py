"""Live interaction engine facade.

Ties the stream directory, viewport scheduler, channel sessions, event merger,
battle engine, gift gateway and playback fallback together behind the entry
points a UI consumes. Every component error is turned into degraded view state
here; nothing raised by a component escapes the facade.

Usage:
    engine = create_live_engine()
    await engine.load()
    await engine.on_visibility([(1, 0.8)])
    await engine.send_chat("hello")
    view = engine.view()
    await engine.close()
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from enum import Enum
from uuid import uuid4

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict
from redis.asyncio import Redis

from livecast.app_config import AppEnvironConfig, get_app_environ_config
from livecast.schemas.broadcast import Broadcast, UserIdentity
from livecast.schemas.channel_state import ChannelState
from livecast.schemas.events import CHAT_MAX_LENGTH, ChatEvent, EventSender, LikeEvent, LiveEvent
from livecast.schemas.view_model import (
    BroadcastViewModel,
    PlaybackStatus,
    PlaybackView,
    RechargePrompt,
)
from livecast.services.auth_gate import AuthGate, DeferredAuthGate
from livecast.services.integrations.live_api_client import get_live_api_client
from livecast.services.integrations.realtime_transport import (
    RealtimeTransport,
    get_realtime_transport,
)
from livecast.services.integrations.user_directory import (
    UserDirectoryClient,
    get_user_directory_client,
)
from livecast.services.integrations.wallet_ledger import (
    WalletLedgerClient,
    get_wallet_ledger_client,
)
from livecast.shared.token_bucket import SendThrottle, TokenBucketConfig
from livecast.utils.app_errors import AppError

from .battle.battle_engine import BattleEngine
from .channel.channel_session import ChannelSession, ChannelSessionManager
from .directory.stream_directory import StreamDirectory
from .errors import InsufficientBalanceError, PlaybackError
from .gifting.gift_catalog import GiftCatalog
from .gifting.gift_gateway import GiftGateway
from .gifting.wallet_snapshot import WalletSnapshot
from .merger.chat_log import ChatLog
from .merger.event_merger import EventMerger
from .playback.playback_fallback import UNAVAILABLE_MESSAGE, PlaybackFallback
from .viewport.viewport_scheduler import ViewportScheduler

ViewListener = Callable[[BroadcastViewModel], None]


class ActionStatus(str, Enum):
    SENT = "sent"
    DROPPED = "dropped"
    DEFERRED = "deferred"
    RECHARGE_REQUIRED = "recharge_required"

    def __str__(self) -> str:
        return self.value


class ActionOutcome(BaseModel):
    """Result of a viewer action entry point."""

    status: ActionStatus
    reason: str | None = None
    event_id: str | None = None
    recharge_prompt: RechargePrompt | None = None

    model_config = ConfigDict(frozen=True)


def _dropped(reason: str) -> ActionOutcome:
    return ActionOutcome(status=ActionStatus.DROPPED, reason=reason)


class _ActiveBroadcast:
    """Per-activation state. A fresh instance is built for every activation."""

    def __init__(self, broadcast: Broadcast, merger: EventMerger, playback: PlaybackFallback):
        self.activation_id = uuid4().hex[:12]
        self.broadcast = broadcast
        self.merger = merger
        self.playback = playback


class LiveInteractionEngine:
    def __init__(
        self,
        *,
        viewer: UserIdentity,
        directory: StreamDirectory,
        transport: RealtimeTransport,
        auth_gate: AuthGate,
        wallet_ledger: WalletLedgerClient | None = None,
        user_directory: UserDirectoryClient | None = None,
        throttle: SendThrottle | None = None,
        catalog: GiftCatalog | None = None,
        cfg: AppEnvironConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        client_id: str | None = None,
        starting_balance: int = 0,
    ):
        self._cfg = cfg or get_app_environ_config()
        self._viewer = viewer
        self._directory = directory
        self._auth_gate = auth_gate
        self._wallet_ledger = wallet_ledger
        self._user_directory = user_directory
        self._throttle = throttle
        self._catalog = catalog or GiftCatalog()
        self._clock = clock
        self._client_id = client_id or uuid4().hex

        self._sender = EventSender(username=viewer.username, avatar_url=viewer.avatar_url, role="viewer")
        self._channel = ChannelSessionManager(
            transport,
            client_id=self._client_id,
            viewer_name=viewer.username,
            topic_prefix=self._cfg.TRANSPORT_TOPIC_PREFIX,
            on_event=self._on_channel_event,
            on_state_change=self._on_channel_state,
        )
        self._scheduler = ViewportScheduler(
            threshold=self._cfg.VISIBILITY_THRESHOLD,
            on_change=self._on_active_index_change,
        )
        self._wallet = WalletSnapshot(starting_balance)
        self._gifts = GiftGateway(
            catalog=self._catalog,
            wallet=self._wallet,
            channel=self._channel,
            viewer_id=viewer.id,
            sender=self._sender,
            ledger=wallet_ledger,
        )

        self._broadcasts: list[Broadcast] = []
        self._loaded = False
        self._active: _ActiveBroadcast | None = None
        self._switch_task: asyncio.Task | None = None
        self._battle_timer: asyncio.Task | None = None
        self._followed: set[str] = set()
        self._recharge_prompt: RechargePrompt | None = None
        self._listeners: list[ViewListener] = []

    # ==================== STATE ====================

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def broadcasts(self) -> list[Broadcast]:
        return list(self._broadcasts)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def active_index(self) -> int:
        return self._scheduler.active_index

    @property
    def active_broadcast(self) -> Broadcast | None:
        return self._active.broadcast if self._active else None

    @property
    def wallet_balance(self) -> int:
        return self._wallet.balance

    @property
    def auth_gate(self) -> AuthGate:
        return self._auth_gate

    @property
    def channel(self) -> ChannelSessionManager:
        return self._channel

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        """Register a view listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def view(self) -> BroadcastViewModel | None:
        active = self._active
        if active is None:
            return None
        return active.merger.snapshot(
            connection_state=self._connection_state(active),
            playback=active.playback.view(),
            is_followed=active.broadcast.host.id in self._followed,
            wallet_balance=self._wallet.balance,
            recharge_prompt=self._recharge_prompt,
        )

    # ==================== LIST / VIEWPORT ====================

    async def load(self) -> list[Broadcast]:
        """Fetch the active broadcasts and activate the first one.

        An unavailable directory yields an empty list and no active broadcast.
        """
        self._broadcasts = await self._directory.list_active_or_empty()
        self._loaded = True
        self._scheduler.reset(len(self._broadcasts))

        if self._broadcasts:
            await self._begin_switch(0)
        else:
            await self._deactivate()
        return self.broadcasts

    async def on_visibility(self, entries: Iterable[tuple[int, float]]) -> int:
        """Feed visibility fractions for list slots and return the active index."""
        self._scheduler.on_visibility_batch(entries)
        await self._wait_for_switch()
        return self._scheduler.active_index

    async def activate_index(self, index: int) -> BroadcastViewModel | None:
        if not 0 <= index < len(self._broadcasts):
            logger.debug("Ignoring activation of unknown slot={}", index)
            return self.view()
        self._scheduler.select(index)
        await self._wait_for_switch()
        return self.view()

    async def close(self) -> None:
        self._cancel_battle_timer()
        self._active = None
        await self._channel.deactivate()
        await self._gifts.drain()

    # ==================== VIEWER ACTIONS ====================

    async def send_chat(self, text: str) -> ActionOutcome:
        text = text.strip()
        if not text:
            return _dropped("empty message")
        if len(text) > CHAT_MAX_LENGTH:
            logger.info("Dropped chat of {} chars, limit is {}", len(text), CHAT_MAX_LENGTH)
            return _dropped("message too long")
        return await self._gated(lambda: self._send_chat(text))

    async def send_like(self) -> ActionOutcome:
        return await self._gated(self._send_like)

    async def send_gift(self, gift_id: str) -> ActionOutcome:
        return await self._gated(lambda: self._send_gift(gift_id))

    async def follow(self, host_id: str) -> ActionOutcome:
        return await self._gated(lambda: self._toggle_follow(host_id))

    def report_playback_error(self, error: Exception | str | None = None) -> PlaybackView:
        active = self._active
        if active is None:
            return PlaybackView(source=None, status=PlaybackStatus.UNAVAILABLE, message=UNAVAILABLE_MESSAGE)

        failed = PlaybackError(str(error or "Playback failed"), source=active.playback.current_source())
        logger.warning(
            "{} {} msg={} source={} broadcast_id={}",
            failed.errcode,
            failed.erresid,
            failed.errmesg,
            failed.source,
            active.broadcast.id,
        )
        playback = active.playback.on_error(failed)
        self._notify()
        return playback

    # ==================== WALLET ====================

    def sync_wallet(self, balance: int) -> int:
        """Apply an authoritative balance. Overwrites any unsettled local debit."""
        self._wallet.refresh(balance)
        if self._recharge_prompt is not None and balance >= self._recharge_prompt.price:
            self._recharge_prompt = None
        self._notify()
        return self._wallet.balance

    async def refresh_wallet(self) -> int:
        if self._wallet_ledger is None:
            return self._wallet.balance
        try:
            balance = await self._wallet_ledger.get_balance(self._viewer.id)
        except httpx.HTTPError as exc:
            logger.warning("Wallet refresh failed for viewer_id={}: {}", self._viewer.id, exc)
            return self._wallet.balance
        return self.sync_wallet(balance)

    # ==================== INTERNALS ====================

    async def _gated(self, action: Callable[[], Awaitable[ActionOutcome]]) -> ActionOutcome:
        outcome = await self._auth_gate.require_auth(action)
        if outcome is None:
            return ActionOutcome(status=ActionStatus.DEFERRED, reason="login required")
        return outcome

    async def _send_chat(self, text: str) -> ActionOutcome:
        active = self._active
        if active is None:
            return _dropped("no active broadcast")
        if not await self._throttle_allows("chat"):
            return _dropped("rate limited")
        return await self._emit(active, ChatEvent(sender=self._sender, text=text, origin=self._client_id))

    async def _send_like(self) -> ActionOutcome:
        active = self._active
        if active is None:
            return _dropped("no active broadcast")
        if not await self._throttle_allows("like"):
            return _dropped("rate limited")
        return await self._emit(active, LikeEvent(sender=self._sender, origin=self._client_id))

    async def _send_gift(self, gift_id: str) -> ActionOutcome:
        active = self._active
        if active is None:
            return _dropped("no active broadcast")

        try:
            event = await self._gifts.send(gift_id, active.merger)
        except InsufficientBalanceError as exc:
            logger.info("Gift {} needs recharge: {}", gift_id, exc.errmesg)
            self._recharge_prompt = exc.prompt
            self._notify()
            return ActionOutcome(status=ActionStatus.RECHARGE_REQUIRED, recharge_prompt=exc.prompt)
        except AppError as exc:
            logger.warning("{} {} msg={}", exc.errcode, exc.erresid, exc.errmesg)
            return _dropped(exc.errmesg)

        if event is None:
            return _dropped("gift not published")

        self._recharge_prompt = None
        self._notify()
        return ActionOutcome(status=ActionStatus.SENT, event_id=event.event_id)

    async def _toggle_follow(self, host_id: str) -> ActionOutcome:
        follow = host_id not in self._followed
        if follow:
            self._followed.add(host_id)
        else:
            self._followed.discard(host_id)
        self._notify()

        if self._user_directory is not None:
            try:
                await self._user_directory.set_follow(self._viewer.id, host_id, follow)
            except httpx.HTTPError as exc:
                logger.warning("Follow update failed for host_id={}: {}", host_id, exc)
                if follow:
                    self._followed.discard(host_id)
                else:
                    self._followed.add(host_id)
                self._notify()
                return _dropped("follow update failed")

        return ActionOutcome(status=ActionStatus.SENT)

    async def _emit(self, active: _ActiveBroadcast, event: LiveEvent) -> ActionOutcome:
        if not self._channel.is_connected:
            # Logged as a transport drop by the channel manager
            await self._channel.send(event)
            return _dropped("not connected")

        active.merger.apply(event, local=True)
        self._notify()
        await self._channel.send(event)
        return ActionOutcome(status=ActionStatus.SENT, event_id=event.event_id)

    async def _throttle_allows(self, action: str) -> bool:
        if self._throttle is None:
            return True
        allowed = await self._throttle.allow(self._viewer.id, action)
        if not allowed:
            logger.warning("Dropped {} from viewer_id={}: rate limited", action, self._viewer.id)
        return allowed

    def _on_active_index_change(self, previous: int, current: int) -> None:
        logger.info("Active broadcast slot {} -> {}", previous, current)
        self._start_switch(current)

    async def _begin_switch(self, index: int) -> None:
        self._start_switch(index)
        await self._wait_for_switch()

    def _start_switch(self, index: int) -> None:
        """Synchronously retire the current activation and start connecting the next."""
        broadcast = self._broadcasts[index]
        self._channel.release()
        self._cancel_battle_timer()

        active = self._new_activation(broadcast)
        self._active = active
        self._recharge_prompt = None

        if broadcast.is_battle:
            self._battle_timer = asyncio.create_task(self._infer_battle(active))
        self._switch_task = asyncio.create_task(self._connect(active))
        self._notify()

    async def _wait_for_switch(self) -> None:
        task = self._switch_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def _connect(self, active: _ActiveBroadcast) -> None:
        if active is not self._active:
            return
        session = await self._channel.activate(active.broadcast.id)
        if session is None and active is self._active:
            logger.warning(
                "Broadcast_id={} has no live channel, showing without realtime updates",
                active.broadcast.id,
            )

    async def _deactivate(self) -> None:
        self._cancel_battle_timer()
        self._active = None
        await self._channel.deactivate()
        self._notify()

    def _new_activation(self, broadcast: Broadcast) -> _ActiveBroadcast:
        cfg = self._cfg
        merger = EventMerger(
            broadcast,
            chat_log=ChatLog(cfg.CHAT_LOG_CAPACITY, cfg.CHAT_LOG_RENDERED),
            battle=BattleEngine(cfg.GIFT_SCORE_MULTIPLIER),
            clock=self._clock,
            like_ttl=cfg.LIKE_AFFORDANCE_SECONDS,
            gift_ttl=cfg.GIFT_AFFORDANCE_SECONDS,
        )
        playback = PlaybackFallback(broadcast.stream_url, cfg.PLAYBACK_FALLBACK_URL)
        return _ActiveBroadcast(broadcast, merger, playback)

    async def _infer_battle(self, active: _ActiveBroadcast) -> None:
        await asyncio.sleep(self._cfg.BATTLE_GRACE_SECONDS)
        if active is not self._active:
            return
        battle = active.merger.battle
        if battle.has_explicit_signal:
            return
        if battle.start(inferred=True):
            self._notify()

    def _cancel_battle_timer(self) -> None:
        if self._battle_timer is not None and not self._battle_timer.done():
            self._battle_timer.cancel()
        self._battle_timer = None

    def _connection_state(self, active: _ActiveBroadcast) -> ChannelState:
        session = self._channel.current
        if session is None or session.broadcast_id != active.broadcast.id:
            return ChannelState.DISCONNECTED
        return session.state

    def _on_channel_event(self, session: ChannelSession, event: LiveEvent) -> None:
        active = self._active
        if active is None or active.broadcast.id != session.broadcast_id:
            return
        if active.merger.apply(event):
            self._notify()

    def _on_channel_state(self, session: ChannelSession, previous: ChannelState, current: ChannelState) -> None:
        if self._channel.is_current(session):
            self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.view()
        if snapshot is None:
            return
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:
                logger.warning("View listener {} failed: {}", listener, exc)


def create_live_engine(
    *,
    viewer: UserIdentity | None = None,
    cfg: AppEnvironConfig | None = None,
    transport: RealtimeTransport | None = None,
) -> LiveInteractionEngine:
    """Build an engine wired to the configured collaborators."""
    cfg = cfg or get_app_environ_config()
    viewer = viewer or UserIdentity(id=cfg.VIEWER_ID, username=cfg.VIEWER_USERNAME)
    user_directory = get_user_directory_client()

    throttle = None
    if cfg.SEND_RATE_LIMIT_ENABLED and cfg.REDIS_URL_TRANSPORT:
        throttle = SendThrottle(
            Redis.from_url(cfg.REDIS_URL_TRANSPORT),
            TokenBucketConfig(capacity=cfg.CHAT_RATE_CAPACITY, refill_rate=cfg.CHAT_RATE_REFILL),
        )

    return LiveInteractionEngine(
        viewer=viewer,
        directory=StreamDirectory(
            get_live_api_client(),
            timeout=cfg.DIRECTORY_TIMEOUT_SECONDS,
            user_directory=user_directory,
        ),
        transport=transport or get_realtime_transport(),
        auth_gate=DeferredAuthGate(authenticated=cfg.VIEWER_AUTHENTICATED),
        wallet_ledger=get_wallet_ledger_client(),
        user_directory=user_directory,
        throttle=throttle,
        cfg=cfg,
    )
