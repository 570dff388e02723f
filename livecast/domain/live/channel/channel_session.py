"""Channel sessions: one realtime subscription per active broadcast.

A `ChannelSession` is created for every activation and never reused. The
`ChannelSessionManager` owns the single current session; callbacks carry the
session they were registered for, so anything arriving for a session that is no
longer current is discarded by identity.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from functools import partial
from typing import Any
from uuid import uuid4

from loguru import logger

from livecast.domain.live.errors import TransportDropped
from livecast.schemas.channel_state import ChannelState
from livecast.schemas.events import LiveEvent, encode_event, parse_event
from livecast.services.integrations.realtime_transport import (
    RealtimeTransport,
    TransportSubscription,
)

from .channel_state_machine import ChannelStateMachine


class ChannelSession:
    """Lifecycle of one subscription bound to one broadcast id."""

    def __init__(self, broadcast_id: str, topic: str, presence: dict[str, Any]):
        self.session_id = uuid4().hex[:12]
        self.broadcast_id = broadcast_id
        self.topic = topic
        self.presence = presence
        self.state = ChannelState.DISCONNECTED
        self.subscription: TransportSubscription | None = None
        self.connected_at: float | None = None

    def transition(self, new_state: ChannelState) -> ChannelState:
        """Move to `new_state` and return the previous state.

        Raises:
            ValueError: If the transition is not allowed
        """
        if not ChannelStateMachine.can_transition(self.state, new_state):
            raise ValueError(f"Invalid channel transition: {self.state} -> {new_state}")
        previous = self.state
        self.state = new_state
        if new_state == ChannelState.CONNECTED:
            self.connected_at = time.time()
        return previous

    def __repr__(self) -> str:
        return (
            f"ChannelSession(session_id={self.session_id!r}, "
            f"broadcast_id={self.broadcast_id!r}, state={self.state.value!r})"
        )


EventListener = Callable[[ChannelSession, LiveEvent], None]
StateListener = Callable[[ChannelSession, ChannelState, ChannelState], None]


class ChannelSessionManager:
    """Single-writer owner of the client's current channel session.

    Invariant: at most one session is CONNECTED at any time. Switching first
    detaches the current session synchronously (its callbacks become no-ops),
    then closes it, then opens the next one. Switches are serialized; an
    activation that gets superseded before it connects gives up.
    """

    def __init__(
        self,
        transport: RealtimeTransport,
        *,
        client_id: str,
        viewer_name: str = "Guest",
        role: str = "viewer",
        topic_prefix: str = "room_",
        on_event: EventListener | None = None,
        on_state_change: StateListener | None = None,
    ):
        self._transport = transport
        self._client_id = client_id
        self._viewer_name = viewer_name
        self._role = role
        self._topic_prefix = topic_prefix
        self._on_event = on_event
        self._on_state_change = on_state_change

        self._current: ChannelSession | None = None
        self._released: list[ChannelSession] = []
        self._switch_lock = asyncio.Lock()
        self._generation = 0

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def current(self) -> ChannelSession | None:
        return self._current

    @property
    def is_connected(self) -> bool:
        return self._current is not None and self._current.state == ChannelState.CONNECTED

    def topic_for(self, broadcast_id: str) -> str:
        return f"{self._topic_prefix}{broadcast_id}"

    def is_current(self, session: ChannelSession | None) -> bool:
        return session is not None and session is self._current

    def release(self) -> ChannelSession | None:
        """Detach the current session without awaiting anything.

        The detached session stops dispatching immediately and is closed by the
        next `activate` or `deactivate` before anything else connects.
        """
        self._generation += 1
        session = self._current
        self._current = None
        if session is not None:
            self._released.append(session)
            logger.debug("Released channel session {}", session)
        return session

    async def activate(self, broadcast_id: str) -> ChannelSession | None:
        """Connect to `broadcast_id`, replacing any current session.

        Returns the connected session, or None when the subscribe failed or a
        newer activation superseded this one. There is no automatic retry.
        """
        current = self._current
        if (
            current is not None
            and current.broadcast_id == broadcast_id
            and current.state != ChannelState.DISCONNECTED
        ):
            return current

        self.release()
        generation = self._generation

        async with self._switch_lock:
            await self._close_released()

            if generation != self._generation:
                logger.debug("Activation of broadcast_id={} superseded", broadcast_id)
                return None

            session = ChannelSession(
                broadcast_id=broadcast_id,
                topic=self.topic_for(broadcast_id),
                presence={"key": self._client_id, "user": self._viewer_name, "role": self._role},
            )
            self._current = session
            self._set_state(session, ChannelState.CONNECTING)

            try:
                subscription = await self._transport.subscribe(
                    session.topic, partial(self._dispatch, session)
                )
            except Exception as exc:
                logger.warning(
                    "Subscribe failed for broadcast_id={} session_id={}: {}",
                    broadcast_id,
                    session.session_id,
                    exc,
                )
                self._set_state(session, ChannelState.DISCONNECTED)
                if self._current is session:
                    self._current = None
                return None

            session.subscription = subscription

            if self._current is not session:
                # Superseded while the handshake was in flight
                self._set_state(session, ChannelState.DISCONNECTED)
                await self._unsubscribe(session, subscription)
                return None

            self._set_state(session, ChannelState.CONNECTED)

            try:
                await subscription.track(session.presence)
            except Exception as exc:
                logger.warning(
                    "Presence announce failed for session_id={}: {}", session.session_id, exc
                )

        return session

    async def deactivate(self) -> None:
        """Unsubscribe and release listeners. Idempotent."""
        self.release()
        async with self._switch_lock:
            await self._close_released()

    async def send(self, event: LiveEvent) -> bool:
        """Publish on the active topic. Dropped, not queued, when nothing is connected."""
        session = self._current
        if session is None or session.state != ChannelState.CONNECTED:
            dropped = TransportDropped(f"Dropped outbound {event.type} event: no connected session")
            logger.warning(
                "{} {} msg={} caller={}",
                dropped.errcode,
                dropped.erresid,
                dropped.errmesg,
                dropped.caller_info,
            )
            return False

        if event.origin != self._client_id:
            event = event.model_copy(update={"origin": self._client_id})

        try:
            await self._transport.publish(session.topic, encode_event(event))
        except Exception as exc:
            logger.warning(
                "Publish failed for {} event on topic={}: {}", event.type, session.topic, exc
            )
            return False
        return True

    def _dispatch(self, session: ChannelSession, payload: bytes) -> None:
        if session is not self._current or session.state != ChannelState.CONNECTED:
            logger.debug("Discarding event for stale session_id={}", session.session_id)
            return

        event = parse_event(payload)
        if event is None:
            return
        if event.origin == self._client_id:
            return

        if self._on_event is not None:
            self._on_event(session, event)

    async def _close_released(self) -> None:
        while self._released:
            session = self._released.pop(0)
            if session.state == ChannelState.DISCONNECTED:
                continue
            subscription = session.subscription
            self._set_state(session, ChannelState.DISCONNECTED)
            if subscription is not None:
                await self._unsubscribe(session, subscription)

    async def _unsubscribe(self, session: ChannelSession, subscription: TransportSubscription) -> None:
        try:
            await subscription.unsubscribe()
        except Exception as exc:
            logger.warning("Unsubscribe failed for session_id={}: {}", session.session_id, exc)

    def _set_state(self, session: ChannelSession, new_state: ChannelState) -> None:
        previous = session.transition(new_state)
        logger.info(
            "Channel session_id={} broadcast_id={} {} -> {}",
            session.session_id,
            session.broadcast_id,
            previous,
            new_state,
        )
        if self._on_state_change is not None:
            self._on_state_change(session, previous, new_state)
