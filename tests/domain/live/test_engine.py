"""Tests for LiveInteractionEngine end-to-end behaviour over the in-process transport."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from livecast.domain.live.directory.stream_directory import StreamDirectory
from livecast.domain.live.engine import ActionStatus, LiveInteractionEngine
from livecast.schemas import (
    BattleEndEvent,
    BroadcastCategory,
    ChannelState,
    ChatEvent,
    EventSender,
    LikeEvent,
    PlaybackStatus,
    UserIdentity,
)
from livecast.services.auth_gate import DeferredAuthGate
from livecast.services.integrations.user_directory import UserDirectoryClient
from livecast.shared.token_bucket import SendThrottle
from tests.fixtures.live_fixtures import flush, make_broadcast, publish_remote

BOB = EventSender(username="bob")


@pytest.fixture
def broadcasts():
    return [
        make_broadcast("a", likes=10, viewers=3),
        make_broadcast("b", category=BroadcastCategory.BATTLE),
        make_broadcast("c", stream_url=""),
    ]


@pytest.fixture
def directory(broadcasts) -> AsyncMock:
    mock = AsyncMock(spec=StreamDirectory)
    mock.list_active_or_empty.return_value = broadcasts
    return mock


@pytest.fixture
def auth_gate() -> DeferredAuthGate:
    return DeferredAuthGate(authenticated=True)


@pytest.fixture
def engine(directory, transport, auth_gate, test_config, clock) -> LiveInteractionEngine:
    return LiveInteractionEngine(
        viewer=UserIdentity(id="viewer_1", username="viewer"),
        directory=directory,
        transport=transport,
        auth_gate=auth_gate,
        cfg=test_config,
        clock=clock,
        client_id="me",
        starting_balance=100,
    )


class TestLoad:
    """Tests for LiveInteractionEngine.load."""

    async def test_load_activates_first_broadcast(self, engine: LiveInteractionEngine):
        """Test loading connects to the first broadcast."""
        # Act
        result = await engine.load()

        # Assert
        assert [b.id for b in result] == ["a", "b", "c"]
        assert engine.active_index == 0
        view = engine.view()
        assert view.broadcast_id == "a"
        assert view.connection_state == ChannelState.CONNECTED
        assert view.like_count == 10
        assert view.wallet_balance == 100

    async def test_unavailable_directory_yields_empty_list(self, engine, directory, transport):
        """Test an unavailable directory shows zero broadcasts and nothing escapes."""
        directory.list_active_or_empty.return_value = []

        result = await engine.load()

        assert result == []
        assert engine.view() is None
        assert transport.active_subscription_count() == 0


class TestScrolling:
    """Tests for activation changes driven by visibility."""

    async def test_scroll_switches_session(self, engine: LiveInteractionEngine, transport):
        """Test scrolling from A to B disconnects A and connects B."""
        # Arrange
        await engine.load()
        session_a = engine.channel.current

        # Act
        active_index = await engine.on_visibility([(0, 0.3), (1, 0.7)])

        # Assert
        assert active_index == 1
        assert session_a.state == ChannelState.DISCONNECTED
        assert engine.channel.current.broadcast_id == "b"
        assert engine.channel.current.state == ChannelState.CONNECTED
        assert transport.active_subscription_count() == 1

    async def test_events_from_previous_broadcast_never_reach_new_chat(self, engine, transport):
        """Test a chat sent on A after switching to B is not shown in B's log."""
        # Arrange
        await engine.load()
        await engine.on_visibility([(1, 0.9)])

        # Act
        await publish_remote(transport, "room_a", ChatEvent(sender=BOB, text="from A", origin="bob"))
        await publish_remote(transport, "room_b", ChatEvent(sender=BOB, text="from B", origin="bob"))

        # Assert
        texts = [e.text for e in engine.view().chat_entries]
        assert texts == ["from B"]

    async def test_listener_receives_snapshots(self, engine, transport):
        """Test view listeners are notified on remote events."""
        # Arrange
        snapshots = []
        engine.subscribe(snapshots.append)
        await engine.load()
        snapshots.clear()

        # Act
        await publish_remote(transport, "room_a", LikeEvent(origin="bob"))

        # Assert
        assert snapshots[-1].like_count == 11


class TestBattle:
    """Tests for battle mode on a battle-category broadcast."""

    async def test_remote_likes_score_right(self, engine, transport, test_config):
        """Test 60 remote likes in under a second add exactly 60 to the right side."""
        # Arrange
        await engine.load()
        await engine.activate_index(1)
        await asyncio.sleep(test_config.BATTLE_GRACE_SECONDS * 2)
        assert engine.view().battle.active is True

        # Act
        for _ in range(60):
            await transport.publish("room_b", LikeEvent(origin="bob").model_dump_json().encode())
        await flush()

        # Assert
        battle = engine.view().battle
        assert battle.right == 60
        assert battle.left == 0

    async def test_local_like_scores_left(self, engine, test_config):
        """Test the viewer's own like goes to the left side."""
        await engine.load()
        await engine.activate_index(1)
        await asyncio.sleep(test_config.BATTLE_GRACE_SECONDS * 2)

        outcome = await engine.send_like()

        assert outcome.status == ActionStatus.SENT
        assert engine.view().battle.left == 1

    async def test_explicit_end_suppresses_inference(self, engine, transport, test_config):
        """Test an explicit battle signal before the grace delay disables inference."""
        # Arrange
        await engine.load()
        await engine.activate_index(1)

        # Act
        await publish_remote(transport, "room_b", BattleEndEvent(origin="host"))
        await asyncio.sleep(test_config.BATTLE_GRACE_SECONDS * 2)

        # Assert
        assert engine.view().battle.active is False

    async def test_switching_away_cancels_inference(self, engine, test_config):
        """Test leaving the battle broadcast before the grace delay starts no battle."""
        await engine.load()
        await engine.activate_index(1)
        await engine.activate_index(0)
        await asyncio.sleep(test_config.BATTLE_GRACE_SECONDS * 2)

        assert engine.view().battle.active is False

    async def test_reactivation_starts_new_battle_session(self, engine, test_config):
        """Test scores do not survive leaving and re-entering a battle."""
        # Arrange
        await engine.load()
        await engine.activate_index(1)
        await asyncio.sleep(test_config.BATTLE_GRACE_SECONDS * 2)
        await engine.send_like()

        # Act
        await engine.activate_index(0)
        await engine.activate_index(1)
        await asyncio.sleep(test_config.BATTLE_GRACE_SECONDS * 2)

        # Assert
        assert engine.view().battle.left == 0


class TestGifts:
    """Tests for gifting through the engine."""

    async def test_gift_with_exact_balance(self, engine, transport):
        """Test a 70-coin gift at balance 70 empties the wallet and appends one system line."""
        # Arrange
        await engine.load()
        engine.sync_wallet(70)
        transport.published.clear()

        # Act
        outcome = await engine.send_gift("crown")

        # Assert
        assert outcome.status == ActionStatus.SENT
        view = engine.view()
        assert view.wallet_balance == 0
        assert len(transport.published) == 1
        assert [e.is_system for e in view.chat_entries] == [True]

    async def test_insufficient_balance_shows_recharge_prompt(self, engine, transport):
        """Test an unaffordable gift returns a recharge prompt and emits nothing."""
        # Arrange
        await engine.load()
        engine.sync_wallet(10)
        transport.published.clear()

        # Act
        outcome = await engine.send_gift("crown")

        # Assert
        assert outcome.status == ActionStatus.RECHARGE_REQUIRED
        assert outcome.recharge_prompt.price == 70
        assert len(transport.published) == 0
        assert engine.view().wallet_balance == 10
        assert engine.view().recharge_prompt is not None

    async def test_unknown_gift_dropped(self, engine):
        """Test an unknown gift id is dropped instead of raising."""
        await engine.load()

        outcome = await engine.send_gift("unicorn")

        assert outcome.status == ActionStatus.DROPPED


class TestActions:
    """Tests for chat, like and follow entry points."""

    async def test_chat_appears_locally_and_is_published(self, engine, transport):
        """Test a sent chat is shown immediately and published once."""
        # Arrange
        await engine.load()
        transport.published.clear()

        # Act
        outcome = await engine.send_chat("  hello  ")
        await flush()

        # Assert
        assert outcome.status == ActionStatus.SENT
        assert [e.text for e in engine.view().chat_entries] == ["hello"]
        assert len(transport.published) == 1

    async def test_blank_chat_dropped(self, engine):
        """Test whitespace-only messages are not sent."""
        await engine.load()

        outcome = await engine.send_chat("   ")

        assert outcome.status == ActionStatus.DROPPED

    async def test_overlong_chat_dropped_without_raising(self, engine, transport):
        """Test a message over the length limit is dropped, not raised."""
        # Arrange
        await engine.load()
        transport.published.clear()

        # Act
        outcome = await engine.send_chat("x" * 600)

        # Assert
        assert outcome.status == ActionStatus.DROPPED
        assert outcome.reason == "message too long"
        assert engine.view().chat_entries == ()
        assert len(transport.published) == 0

    async def test_chat_without_broadcast_dropped(self, engine):
        """Test sending before anything is active is dropped."""
        outcome = await engine.send_chat("hello")

        assert outcome.status == ActionStatus.DROPPED

    async def test_signed_out_action_deferred_then_replayed(self, engine, auth_gate):
        """Test a like while signed out is replayed after login."""
        # Arrange
        auth_gate.logout()
        await engine.load()

        # Act
        outcome = await engine.send_like()
        replayed = await auth_gate.complete_login()

        # Assert
        assert outcome.status == ActionStatus.DEFERRED
        assert replayed == 1
        assert engine.view().like_count == 11

    async def test_follow_toggles(self, directory, transport, auth_gate, test_config, clock):
        """Test follow marks the host followed and calls the user directory."""
        # Arrange
        users = AsyncMock(spec=UserDirectoryClient)
        engine = LiveInteractionEngine(
            viewer=UserIdentity(id="viewer_1", username="viewer"),
            directory=directory,
            transport=transport,
            auth_gate=auth_gate,
            user_directory=users,
            cfg=test_config,
            clock=clock,
        )
        await engine.load()

        # Act
        await engine.follow("host_1")

        # Assert
        assert engine.view().is_followed is True
        users.set_follow.assert_awaited_once_with("viewer_1", "host_1", True)

        await engine.follow("host_1")
        assert engine.view().is_followed is False

    async def test_throttled_chat_dropped(self, directory, transport, auth_gate, test_config, clock):
        """Test a chat over the send rate limit is dropped."""
        # Arrange
        throttle = AsyncMock(spec=SendThrottle)
        throttle.allow.return_value = False
        engine = LiveInteractionEngine(
            viewer=UserIdentity(id="viewer_1", username="viewer"),
            directory=directory,
            transport=transport,
            auth_gate=auth_gate,
            throttle=throttle,
            cfg=test_config,
            clock=clock,
        )
        await engine.load()

        # Act
        outcome = await engine.send_chat("spam")

        # Assert
        assert outcome.status == ActionStatus.DROPPED
        assert engine.view().chat_entries == ()
        throttle.allow.assert_awaited_once_with("viewer_1", "chat")


class TestPlayback:
    """Tests for playback error reporting."""

    async def test_two_failures_reach_unavailable(self, engine):
        """Test primary then fallback failure ends in the unavailable state."""
        await engine.load()

        first = engine.report_playback_error("404")
        second = engine.report_playback_error("decode")

        assert first.status == PlaybackStatus.FALLBACK
        assert second.status == PlaybackStatus.UNAVAILABLE
        assert second.message == "Stream unavailable"

    async def test_reactivation_resets_playback(self, engine):
        """Test coming back to a broadcast retries its primary source."""
        await engine.load()
        engine.report_playback_error()
        engine.report_playback_error()

        await engine.activate_index(1)
        await engine.activate_index(0)

        assert engine.view().playback.status == PlaybackStatus.PRIMARY

    async def test_empty_primary_starts_on_fallback(self, engine):
        """Test a broadcast without a stream URL plays the fallback source."""
        await engine.load()

        await engine.activate_index(2)

        assert engine.view().playback.status == PlaybackStatus.FALLBACK


class TestClose:
    """Tests for LiveInteractionEngine.close."""

    async def test_close_releases_channel(self, engine, transport):
        """Test closing unsubscribes everything."""
        await engine.load()

        await engine.close()

        assert transport.active_subscription_count() == 0
        assert engine.view() is None
