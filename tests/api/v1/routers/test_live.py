"""Unit tests for live router endpoints."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from livecast.api.v1.dependency import get_engine
from livecast.api.v1.routers.live import router
from livecast.domain.live.engine import ActionOutcome, ActionStatus, LiveInteractionEngine
from livecast.schemas import (
    BroadcastViewModel,
    ChannelState,
    PlaybackStatus,
    PlaybackView,
    RechargePrompt,
)
from livecast.services.auth_gate import DeferredAuthGate
from livecast.shared.api.utils import app_error_handler
from livecast.utils.app_errors import AppError
from tests.fixtures.live_fixtures import make_broadcast


@pytest.fixture
def mock_engine() -> MagicMock:
    """Create a mock LiveInteractionEngine."""
    engine = MagicMock(spec=LiveInteractionEngine)
    engine.load = AsyncMock()
    engine.on_visibility = AsyncMock()
    engine.send_chat = AsyncMock()
    engine.send_like = AsyncMock()
    engine.send_gift = AsyncMock()
    engine.follow = AsyncMock()
    return engine


@pytest.fixture
def test_app(mock_engine: MagicMock) -> FastAPI:
    """Create FastAPI test app with dependency overrides."""
    app = FastAPI()
    app.dependency_overrides[get_engine] = lambda: mock_engine
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.include_router(router)
    return app


@pytest.fixture
def client(test_app: FastAPI) -> TestClient:
    """Create test client."""
    return TestClient(test_app)


class TestListStreams:
    """Tests for GET /live/streams endpoint."""

    def test_first_call_loads_directory(self, client: TestClient, mock_engine: MagicMock):
        """Should load the directory on the first call and return broadcasts."""
        # Arrange
        mock_engine.is_loaded = False
        mock_engine.broadcasts = [make_broadcast("b1"), make_broadcast("b2")]
        mock_engine.active_index = 0

        # Act
        response = client.get("/live/streams")

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert [b["id"] for b in data["results"]["broadcasts"]] == ["b1", "b2"]
        assert data["results"]["active_index"] == 0
        mock_engine.load.assert_awaited_once()

    def test_loaded_engine_not_reloaded(self, client: TestClient, mock_engine: MagicMock):
        """Should not refetch once the engine is loaded."""
        mock_engine.is_loaded = True
        mock_engine.broadcasts = []
        mock_engine.active_index = 0

        response = client.get("/live/streams")

        assert response.status_code == 200
        mock_engine.load.assert_not_awaited()


class TestVisibility:
    """Tests for POST /live/visibility endpoint."""

    def test_returns_active_index(self, client: TestClient, mock_engine: MagicMock):
        """Should pass entries to the engine and return the active broadcast."""
        # Arrange
        mock_engine.on_visibility.return_value = 1
        mock_engine.active_broadcast = make_broadcast("b2")

        # Act
        response = client.post(
            "/live/visibility",
            json={"entries": [{"slot_index": 0, "visible_fraction": 0.2}, {"slot_index": 1, "visible_fraction": 0.9}]},
        )

        # Assert
        assert response.status_code == 200
        assert response.json()["results"] == {"active_index": 1, "broadcast_id": "b2"}
        entries = list(mock_engine.on_visibility.await_args.args[0])
        assert entries == [(0, 0.2), (1, 0.9)]

    def test_empty_entries_rejected(self, client: TestClient):
        """Should reject an empty visibility batch."""
        response = client.post("/live/visibility", json={"entries": []})

        assert response.status_code == 400
        assert response.json()["errcode"] == "E_INVALID_REQUEST"


class TestGetView:
    """Tests for GET /live/view endpoint."""

    def test_returns_snapshot(self, client: TestClient, mock_engine: MagicMock):
        """Should return the current view model."""
        mock_engine.view.return_value = BroadcastViewModel(
            broadcast_id="b1", connection_state=ChannelState.CONNECTED, like_count=3
        )

        response = client.get("/live/view")

        assert response.status_code == 200
        results = response.json()["results"]
        assert results["broadcast_id"] == "b1"
        assert results["connection_state"] == "connected"
        assert results["like_count"] == 3

    def test_no_active_broadcast(self, client: TestClient, mock_engine: MagicMock):
        """Should return 404 when nothing is active."""
        mock_engine.view.return_value = None

        response = client.get("/live/view")

        assert response.status_code == 404
        assert response.json()["errcode"] == "E_BROADCAST_NOT_FOUND"


class TestActions:
    """Tests for chat, like, gift and follow endpoints."""

    def test_send_chat(self, client: TestClient, mock_engine: MagicMock):
        """Should forward chat text and return the outcome."""
        mock_engine.send_chat.return_value = ActionOutcome(status=ActionStatus.SENT, event_id="e1")

        response = client.post("/live/chat", json={"text": "hello"})

        assert response.status_code == 200
        assert response.json()["results"]["status"] == "sent"
        mock_engine.send_chat.assert_awaited_once_with("hello")

    def test_empty_chat_is_invalid(self, client: TestClient):
        """Should reject an empty chat body."""
        response = client.post("/live/chat", json={"text": ""})

        assert response.status_code == 422

    def test_send_like(self, client: TestClient, mock_engine: MagicMock):
        """Should return a deferred outcome while signed out."""
        mock_engine.send_like.return_value = ActionOutcome(status=ActionStatus.DEFERRED)

        response = client.post("/live/like")

        assert response.status_code == 200
        assert response.json()["results"]["status"] == "deferred"

    def test_send_gift_needs_recharge(self, client: TestClient, mock_engine: MagicMock):
        """Should surface the recharge prompt as a successful response."""
        # Arrange
        prompt = RechargePrompt(message="Recharge", gift_id="crown", price=70, balance=10)
        mock_engine.send_gift.return_value = ActionOutcome(
            status=ActionStatus.RECHARGE_REQUIRED, recharge_prompt=prompt
        )

        # Act
        response = client.post("/live/gift", json={"gift_id": "crown"})

        # Assert
        assert response.status_code == 200
        results = response.json()["results"]
        assert results["status"] == "recharge_required"
        assert results["recharge_prompt"]["price"] == 70

    def test_follow(self, client: TestClient, mock_engine: MagicMock):
        """Should forward the host id."""
        mock_engine.follow.return_value = ActionOutcome(status=ActionStatus.SENT)

        response = client.post("/live/follow", json={"host_id": "host_1"})

        assert response.status_code == 200
        mock_engine.follow.assert_awaited_once_with("host_1")


class TestPlaybackAndWallet:
    """Tests for playback error and wallet sync endpoints."""

    def test_playback_error(self, client: TestClient, mock_engine: MagicMock):
        """Should return the next playback state."""
        mock_engine.report_playback_error.return_value = PlaybackView(
            source="https://cdn.example.com/fallback.mp4", status=PlaybackStatus.FALLBACK
        )

        response = client.post("/live/playback_error", json={"error": "404"})

        assert response.status_code == 200
        assert response.json()["results"]["playback"]["status"] == "fallback"
        mock_engine.report_playback_error.assert_called_once_with("404")

    def test_wallet_sync(self, client: TestClient, mock_engine: MagicMock):
        """Should apply the authoritative balance."""
        mock_engine.sync_wallet.return_value = 250

        response = client.post("/live/wallet/sync", json={"balance": 250})

        assert response.status_code == 200
        assert response.json()["results"] == {"balance": 250}

    def test_negative_balance_invalid(self, client: TestClient):
        """Should reject a negative balance."""
        response = client.post("/live/wallet/sync", json={"balance": -5})

        assert response.status_code == 422


class TestLogin:
    """Tests for POST /live/login endpoint."""

    def test_login_replays_deferred(self, client: TestClient, mock_engine: MagicMock):
        """Should complete login on the deferred auth gate."""
        # Arrange
        gate = DeferredAuthGate()
        mock_engine.auth_gate = gate

        # Act
        response = client.post("/live/login")

        # Assert
        assert response.status_code == 200
        assert response.json()["results"] == {"replayed": 0}
        assert gate.is_authenticated is True
