"""UI-facing snapshots of a broadcast's live state.

All models here are frozen: the engine hands out a new snapshot after every
change instead of mutating one in place.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .broadcast import Product
from .channel_state import ChannelState


class PlaybackStatus(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    UNAVAILABLE = "unavailable"

    def __str__(self) -> str:
        return self.value


class LayoutMode(str, Enum):
    SINGLE = "single"
    SPLIT = "split"
    GRID_2X2 = "grid_2x2"
    GRID_3X3 = "grid_3x3"
    BATTLE = "battle"
    GAMING = "gaming"

    def __str__(self) -> str:
        return self.value


class ChatEntry(BaseModel):
    """One rendered chat line. Never mutated after insertion."""

    entry_id: str
    username: str
    avatar_url: str = ""
    text: str
    is_system: bool = False
    is_privileged: bool = False
    created_at: float

    model_config = ConfigDict(frozen=True)


class Affordance(BaseModel):
    """Transient visual effect (floating heart, gift burst)."""

    affordance_id: str
    kind: Literal["heart", "gift"]
    emoji: str = ""
    is_local: bool = False
    expires_at: float

    model_config = ConfigDict(frozen=True)


class BattleScores(BaseModel):
    active: bool = False
    battle_id: str | None = None
    left: int = 0
    right: int = 0

    model_config = ConfigDict(frozen=True)


class PlaybackView(BaseModel):
    source: str | None
    status: PlaybackStatus
    message: str | None = None

    model_config = ConfigDict(frozen=True)


class RechargePackage(BaseModel):
    coins: int
    cost: str

    model_config = ConfigDict(frozen=True)


class RechargePrompt(BaseModel):
    """Shown instead of sending a gift the viewer cannot afford."""

    message: str
    gift_id: str
    price: int
    balance: int
    packages: tuple[RechargePackage, ...] = ()

    model_config = ConfigDict(frozen=True)


class BroadcastViewModel(BaseModel):
    broadcast_id: str
    connection_state: ChannelState = ChannelState.DISCONNECTED
    viewer_count: int = 0
    like_count: int = 0
    pinned_product: Product | None = None
    chat_entries: tuple[ChatEntry, ...] = Field(default=(), description="Newest first, capped")
    rendered_chat: tuple[ChatEntry, ...] = Field(default=(), description="Newest first, on screen")
    affordances: tuple[Affordance, ...] = ()
    battle: BattleScores = Field(default_factory=BattleScores)
    playback: PlaybackView | None = None
    layout: LayoutMode = LayoutMode.SINGLE
    is_followed: bool = False
    wallet_balance: int = 0
    recharge_prompt: RechargePrompt | None = None

    model_config = ConfigDict(frozen=True)
