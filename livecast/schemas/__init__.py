"""Pydantic models shared across the live interaction engine."""

from .broadcast import Broadcast, BroadcastCategory, LiveGuest, Product, UserIdentity
from .channel_state import ChannelState
from .events import (
    BattleEndEvent,
    BattleStartEvent,
    ChatEvent,
    EventSender,
    GiftEvent,
    LikeEvent,
    LiveEvent,
    PinProductEvent,
    PresenceEvent,
    UnpinProductEvent,
    encode_event,
    parse_event,
)
from .view_model import (
    Affordance,
    BattleScores,
    BroadcastViewModel,
    ChatEntry,
    LayoutMode,
    PlaybackStatus,
    PlaybackView,
    RechargePackage,
    RechargePrompt,
)

__all__ = [
    "Affordance",
    "BattleEndEvent",
    "BattleScores",
    "BattleStartEvent",
    "Broadcast",
    "BroadcastCategory",
    "BroadcastViewModel",
    "ChannelState",
    "ChatEntry",
    "ChatEvent",
    "EventSender",
    "GiftEvent",
    "LayoutMode",
    "LikeEvent",
    "LiveEvent",
    "LiveGuest",
    "PinProductEvent",
    "PlaybackStatus",
    "PlaybackView",
    "PresenceEvent",
    "Product",
    "RechargePackage",
    "RechargePrompt",
    "UnpinProductEvent",
    "UserIdentity",
    "encode_event",
    "parse_event",
]
