"""Realtime event union exchanged on a broadcast topic.

Every event is a JSON object with a `type` discriminator. Unknown types are
ignored by `parse_event` rather than rejected.
"""

from __future__ import annotations

import time
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

import orjson
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .broadcast import Product

PRIVILEGED_ROLES = frozenset({"host", "moderator", "admin"})
CHAT_MAX_LENGTH = 500


class EventSender(BaseModel):
    username: str
    avatar_url: str = ""
    role: str = "viewer"

    model_config = ConfigDict(frozen=True)

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


class _EventBase(BaseModel):
    event_id: str = Field(default_factory=lambda: uuid4().hex)
    origin: str | None = Field(default=None, description="Client id of the publisher")
    sent_at: float = Field(default_factory=time.time)

    model_config = ConfigDict(frozen=True)


class ChatEvent(_EventBase):
    type: Literal["chat"] = "chat"
    sender: EventSender
    text: str = Field(..., min_length=1, max_length=CHAT_MAX_LENGTH)


class LikeEvent(_EventBase):
    type: Literal["like"] = "like"
    sender: EventSender | None = None


class GiftEvent(_EventBase):
    type: Literal["gift"] = "gift"
    sender: EventSender
    gift_id: str
    name: str
    emoji: str = ""
    value: int = Field(..., ge=0, description="Unit value of the gift in coins")


class PinProductEvent(_EventBase):
    type: Literal["pin_product"] = "pin_product"
    product: Product


class UnpinProductEvent(_EventBase):
    type: Literal["unpin_product"] = "unpin_product"


class PresenceEvent(_EventBase):
    type: Literal["presence"] = "presence"
    action: Literal["join", "leave"] = "join"
    key: str = Field(..., description="Presence key of the participant")
    user: str = "Guest"
    role: str = "viewer"


class BattleStartEvent(_EventBase):
    type: Literal["battle_start"] = "battle_start"
    battle_id: str = Field(default_factory=lambda: uuid4().hex[:12])


class BattleEndEvent(_EventBase):
    type: Literal["battle_end"] = "battle_end"
    battle_id: str | None = None


LiveEvent = Annotated[
    Union[
        ChatEvent,
        LikeEvent,
        GiftEvent,
        PinProductEvent,
        UnpinProductEvent,
        PresenceEvent,
        BattleStartEvent,
        BattleEndEvent,
    ],
    Field(discriminator="type"),
]

_live_event_adapter: TypeAdapter[LiveEvent] = TypeAdapter(LiveEvent)

KNOWN_EVENT_TYPES = frozenset(
    {
        "chat",
        "like",
        "gift",
        "pin_product",
        "unpin_product",
        "presence",
        "battle_start",
        "battle_end",
    }
)


def parse_event(payload: bytes | str | dict[str, Any]) -> LiveEvent | None:
    """Decode a wire payload into a typed event.

    Returns None for unknown variants and malformed payloads.
    """
    if isinstance(payload, (bytes, str)):
        try:
            payload = orjson.loads(payload)
        except orjson.JSONDecodeError:
            logger.warning("Dropping undecodable event payload")
            return None

    if not isinstance(payload, dict):
        logger.warning("Dropping non-object event payload: {}", type(payload).__name__)
        return None

    event_type = payload.get("type")
    if event_type not in KNOWN_EVENT_TYPES:
        logger.debug("Ignoring unknown event type: {}", event_type)
        return None

    try:
        return _live_event_adapter.validate_python(payload)
    except ValidationError as exc:
        logger.warning("Dropping invalid {} event: {}", event_type, exc.errors())
        return None


def encode_event(event: BaseModel) -> bytes:
    return orjson.dumps(event.model_dump(mode="json"))
