"""Broadcast data model as delivered by the live directory upstream."""

from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

MAX_GUESTS = 8


class BroadcastCategory(str, Enum):
    """Declared broadcast category.

    Unknown upstream values map to OTHER instead of failing validation.
    """

    TALK = "Talk"
    GAMING = "Gaming"
    BATTLE = "Battle"
    MUSIC = "Music"
    SHOPPING = "Shopping"
    OTHER = "Other"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return cls.OTHER


class UserIdentity(BaseModel):
    """Display identity of a host, guest or chat sender."""

    id: str = Field(..., description="User ID")
    username: str = Field(..., description="Unique handle")
    display_name: str = Field(
        default="",
        alias="displayName",
        validation_alias=AliasChoices("displayName", "display_name"),
    )
    avatar_url: str = Field(
        default="",
        alias="avatarUrl",
        validation_alias=AliasChoices("avatarUrl", "avatar_url"),
    )
    followers: int = Field(default=0, ge=0)

    model_config = ConfigDict(populate_by_name=True)


class LiveGuest(BaseModel):
    id: str
    user: UserIdentity
    is_muted: bool = Field(
        default=False, alias="isMuted", validation_alias=AliasChoices("isMuted", "is_muted")
    )
    has_video: bool = Field(
        default=True, alias="hasVideo", validation_alias=AliasChoices("hasVideo", "has_video")
    )

    model_config = ConfigDict(populate_by_name=True)


class Product(BaseModel):
    """Product reference that a host can pin on a broadcast."""

    id: str
    name: str
    price: float = Field(..., ge=0)
    original_price: float | None = Field(
        default=None,
        alias="originalPrice",
        validation_alias=AliasChoices("originalPrice", "original_price"),
    )
    image: str = ""
    seller_id: str | None = Field(
        default=None, alias="sellerId", validation_alias=AliasChoices("sellerId", "seller_id")
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Broadcast(BaseModel):
    """One live video session with a host, optional guests and a realtime event stream."""

    id: str = Field(..., description="Broadcast ID, also the realtime topic suffix")
    host: UserIdentity
    title: str = ""
    category: BroadcastCategory = BroadcastCategory.TALK
    is_gaming: bool = Field(
        default=False, alias="isGaming", validation_alias=AliasChoices("isGaming", "is_gaming")
    )
    guests: list[LiveGuest] = Field(default_factory=list, max_length=MAX_GUESTS)
    stream_url: str = Field(
        default="",
        alias="streamUrl",
        validation_alias=AliasChoices("streamUrl", "stream_url"),
        description="Primary media source URI",
    )
    viewers: int = Field(default=0, ge=0, description="Cumulative viewer count")
    likes: int = Field(default=0, ge=0, description="Cumulative like count")
    pinned_product: Product | None = Field(
        default=None,
        alias="pinnedProduct",
        validation_alias=AliasChoices("pinnedProduct", "pinned_product"),
    )

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_battle(self) -> bool:
        return self.category == BroadcastCategory.BATTLE

    @property
    def tile_count(self) -> int:
        return 1 + len(self.guests)
