from pydantic import BaseModel, Field, field_validator

from livecast.schemas import Broadcast, PlaybackView
from livecast.schemas.events import CHAT_MAX_LENGTH
from livecast.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


class ListStreamsOut(BaseModel):
    broadcasts: list[Broadcast] = Field(description="Active broadcasts in directory order")
    active_index: int = Field(description="Index of the broadcast currently live on screen")


class VisibilityEntry(BaseModel):
    slot_index: int = Field(ge=0, description="Position of the slot in the broadcast list")
    visible_fraction: float = Field(description="Visible fraction of the slot, clamped to [0, 1]")


class VisibilityIn(BaseModel):
    entries: list[VisibilityEntry] = Field(description="Visibility observations, applied in order")

    @field_validator("entries")
    @classmethod
    def validate_entries(cls, v: list[VisibilityEntry]) -> list[VisibilityEntry]:
        if not v:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg="entries cannot be empty",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        return v


class VisibilityOut(BaseModel):
    active_index: int
    broadcast_id: str | None = Field(default=None, description="ID of the active broadcast")


class SendChatIn(BaseModel):
    text: str = Field(min_length=1, max_length=CHAT_MAX_LENGTH, description="Chat message text")


class SendGiftIn(BaseModel):
    gift_id: str = Field(description="Gift catalog ID")


class FollowIn(BaseModel):
    host_id: str = Field(description="User ID of the host to follow or unfollow")


class PlaybackErrorIn(BaseModel):
    error: str | None = Field(default=None, description="Player error message")


class PlaybackErrorOut(BaseModel):
    playback: PlaybackView


class WalletSyncIn(BaseModel):
    balance: int = Field(ge=0, description="Authoritative coin balance from the wallet ledger")


class WalletOut(BaseModel):
    balance: int


class LoginOut(BaseModel):
    replayed: int = Field(description="Number of deferred actions replayed after login")
