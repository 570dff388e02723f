"""Primary -> fallback -> unavailable media source selection."""

from __future__ import annotations

from loguru import logger

from livecast.schemas.view_model import PlaybackStatus, PlaybackView

UNAVAILABLE_MESSAGE = "Stream unavailable"


class PlaybackFallback:
    """Tracks which media source the player should use for one broadcast.

    Each source is tried at most once per activation. After the fallback fails
    the state is terminal until `reset()`.
    """

    def __init__(self, primary: str | None, fallback: str | None):
        self._primary = primary or None
        self._fallback = fallback or None
        self._status = PlaybackStatus.PRIMARY
        self._message: str | None = None
        self.reset()

    @property
    def status(self) -> PlaybackStatus:
        return self._status

    def reset(self) -> PlaybackView:
        self._message = None
        if self._primary:
            self._status = PlaybackStatus.PRIMARY
        elif self._fallback:
            self._status = PlaybackStatus.FALLBACK
        else:
            self._status = PlaybackStatus.UNAVAILABLE
            self._message = UNAVAILABLE_MESSAGE
        return self.view()

    def on_error(self, error: Exception | str | None = None) -> PlaybackView:
        previous = self._status
        if previous == PlaybackStatus.PRIMARY and self._fallback:
            self._status = PlaybackStatus.FALLBACK
        elif previous != PlaybackStatus.UNAVAILABLE:
            self._status = PlaybackStatus.UNAVAILABLE
            self._message = UNAVAILABLE_MESSAGE

        if previous != self._status:
            logger.warning(
                "Playback {} -> {} after error: {}", previous, self._status, error or "unknown"
            )
        return self.view()

    def current_source(self) -> str | None:
        if self._status == PlaybackStatus.PRIMARY:
            return self._primary
        if self._status == PlaybackStatus.FALLBACK:
            return self._fallback
        return None

    def view(self) -> PlaybackView:
        return PlaybackView(
            source=self.current_source(),
            status=self._status,
            message=self._message,
        )
