from enum import Enum


class ChannelState(str, Enum):
    """Channel session connection states.

    DISCONNECTED → CONNECTING → CONNECTED → DISCONNECTED

    A failed connect falls back to DISCONNECTED; there is no separate error state.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"

    def __str__(self) -> str:
        return self.value


__all__ = ["ChannelState"]
