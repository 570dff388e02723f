"""Channel session state machine."""

from livecast.schemas.channel_state import ChannelState


class ChannelStateMachine:
    """State machine for channel session transitions.

    State flow with triggers:
    - DISCONNECTED -> CONNECTING (activate requested a subscription)
    - CONNECTING -> CONNECTED (subscribe handshake completed)
    - CONNECTING -> DISCONNECTED (handshake failed or activation superseded)
    - CONNECTED -> DISCONNECTED (deactivate or switch to another broadcast)
    """

    TRANSITIONS: dict[ChannelState, set[ChannelState]] = {
        ChannelState.DISCONNECTED: {ChannelState.CONNECTING},
        ChannelState.CONNECTING: {ChannelState.CONNECTED, ChannelState.DISCONNECTED},
        ChannelState.CONNECTED: {ChannelState.DISCONNECTED},
    }

    @classmethod
    def can_transition(cls, current: ChannelState, new: ChannelState) -> bool:
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def get_valid_transitions(cls, state: ChannelState) -> set[ChannelState]:
        return cls.TRANSITIONS.get(state, set())
