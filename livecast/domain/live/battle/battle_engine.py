"""Battle scoring for a broadcast in battle mode.

Scores live only for one battle session. A new session (a new battle id or a
new activation of the broadcast) starts from zero on both sides. Local actions
score the left side, events received from the channel score the right side.
"""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from loguru import logger

from livecast.schemas.view_model import BattleScores


class BattleState(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    ENDED = "ended"

    def __str__(self) -> str:
        return self.value


class BattleStateMachine:
    """Valid transitions between battle states."""

    TRANSITIONS = {
        BattleState.INACTIVE: {BattleState.ACTIVE},
        BattleState.ACTIVE: {BattleState.ENDED, BattleState.ACTIVE},
        BattleState.ENDED: {BattleState.ACTIVE},
    }

    @classmethod
    def can_transition(cls, from_state: BattleState, to_state: BattleState) -> bool:
        return to_state in cls.TRANSITIONS.get(from_state, set())

    @classmethod
    def get_valid_transitions(cls, from_state: BattleState) -> set[BattleState]:
        return cls.TRANSITIONS.get(from_state, set())


class BattleEngine:
    def __init__(self, gift_multiplier: int = 10):
        self._gift_multiplier = gift_multiplier
        self._state = BattleState.INACTIVE
        self._battle_id: str | None = None
        self._left = 0
        self._right = 0
        self._explicit = False
        self._ended_ids: set[str] = set()

    @property
    def state(self) -> BattleState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == BattleState.ACTIVE

    @property
    def has_explicit_signal(self) -> bool:
        """True once a battle_start or battle_end arrived from the channel."""
        return self._explicit

    @property
    def battle_id(self) -> str | None:
        return self._battle_id

    def start(self, battle_id: str | None = None, *, inferred: bool = False) -> bool:
        """Begin a battle session with zeroed scores.

        A repeated start for the running battle id is ignored, and an inferred
        start never replaces a running battle. A start for a battle id that
        already ended is ignored, whichever order the two signals arrived in. Returns True when a new session began.
        """
        if battle_id is not None and battle_id in self._ended_ids:
            logger.debug("Ignoring battle_start for ended battle_id={}", battle_id)
            if not inferred:
                self._explicit = True
            return False
        if self.is_active and (inferred or battle_id == self._battle_id):
            return False
        if not inferred:
            self._explicit = True
        if not BattleStateMachine.can_transition(self._state, BattleState.ACTIVE):
            return False

        self._state = BattleState.ACTIVE
        self._battle_id = battle_id or uuid4().hex[:12]
        self._left = 0
        self._right = 0
        logger.info("Battle started battle_id={} inferred={}", self._battle_id, inferred)
        return True

    def end(self, battle_id: str | None = None) -> bool:
        self._explicit = True
        if battle_id is not None:
            self._ended_ids.add(battle_id)
        if not self.is_active:
            return False
        if battle_id is not None and battle_id != self._battle_id:
            logger.debug("Ignoring battle_end for battle_id={}, running {}", battle_id, self._battle_id)
            return False
        self._state = BattleState.ENDED
        self._ended_ids.add(self._battle_id)
        logger.info(
            "Battle ended battle_id={} left={} right={}", self._battle_id, self._left, self._right
        )
        return True

    def record_like(self, *, local: bool) -> None:
        self._add(1, local)

    def record_gift(self, unit_value: int, *, local: bool) -> None:
        self._add(max(0, unit_value) * self._gift_multiplier, local)

    def scores(self) -> BattleScores:
        return BattleScores(
            active=self.is_active,
            battle_id=self._battle_id,
            left=self._left,
            right=self._right,
        )

    def _add(self, points: int, local: bool) -> None:
        if not self.is_active:
            return
        if local:
            self._left += points
        else:
            self._right += points
