"""Tests for BattleEngine scoring and lifecycle."""

from livecast.domain.live.battle.battle_engine import BattleEngine, BattleState, BattleStateMachine


class TestBattleStateMachine:
    """Tests for BattleStateMachine transitions."""

    def test_inactive_to_active_valid(self):
        """Test INACTIVE -> ACTIVE is valid."""
        assert BattleStateMachine.can_transition(BattleState.INACTIVE, BattleState.ACTIVE) is True

    def test_inactive_to_ended_invalid(self):
        """Test a battle cannot end before it starts."""
        assert BattleStateMachine.can_transition(BattleState.INACTIVE, BattleState.ENDED) is False

    def test_ended_to_active_valid(self):
        """Test a new battle session can follow an ended one."""
        assert BattleStateMachine.can_transition(BattleState.ENDED, BattleState.ACTIVE) is True


class TestScoring:
    """Tests for like and gift scoring."""

    def test_inactive_battle_ignores_contributions(self):
        """Test nothing is scored before a battle starts."""
        # Arrange
        battle = BattleEngine()

        # Act
        battle.record_like(local=True)
        battle.record_gift(5, local=False)

        # Assert
        scores = battle.scores()
        assert scores.active is False
        assert (scores.left, scores.right) == (0, 0)

    def test_local_like_scores_left(self):
        """Test a local like adds 1 to the left side."""
        battle = BattleEngine()
        battle.start("bt1")

        battle.record_like(local=True)

        assert battle.scores().left == 1
        assert battle.scores().right == 0

    def test_remote_gift_scores_right_times_ten(self):
        """Test a remote gift of value 5 adds 50 to the right side."""
        battle = BattleEngine()
        battle.start("bt1")

        battle.record_gift(5, local=False)

        assert battle.scores().right == 50

    def test_scores_never_decrease(self):
        """Test scores are monotone under mixed contributions."""
        # Arrange
        battle = BattleEngine()
        battle.start("bt1")
        previous = (0, 0)

        # Act / Assert
        for local, value in [(True, 1), (False, 0), (False, 70), (True, 350), (False, 1)]:
            battle.record_gift(value, local=local)
            battle.record_like(local=not local)
            current = (battle.scores().left, battle.scores().right)
            assert current[0] >= previous[0]
            assert current[1] >= previous[1]
            previous = current


class TestLifecycle:
    """Tests for start/end semantics."""

    def test_new_battle_id_resets_scores(self):
        """Test a new battle session starts from zero."""
        # Arrange
        battle = BattleEngine()
        battle.start("bt1")
        battle.record_like(local=True)

        # Act
        started = battle.start("bt2")

        # Assert
        assert started is True
        assert battle.scores().left == 0
        assert battle.battle_id == "bt2"

    def test_duplicate_start_keeps_scores(self):
        """Test a repeated start for the running battle is a no-op."""
        battle = BattleEngine()
        battle.start("bt1")
        battle.record_like(local=True)

        assert battle.start("bt1") is False
        assert battle.scores().left == 1

    def test_inferred_start_never_replaces_running_battle(self):
        """Test category inference does not reset an explicit battle."""
        battle = BattleEngine()
        battle.start("bt1")
        battle.record_like(local=False)

        assert battle.start(inferred=True) is False
        assert battle.scores().right == 1

    def test_end_freezes_scores(self):
        """Test contributions after battle_end are ignored."""
        # Arrange
        battle = BattleEngine()
        battle.start("bt1")
        battle.record_like(local=True)

        # Act
        battle.end("bt1")
        battle.record_like(local=True)

        # Assert
        assert battle.state == BattleState.ENDED
        assert battle.scores().left == 1
        assert battle.scores().active is False

    def test_end_for_other_battle_ignored(self):
        """Test battle_end carrying another id does not end the running battle."""
        battle = BattleEngine()
        battle.start("bt1")

        assert battle.end("bt_other") is False
        assert battle.is_active is True

    def test_explicit_signal_flag(self):
        """Test only explicit signals mark the battle as explicitly driven."""
        battle = BattleEngine()
        battle.start(inferred=True)
        assert battle.has_explicit_signal is False

        battle.end()
        assert battle.has_explicit_signal is True
