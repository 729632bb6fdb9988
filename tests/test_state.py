"""Tests for the attempt state machine."""

from daily.state import FOUND, FRESH, IN_PROGRESS, LOST, WON, AttemptState


class TestApplyGuess:
    def test_wrong_guess_costs_one_life(self):
        state = AttemptState.fresh(3).apply_guess("x", correct=False, is_today=True)
        assert state.lives == 2
        assert state.guesses == ["x"]
        assert state.status == IN_PROGRESS

    def test_lives_never_increase_and_stop_at_zero(self):
        state = AttemptState.fresh(3)
        previous = state.lives
        for index in range(6):
            state = state.apply_guess(f"wrong-{index}", correct=False, is_today=True)
            assert 0 <= state.lives <= previous
            previous = state.lives
        assert state.lives == 0
        assert state.status == LOST

    def test_correct_guess_today_wins(self):
        state = AttemptState.fresh().apply_guess("t", correct=True, is_today=True)
        assert state.found and state.won
        assert state.status == WON
        assert state.lives == AttemptState.fresh().lives

    def test_correct_guess_on_past_day_is_found_not_won(self):
        state = AttemptState.fresh().apply_guess("t", correct=True, is_today=False)
        assert state.found
        assert not state.won
        assert state.status == FOUND

    def test_terminal_states_absorb_guesses(self):
        won = AttemptState.fresh().apply_guess("t", correct=True, is_today=True)
        assert won.apply_guess("other", correct=False, is_today=True) is won

        lost = AttemptState.fresh(1).apply_guess("x", correct=False, is_today=True)
        assert lost.game_over
        assert lost.apply_guess("t", correct=True, is_today=True) is lost

    def test_fresh_state(self):
        state = AttemptState.fresh(10)
        assert state.status == FRESH
        assert not state.game_over


class TestPayloads:
    def test_cache_payload_shape(self):
        payload = AttemptState.fresh(2).apply_guess("x", correct=False, is_today=True).to_payload()
        assert payload == {"guesses": ["x"], "lives": 1, "found": False, "won": False, "gameOver": False}

    def test_remote_row_shape(self):
        row = AttemptState.fresh(5).to_remote_row("user-1", "2025-01-02")
        assert row == {
            "user_id": "user-1",
            "date": "2025-01-02",
            "guesses": [],
            "lives_remaining": 5,
            "found": False,
            "won": False,
        }

    def test_from_payload_reads_remote_row(self):
        state = AttemptState.from_payload(
            {"guesses": ["a", "b"], "lives_remaining": 8, "found": True, "won": True}, 10
        )
        assert state.guesses == ["a", "b"]
        assert state.lives == 8
        assert state.won

    def test_from_payload_clamps_lives(self):
        assert AttemptState.from_payload({"guesses": [], "lives": 99}, 10).lives == 10
        assert AttemptState.from_payload({"guesses": [], "lives": -4}, 10).lives == 0

    def test_from_payload_won_requires_found(self):
        state = AttemptState.from_payload({"guesses": ["a"], "lives": 5, "found": False, "won": True}, 10)
        assert not state.won

    def test_from_payload_rejects_unusable_values(self):
        assert AttemptState.from_payload(None) is None
        assert AttemptState.from_payload({"guesses": "abc", "lives": 3}) is None
        assert AttemptState.from_payload({"guesses": [], "lives": "many"}) is None
