"""
Tests for session state.
"""

import json

import pytest

from trivia.errors import CorruptSessionState
from trivia.session import CONFIRM_PHASES, Phase, Round, SessionState


def started_state(questions, max_history=100):
    """Session at the first question of a round built from ``questions``."""
    state = SessionState(max_history=max_history)
    first = questions[0]
    answers = [first.distractors[0], first.correct_answer] + list(first.distractors[1:])
    state.start_round(Round(list(questions)), answers, 1)
    return state


class TestPhase:
    """Test Phase enum."""

    def test_values(self):
        """Test enum values."""
        assert Phase.IDLE.value == "idle"
        assert Phase.AWAITING_ANSWER.value == "awaiting_answer"
        assert Phase.AWAITING_QUIT_CONFIRM.value == "awaiting_quit_confirm"

    def test_confirm_phases(self):
        """Test which phases wait for a yes/no."""
        assert Phase.IDLE not in CONFIRM_PHASES
        assert Phase.AWAITING_ANSWER not in CONFIRM_PHASES
        assert len(CONFIRM_PHASES) == 3


class TestSessionState:
    """Test round progress tracking."""

    def test_initial_state(self):
        """Test a new session is idle."""
        state = SessionState()
        assert state.phase == Phase.IDLE
        assert not state.in_round
        assert state.current_question is None
        assert state.game_length == 0

    def test_start_round(self, sample_questions):
        """Test starting a round resets counters."""
        state = started_state(sample_questions[:4])

        assert state.phase == Phase.AWAITING_ANSWER
        assert state.current_index == 0
        assert state.score == 0
        assert state.fallback_count == 0
        assert state.correct_answer == sample_questions[0].correct_answer
        assert list(state.asked_history) == ["q0", "q1", "q2", "q3"]

    def test_correct_answer_scores(self, sample_questions):
        """Test a correct answer scores and clears fallbacks."""
        state = started_state(sample_questions[:4])
        state.fallback_count = 2

        assert state.answer(1) is True
        assert state.score == 1
        assert state.fallback_count == 0
        assert state.last_answer.was_correct

    def test_wrong_answer(self, sample_questions):
        """Test a wrong answer does not score."""
        state = started_state(sample_questions[:4])

        assert state.answer(0) is False
        assert state.score == 0
        assert state.last_answer.correct_answer == "Right 0"

    def test_advance(self, sample_questions):
        """Test advancing presents the next question."""
        state = started_state(sample_questions[:4])
        state.answer(1)
        state.advance(["Wrong 1a", "Right 1", "Wrong 1b", "Wrong 1c"], 1)

        assert state.current_index == 1
        assert state.current_question.id == "q1"
        assert state.correct_answer == "Right 1"

    def test_is_last_question(self, sample_questions):
        """Test the last question is detected."""
        state = started_state(sample_questions[:2])
        assert not state.is_last_question
        state.advance(["Right 1", "Wrong 1a"], 0)
        assert state.is_last_question

    def test_end_round_keeps_history(self, sample_questions):
        """Test ending a round keeps the asked history."""
        state = started_state(sample_questions[:4])
        state.end_round()

        assert state.phase == Phase.IDLE
        assert not state.in_round
        assert len(state.asked_history) == 4

    def test_history_is_bounded(self, sample_questions):
        """Test the oldest ids are evicted first."""
        state = SessionState(max_history=3)
        state.remember(["a", "b", "c", "d"])
        assert list(state.asked_history) == ["b", "c", "d"]

    def test_history_refreshes_repeats(self):
        """Test re-asking a question moves it to the newest end."""
        state = SessionState(max_history=3)
        state.remember(["a", "b", "c"])
        state.remember(["a"])
        assert list(state.asked_history) == ["b", "c", "a"]

    def test_confirm_and_resume(self, sample_questions):
        """Test a confirmation returns to where it came from."""
        state = started_state(sample_questions[:4])

        state.confirm(Phase.AWAITING_QUIT_CONFIRM)
        assert state.phase == Phase.AWAITING_QUIT_CONFIRM
        assert state.resume_phase == Phase.AWAITING_ANSWER

        state.resume()
        assert state.phase == Phase.AWAITING_ANSWER
        assert state.resume_phase is None

    def test_confirm_over_confirm_keeps_origin(self, sample_questions):
        """Test switching confirmations still resumes the round."""
        state = started_state(sample_questions[:4])
        state.confirm(Phase.AWAITING_QUIT_CONFIRM)
        state.confirm(Phase.AWAITING_RESTART_CONFIRM)
        state.resume()
        assert state.phase == Phase.AWAITING_ANSWER


class TestSessionSerialization:
    """Test persisting session state."""

    def test_round_trip_through_json(self, sample_questions):
        """Test stored state comes back identical."""
        state = started_state(sample_questions[:4])
        state.answer(1)
        state.confirm(Phase.AWAITING_HELP_CONFIRM)

        data = json.loads(json.dumps(state.to_dict()))
        restored = SessionState.from_dict(data)

        assert restored.to_dict() == state.to_dict()
        assert restored.round.question_ids == ["q0", "q1", "q2", "q3"]
        assert restored.asked_history.maxlen == 100

    def test_idle_round_trip(self):
        """Test an idle session with history survives storage."""
        state = SessionState(max_history=5)
        state.remember(["x", "y"])

        restored = SessionState.from_dict(state.to_dict())

        assert restored.phase == Phase.IDLE
        assert list(restored.asked_history) == ["x", "y"]
        assert restored.asked_history.maxlen == 5

    def test_capacity_override(self):
        """Test the configured capacity wins over the stored one."""
        state = SessionState(max_history=10)
        state.remember(["a", "b", "c"])

        restored = SessionState.from_dict(state.to_dict(), max_history=2)

        assert list(restored.asked_history) == ["b", "c"]

    def test_missing_field(self, sample_questions):
        """Test a missing field is reported as corrupt."""
        data = started_state(sample_questions[:4]).to_dict()
        del data["score"]

        with pytest.raises(CorruptSessionState):
            SessionState.from_dict(data)

    def test_unknown_phase(self):
        """Test an unknown phase is corrupt."""
        data = SessionState().to_dict()
        data["phase"] = "dancing"

        with pytest.raises(CorruptSessionState):
            SessionState.from_dict(data)

    def test_position_out_of_range(self, sample_questions):
        """Test a correct position outside the answers is corrupt."""
        data = started_state(sample_questions[:4]).to_dict()
        data["correct_answer_position"] = 9

        with pytest.raises(CorruptSessionState):
            SessionState.from_dict(data)

    def test_position_not_correct_answer(self, sample_questions):
        """Test a position pointing at a distractor is corrupt."""
        data = started_state(sample_questions[:4]).to_dict()
        data["correct_answer_position"] = 0

        with pytest.raises(CorruptSessionState):
            SessionState.from_dict(data)

    def test_impossible_score(self, sample_questions):
        """Test a score beyond the questions asked is corrupt."""
        data = started_state(sample_questions[:4]).to_dict()
        data["score"] = 3

        with pytest.raises(CorruptSessionState):
            SessionState.from_dict(data)

    def test_awaiting_answer_without_round(self):
        """Test awaiting an answer with no round is corrupt."""
        data = SessionState().to_dict()
        data["phase"] = "awaiting_answer"

        with pytest.raises(CorruptSessionState):
            SessionState.from_dict(data)

    def test_resume_into_answer_without_round(self):
        """Test a confirmation that would resume a missing round is corrupt."""
        data = SessionState().to_dict()
        data["phase"] = "awaiting_quit_confirm"
        data["resume_phase"] = "awaiting_answer"

        with pytest.raises(CorruptSessionState):
            SessionState.from_dict(data)

    def test_confirm_while_idle_round_trip(self):
        """Test a confirmation raised while idle still loads."""
        data = SessionState().to_dict()
        data["phase"] = "awaiting_help_confirm"
        data["resume_phase"] = "idle"

        restored = SessionState.from_dict(data)

        assert restored.phase == Phase.AWAITING_HELP_CONFIRM
        assert restored.resume_phase == Phase.IDLE

    def test_non_string_answers(self, sample_questions):
        """Test shuffled answers that are not text are corrupt."""
        data = started_state(sample_questions[:4]).to_dict()
        data["shuffled_answers"] = [1, 2, 3, 4]

        with pytest.raises(CorruptSessionState):
            SessionState.from_dict(data)

    def test_not_a_mapping(self):
        """Test garbage is corrupt rather than a crash."""
        with pytest.raises(CorruptSessionState):
            SessionState.from_dict({"round": 5, "phase": "idle"})
