"""
Trivia Session State

Round progress for one player session. The state is loaded at the start
of every turn, mutated by the engine's intent handlers and saved back.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Mapping, Optional

from .errors import CorruptSessionState
from .question import Question


class Phase(Enum):
    """Persisted conversation phase."""

    IDLE = "idle"
    AWAITING_ANSWER = "awaiting_answer"
    AWAITING_HELP_CONFIRM = "awaiting_help_confirm"
    AWAITING_RESTART_CONFIRM = "awaiting_restart_confirm"
    AWAITING_QUIT_CONFIRM = "awaiting_quit_confirm"


CONFIRM_PHASES = frozenset({
    Phase.AWAITING_HELP_CONFIRM,
    Phase.AWAITING_RESTART_CONFIRM,
    Phase.AWAITING_QUIT_CONFIRM,
})


@dataclass
class Round:
    """The questions picked for one round, in asking order."""

    questions: List[Question]

    @property
    def question_ids(self) -> List[str]:
        return [q.id for q in self.questions]

    def __len__(self) -> int:
        return len(self.questions)

    def to_dict(self) -> Dict[str, Any]:
        return {"questions": [q.to_dict() for q in self.questions]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Round":
        return cls([Question.from_dict(q) for q in data["questions"]])


@dataclass
class LastAnswer:
    """Verdict on the most recently resolved question."""

    question_id: str
    correct_answer: str
    was_correct: bool


@dataclass
class SessionState:
    """
    Round progress for one session.

    Attributes:
        max_history: Capacity of ``asked_history``
        phase: Current conversation phase
        round: Questions of the round in progress, if any
        current_index: Index of the question being asked
        score: Correct answers so far in this round
        fallback_count: Consecutive turns that did not resolve an answer
        correct_answer_position: Index of the correct answer in ``shuffled_answers``
        shuffled_answers: Answers to the current question, as presented
        asked_history: Recently asked question ids, oldest first
        resume_phase: Phase to return to when a confirmation is declined
        last_answer: Verdict on the previous question
    """

    max_history: int = 100
    phase: Phase = Phase.IDLE
    round: Optional[Round] = None
    current_index: int = 0
    score: int = 0
    fallback_count: int = 0
    correct_answer_position: int = 0
    shuffled_answers: List[str] = field(default_factory=list)
    asked_history: Deque[str] = field(default_factory=deque)
    resume_phase: Optional[Phase] = None
    last_answer: Optional[LastAnswer] = None

    def __post_init__(self) -> None:
        self.asked_history = deque(self.asked_history, maxlen=self.max_history)

    @property
    def in_round(self) -> bool:
        return self.round is not None

    @property
    def game_length(self) -> int:
        return len(self.round) if self.round else 0

    @property
    def current_question(self) -> Optional[Question]:
        if not self.round:
            return None
        return self.round.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.in_round and self.current_index == self.game_length - 1

    @property
    def correct_answer(self) -> str:
        return self.shuffled_answers[self.correct_answer_position]

    def remember(self, question_ids: Iterable[str]) -> None:
        """Record asked questions, refreshing ids already in history."""
        for question_id in question_ids:
            if question_id in self.asked_history:
                self.asked_history.remove(question_id)
            self.asked_history.append(question_id)

    def start_round(self, round: Round, answers: List[str], correct_position: int) -> None:
        """Begin a round at its first question."""
        self.round = round
        self.current_index = 0
        self.score = 0
        self.fallback_count = 0
        self.resume_phase = None
        self.last_answer = None
        self.present(answers, correct_position)
        self.remember(round.question_ids)
        self.phase = Phase.AWAITING_ANSWER

    def present(self, answers: List[str], correct_position: int) -> None:
        self.shuffled_answers = list(answers)
        self.correct_answer_position = correct_position

    def answer(self, position: int) -> bool:
        """
        Resolve the current question.

        Args:
            position: Index into ``shuffled_answers`` the player chose

        Returns:
            True if the answer was correct
        """
        correct = position == self.correct_answer_position
        if correct:
            self.score += 1
        self.fallback_count = 0
        self.last_answer = LastAnswer(
            question_id=self.current_question.id,
            correct_answer=self.correct_answer,
            was_correct=correct,
        )
        return correct

    def advance(self, answers: List[str], correct_position: int) -> None:
        """Move to the next question with its shuffled answers."""
        self.current_index += 1
        self.present(answers, correct_position)

    def end_round(self) -> None:
        """Drop round progress, keeping the session's question history."""
        self.round = None
        self.current_index = 0
        self.score = 0
        self.fallback_count = 0
        self.shuffled_answers = []
        self.correct_answer_position = 0
        self.resume_phase = None
        self.phase = Phase.IDLE

    def register_fallback(self) -> int:
        self.fallback_count += 1
        return self.fallback_count

    def confirm(self, phase: Phase) -> None:
        """Enter a confirmation phase, remembering where to resume."""
        if self.phase not in CONFIRM_PHASES:
            self.resume_phase = self.phase
        self.phase = phase

    def resume(self) -> None:
        """Leave a confirmation phase."""
        if self.resume_phase is not None:
            self.phase = self.resume_phase
        else:
            self.phase = Phase.AWAITING_ANSWER if self.in_round else Phase.IDLE
        self.resume_phase = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_history": self.max_history,
            "phase": self.phase.value,
            "round": self.round.to_dict() if self.round else None,
            "current_index": self.current_index,
            "score": self.score,
            "fallback_count": self.fallback_count,
            "correct_answer_position": self.correct_answer_position,
            "shuffled_answers": list(self.shuffled_answers),
            "asked_history": list(self.asked_history),
            "resume_phase": self.resume_phase.value if self.resume_phase else None,
            "last_answer": vars(self.last_answer) if self.last_answer else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], max_history: Optional[int] = None) -> "SessionState":
        """
        Rebuild session state from its stored form.

        Args:
            data: Stored session payload
            max_history: Overrides the stored history capacity

        Raises:
            CorruptSessionState: If required fields are missing or inconsistent
        """
        try:
            round_data = data["round"]
            last = data.get("last_answer")
            resume = data.get("resume_phase")
            state = cls(
                max_history=max_history or int(data.get("max_history", 100)),
                phase=Phase(data["phase"]),
                round=Round.from_dict(round_data) if round_data else None,
                current_index=int(data["current_index"]),
                score=int(data["score"]),
                fallback_count=int(data["fallback_count"]),
                correct_answer_position=int(data["correct_answer_position"]),
                shuffled_answers=list(data["shuffled_answers"]),
                asked_history=[str(q) for q in data["asked_history"]],
                resume_phase=Phase(resume) if resume else None,
                last_answer=LastAnswer(**last) if last else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptSessionState(f"Invalid session state: {e}") from e

        state._validate()
        return state

    def _validate(self) -> None:
        if not all(isinstance(answer, str) for answer in self.shuffled_answers):
            raise CorruptSessionState("Shuffled answers must be strings")

        if self.round is None:
            if Phase.AWAITING_ANSWER in (self.phase, self.resume_phase):
                raise CorruptSessionState("Awaiting an answer without a round")
            return

        if not 0 <= self.current_index < len(self.round):
            raise CorruptSessionState(
                f"Question index {self.current_index} outside round of {len(self.round)}"
            )
        if not 0 <= self.correct_answer_position < len(self.shuffled_answers):
            raise CorruptSessionState(
                f"Correct position {self.correct_answer_position} outside "
                f"{len(self.shuffled_answers)} answers"
            )
        if self.correct_answer != self.current_question.correct_answer:
            raise CorruptSessionState("Correct position does not hold the correct answer")
        if not 0 <= self.score <= self.current_index + 1:
            raise CorruptSessionState(
                f"Score {self.score} impossible at question {self.current_index}"
            )
