"""
Trivia Question Models

Data models for trivia questions and question bank snapshots.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import logging

logger = logging.getLogger(__name__)


class QuestionType(Enum):
    """Question format type."""

    MULTIPLE_CHOICE = "multiple"
    TRUE_FALSE = "boolean"


TRUE_FORMS = {"true", "yes"}
FALSE_FORMS = {"false", "no"}


@dataclass(frozen=True)
class Question:
    """
    Represents a trivia question.

    Attributes:
        id: Unique identifier for the question
        prompt: The question text
        correct_answer: The correct answer
        distractors: Incorrect answers shown alongside the correct one
        category: Optional category/topic of the question
    """

    id: str
    prompt: str
    correct_answer: str
    distractors: Tuple[str, ...] = ()
    category: Optional[str] = None

    @property
    def type(self) -> QuestionType:
        """Boolean when the answers are exactly true/false."""
        answers = {a.strip().lower() for a in self.all_answers}
        if len(answers) == 2 and answers & TRUE_FORMS and answers & FALSE_FORMS:
            return QuestionType.TRUE_FALSE
        return QuestionType.MULTIPLE_CHOICE

    @property
    def all_answers(self) -> List[str]:
        """Correct answer first, then distractors (unshuffled)."""
        return [self.correct_answer] + list(self.distractors)

    @property
    def answer_count(self) -> int:
        return 1 + len(self.distractors)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "prompt": self.prompt,
            "correct_answer": self.correct_answer,
            "distractors": list(self.distractors),
        }
        if self.category:
            data["category"] = self.category
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Question":
        return cls(
            id=str(data["id"]),
            prompt=data["prompt"],
            correct_answer=data["correct_answer"],
            distractors=tuple(data.get("distractors", ())),
            category=data.get("category"),
        )

    @classmethod
    def from_answer_set(
        cls,
        question_id: str,
        prompt: str,
        answers: Sequence[str],
        category: Optional[str] = None,
    ) -> "Question":
        """
        Build a question from an answer set whose first entry is correct.

        An empty answer set yields a question with an empty correct answer;
        it is filtered out as unplayable before selection.
        """
        answers = [str(a) for a in answers or ()]
        correct = answers[0] if answers else ""
        return cls(
            id=str(question_id),
            prompt=prompt,
            correct_answer=correct,
            distractors=tuple(answers[1:]),
            category=category,
        )


@dataclass(frozen=True)
class BankSnapshot:
    """
    One immutable read of the question bank.

    A snapshot is fetched once per round start and released afterwards;
    questions picked for the round are copied into the session.
    """

    questions: Tuple[Question, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.questions)

    def by_id(self) -> Dict[str, Question]:
        index: Dict[str, Question] = {}
        for question in self.questions:
            index.setdefault(question.id, question)
        return index

    def playable(self) -> "BankSnapshot":
        """Questions that have a correct answer and at least one distractor."""
        keep = []
        for question in self.questions:
            if question.correct_answer and question.distractors:
                keep.append(question)
            else:
                logger.warning(
                    "Skipping question %s: %d answer(s)",
                    question.id,
                    question.answer_count if question.correct_answer else 0,
                )
        return BankSnapshot(tuple(keep))

    @classmethod
    def from_records(cls, data: Mapping[str, Any]) -> "BankSnapshot":
        """
        Parse a bank payload of the form::

            {
                "questions": ["Prompt", ...] or [{"id", "prompt", "category"}, ...],
                "answers": {id: [correct, *distractors]} or [[correct, ...], ...]
            }

        Question ids default to the list index, matching how answer lists
        are keyed when ``answers`` is itself a list.
        """
        raw_questions = data.get("questions") or []
        raw_answers = data.get("answers") or {}

        if isinstance(raw_answers, list):
            answers = {str(i): a for i, a in enumerate(raw_answers)}
        else:
            answers = {str(k): v for k, v in raw_answers.items()}

        questions = []
        for index, record in enumerate(raw_questions):
            if isinstance(record, Mapping):
                question_id = str(record.get("id", index))
                prompt = record.get("prompt") or record.get("question", "")
                category = record.get("category")
            else:
                question_id = str(index)
                prompt = str(record)
                category = None

            questions.append(Question.from_answer_set(
                question_id, prompt, answers.get(question_id, []), category
            ))

        return cls(tuple(questions))
