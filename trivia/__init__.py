"""
Trivia Package

A conversational trivia quiz: rounds of questions played one intent at
a time through a voice/text front end, with shared score statistics.

Intents:
    game.start - Start a round
    game.choice.* - Answer the current question
    game.help / game.hint / game.score / game.question.repeat - Aids
    game.quit / game.restart (+ .yes/.no) - Leave or start over
"""

from .config import TriviaConfig
from .engine import TriviaEngine
from .errors import (
    AmbiguousSlot,
    CorruptSessionState,
    InsufficientAnswers,
    InsufficientQuestions,
    MalformedSlot,
    StoreConflict,
    TriviaError,
    UnrecognizedIntent,
)
from .intents import Intent, TurnRequest, TurnResponse
from .question import BankSnapshot, Question, QuestionType
from .scoring import AggregateStats, ScoreTracker, merge_round_result
from .selection import select_questions, shuffle_answers
from .session import Phase, Round, SessionState
from .providers.base import QuestionBank
from .providers.kv import KVQuestionBank
from .providers.opentdb import OpenTDBProvider

__all__ = [
    # Question module
    "BankSnapshot",
    "Question",
    "QuestionType",
    # Round engine
    "Intent",
    "Phase",
    "Round",
    "SessionState",
    "TriviaConfig",
    "TriviaEngine",
    "TurnRequest",
    "TurnResponse",
    "select_questions",
    "shuffle_answers",
    # Scoring
    "AggregateStats",
    "ScoreTracker",
    "merge_round_result",
    # Errors
    "CorruptSessionState",
    "InsufficientAnswers",
    "InsufficientQuestions",
    "AmbiguousSlot",
    "MalformedSlot",
    "StoreConflict",
    "TriviaError",
    "UnrecognizedIntent",
    # Providers
    "QuestionBank",
    "KVQuestionBank",
    "OpenTDBProvider",
]
