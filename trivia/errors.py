"""
Trivia Errors

Exceptions raised by the round engine and its stores.
"""

from typing import List, Optional


class TriviaError(Exception):
    """Base exception for trivia errors."""
    pass


class RoundError(TriviaError):
    """A round could not be set up."""
    pass


class InsufficientQuestions(RoundError):
    """The question pool is too small for the requested round length."""

    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Need {requested} distinct questions, only {available} available"
        )


class InsufficientAnswers(RoundError):
    """A question has fewer than two answers to choose from."""

    def __init__(self, question_id: Optional[str] = None, available: int = 0):
        self.question_id = question_id
        self.available = available
        super().__init__(
            f"Question {question_id or '?'} has {available} answer(s), need at least 2"
        )


class TurnError(TriviaError):
    """A turn could not be interpreted. Handled as a fallback turn."""
    pass


class UnrecognizedIntent(TurnError):
    """Intent name is not one the engine knows about."""

    def __init__(self, intent_name: str):
        self.intent_name = intent_name
        super().__init__(f"Unrecognized intent: {intent_name!r}")


class MalformedSlot(TurnError):
    """Slot arguments are missing or do not resolve to an answer."""
    pass


class AmbiguousSlot(MalformedSlot):
    """Slot arguments fit more than one answer."""

    def __init__(self, positions: List[int]):
        self.positions = positions
        super().__init__(f"Slot fits answers at positions {positions}")


class CorruptSessionState(TriviaError):
    """Persisted session state is missing required fields."""
    pass


class StorageError(TriviaError):
    """Request to the external store failed."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(message)


class StoreConflict(StorageError):
    """A write lost against a concurrent writer."""

    def __init__(self, message: str = "Write conflict"):
        super().__init__(message, code="CONFLICT")
