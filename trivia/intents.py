"""
Trivia Intents

The closed set of intents the engine understands, the request and
response shapes of a conversational turn, and answer slot resolution.
"""

from dataclasses import dataclass, field
from difflib import SequenceMatcher
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import AmbiguousSlot, MalformedSlot, UnrecognizedIntent
from .formatting import LETTERS
from .question import FALSE_FORMS, TRUE_FORMS

RAW_TEXT_ARGUMENT = "raw_text"
ANSWER_ARGUMENT = "answer"
NUMBER_ARGUMENT = "number"
ORDINAL_ARGUMENT = "ordinal"
ITEM_ARGUMENT = "item"

FUZZY_THRESHOLD = 0.85


class Intent(Enum):
    """Intent names as sent by the front end."""

    START = "game.start"
    DEEPLINK_UNKNOWN = "deeplink.unknown"

    CHOICE_VALUE = "game.choice.value"
    CHOICE_ORDINAL = "game.choice.ordinal"
    CHOICE_LAST = "game.choice.last"
    CHOICE_MIDDLE = "game.choice.middle"
    CHOICE_TRUE = "game.choice.true"
    CHOICE_FALSE = "game.choice.false"
    CHOICE_ANSWER = "game.choice.answer"
    CHOICE_ITEM = "game.choice.item"

    UNKNOWN = "game.unknown"
    DONT_KNOW = "game.answers.dont_know"
    REPEAT = "game.question.repeat"
    ANSWERS = "game.answers"
    SCORE = "game.score"

    HELP = "game.help"
    HELP_YES = "game.help.yes"
    HELP_NO = "game.help.no"
    HINT = "game.hint"

    QUIT = "game.quit"
    QUIT_YES = "game.quit.yes"
    QUIT_NO = "game.quit.no"
    RESTART = "game.restart"
    RESTART_YES = "game.restart.yes"
    RESTART_NO = "game.restart.no"

    MISTAKEN = "game.mistaken"
    DISAGREE = "game.answers.wrong"
    FEELING_LUCKY = "game.feeling_lucky"

    @classmethod
    def parse(cls, name: str) -> "Intent":
        """
        Look up an intent by its wire name.

        Raises:
            UnrecognizedIntent: If the name is not a known intent
        """
        try:
            return cls(name)
        except ValueError:
            raise UnrecognizedIntent(name) from None


ANSWER_INTENTS = frozenset({
    Intent.CHOICE_VALUE,
    Intent.CHOICE_ORDINAL,
    Intent.CHOICE_LAST,
    Intent.CHOICE_MIDDLE,
    Intent.CHOICE_TRUE,
    Intent.CHOICE_FALSE,
    Intent.CHOICE_ANSWER,
    Intent.CHOICE_ITEM,
})


@dataclass
class TurnRequest:
    """
    One conversational turn.

    Attributes:
        intent_name: Intent recognised by the front end
        session_id: Session the turn belongs to
        slots: Slot arguments extracted from the utterance
        has_screen: Whether the client can render suggestion chips
    """

    intent_name: str
    session_id: str
    slots: Dict[str, Any] = field(default_factory=dict)
    has_screen: bool = False

    @property
    def raw_text(self) -> Optional[str]:
        return self.slots.get(RAW_TEXT_ARGUMENT)


@dataclass
class TurnResponse:
    """What to say back, and whether the conversation is over."""

    speech: str
    text: str
    suggestions: Optional[List[str]] = None
    end_conversation: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "speech": self.speech,
            "text": self.text,
            "end_conversation": self.end_conversation,
        }
        if self.suggestions is not None:
            data["suggestions"] = self.suggestions
        return data


def _parse_position(value: Any, count: int) -> int:
    """Turn a 1-based number or an answer letter into a 0-based position."""
    if value is None or isinstance(value, bool):
        raise MalformedSlot("No answer given")

    text = str(value).strip().rstrip(".)").upper()
    if len(text) == 1 and text in LETTERS:
        position = LETTERS.index(text)
    else:
        try:
            position = int(float(text)) - 1
        except (ValueError, OverflowError):
            raise MalformedSlot(f"Not a choice: {value!r}") from None

    if not 0 <= position < count:
        raise MalformedSlot(f"Choice {value!r} out of range 1-{count}")
    return position


def _match_text(text: Any, answers: Sequence[str]) -> int:
    """Find the answer matching free text, exactly or by close spelling."""
    if not text or not str(text).strip():
        raise MalformedSlot("No answer given")

    normalized = str(text).strip().lower()
    lowered = [a.strip().lower() for a in answers]

    if normalized in lowered:
        return lowered.index(normalized)

    best_position, best_ratio = -1, 0.0
    for position, answer in enumerate(lowered):
        ratio = SequenceMatcher(None, normalized, answer).ratio()
        if ratio > best_ratio:
            best_position, best_ratio = position, ratio

    if best_ratio >= FUZZY_THRESHOLD:
        return best_position

    # Letter or number spoken as free text ("B", "2")
    return _parse_position(text, len(answers))


def _match_forms(forms, answers: Sequence[str]) -> int:
    for position, answer in enumerate(answers):
        if answer.strip().lower() in forms:
            return position
    raise MalformedSlot("Question has no true/false answer")


def resolve_answer_position(
    intent: Intent, slots: Mapping[str, Any], answers: Sequence[str]
) -> int:
    """
    Resolve an answer-bearing intent to a position in ``answers``.

    Args:
        intent: One of ``ANSWER_INTENTS``
        slots: Slot arguments of the turn
        answers: Answers as presented to the player

    Returns:
        0-based position of the chosen answer

    Raises:
        AmbiguousSlot: If the slots fit more than one answer
        MalformedSlot: If the slots do not identify an answer
    """
    count = len(answers)

    if intent == Intent.CHOICE_VALUE:
        value = slots.get(ANSWER_ARGUMENT, slots.get(NUMBER_ARGUMENT))
        return _parse_position(value, count)

    if intent == Intent.CHOICE_ORDINAL:
        return _parse_position(slots.get(ORDINAL_ARGUMENT), count)

    if intent == Intent.CHOICE_LAST:
        return count - 1

    if intent == Intent.CHOICE_MIDDLE:
        if count % 2 == 0:
            raise AmbiguousSlot([count // 2 - 1, count // 2])
        return count // 2

    if intent == Intent.CHOICE_TRUE:
        return _match_forms(TRUE_FORMS, answers)

    if intent == Intent.CHOICE_FALSE:
        return _match_forms(FALSE_FORMS, answers)

    if intent == Intent.CHOICE_ITEM:
        text = slots.get(ITEM_ARGUMENT) or slots.get(ANSWER_ARGUMENT) or slots.get(RAW_TEXT_ARGUMENT)
        return _match_text(text, answers)

    if intent == Intent.CHOICE_ANSWER:
        text = slots.get(ANSWER_ARGUMENT) or slots.get(RAW_TEXT_ARGUMENT)
        return _match_text(text, answers)

    raise MalformedSlot(f"{intent.value} does not carry an answer")
