"""
Prompt Formatting

SSML prompt building and suggestion chip validation for the
conversational front end.
"""

import html
from typing import Iterable, List, Optional

SUGGESTION_CHIPS_MAX = 8
SUGGESTION_CHIPS_MAX_TEXT_LENGTH = 25

DEFAULT_BREAK = "500ms"

LETTERS = "ABCDEFGH"


class Ssml:
    """
    Builds a spoken prompt and its plain-text rendering side by side.

    Example:
        prompt = Ssml().say("Question 1.").pause().say("What is 2 + 2?")
        prompt.speech()  # '<speak>Question 1. <break time="500ms"/> What is 2 + 2?</speak>'
        prompt.text()    # 'Question 1. What is 2 + 2?'
    """

    def __init__(self, default_break: str = DEFAULT_BREAK):
        self.default_break = default_break
        self._speech: List[str] = []
        self._text: List[str] = []

    def say(self, text: str) -> "Ssml":
        if text:
            self._speech.append(html.escape(text, quote=False))
            self._text.append(text)
        return self

    def pause(self, time: Optional[str] = None) -> "Ssml":
        self._speech.append(f'<break time="{time or self.default_break}"/>')
        return self

    def speech(self) -> str:
        return f"<speak>{' '.join(self._speech)}</speak>"

    def text(self) -> str:
        return " ".join(self._text)

    def __bool__(self) -> bool:
        return bool(self._text)


def letter(position: int) -> str:
    """Spoken label for an answer position (A, B, C...)."""
    return LETTERS[position] if position < len(LETTERS) else str(position + 1)


def format_answers(answers: Iterable[str]) -> str:
    """Read out answer options, e.g. ``A: Paris. B: London.``"""
    return " ".join(f"{letter(i)}: {answer}." for i, answer in enumerate(answers))


def suggestion_chips(items: Iterable[str]) -> List[str]:
    """
    Clamp suggestions to what capable clients render.

    Empty and duplicate entries are dropped, each chip is truncated to
    ``SUGGESTION_CHIPS_MAX_TEXT_LENGTH`` characters, and at most
    ``SUGGESTION_CHIPS_MAX`` are kept.
    """
    chips: List[str] = []
    for item in items:
        chip = str(item).strip()[:SUGGESTION_CHIPS_MAX_TEXT_LENGTH].rstrip()
        if chip and chip not in chips:
            chips.append(chip)
        if len(chips) == SUGGESTION_CHIPS_MAX:
            break
    return chips
