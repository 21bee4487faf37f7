"""
Round Selection

Picks the questions for a round and shuffles each question's answers.
Both functions are pure apart from the random source, which can be
injected for repeatable results.
"""

import random
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import InsufficientAnswers, InsufficientQuestions
from .question import Question


def select_questions(
    pool: Sequence[Question],
    count: int,
    recently_used: Iterable[str] = (),
    rng: Optional[random.Random] = None,
) -> List[str]:
    """
    Select ``count`` distinct question ids from ``pool``.

    Questions not in ``recently_used`` are preferred. If there are not
    enough of those, all of them are taken and the rest of the round is
    filled from the recently used ones.

    Args:
        pool: Candidate questions (duplicates by id are ignored)
        count: Number of questions in the round
        recently_used: Ids asked recently in this session
        rng: Random source, defaults to the module-level generator

    Returns:
        List of ``count`` distinct question ids

    Raises:
        InsufficientQuestions: If the pool has fewer than ``count`` distinct ids
    """
    rng = rng or random

    ids: List[str] = []
    seen = set()
    for question in pool:
        if question.id not in seen:
            seen.add(question.id)
            ids.append(question.id)

    if count < 1 or len(ids) < count:
        raise InsufficientQuestions(len(ids), count)

    recent = set(recently_used)
    fresh = [qid for qid in ids if qid not in recent]

    if len(fresh) >= count:
        return rng.sample(fresh, count)

    # Not enough unseen questions: use them all, top up from history
    stale = [qid for qid in ids if qid in recent]
    selected = rng.sample(fresh, len(fresh))
    selected.extend(rng.sample(stale, count - len(fresh)))
    return selected


def shuffle_answers(
    correct: str,
    distractors: Sequence[str],
    rng: Optional[random.Random] = None,
) -> Tuple[List[str], int]:
    """
    Shuffle the answers for a question.

    The correct answer is placed at a uniformly chosen position and the
    distractors fill the remaining slots in random order, each used once.

    Args:
        correct: The correct answer
        distractors: Incorrect answers

    Returns:
        Tuple of (shuffled answers, position of the correct answer)

    Raises:
        InsufficientAnswers: If there are no distractors
    """
    if not distractors:
        raise InsufficientAnswers(available=1 if correct else 0)

    rng = rng or random

    correct_position = rng.randint(0, len(distractors))
    shuffled = rng.sample(list(distractors), len(distractors))
    shuffled.insert(correct_position, correct)
    return shuffled, correct_position


def shuffle_question(
    question: Question, rng: Optional[random.Random] = None
) -> Tuple[List[str], int]:
    """Shuffle a question's answers, tagging errors with its id."""
    try:
        return shuffle_answers(question.correct_answer, question.distractors, rng)
    except InsufficientAnswers as e:
        raise InsufficientAnswers(question.id, e.available) from e
