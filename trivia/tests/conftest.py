"""
Test fixtures for trivia tests.
"""

import copy
import json
import random

import pytest
from unittest.mock import AsyncMock, MagicMock

from trivia.config import TriviaConfig
from trivia.engine import TriviaEngine
from trivia.errors import StoreConflict
from trivia.question import BankSnapshot, Question
from trivia.scoring import AggregateStats, ScoreTracker, merge_round_result


@pytest.fixture
def sample_question():
    """Sample multiple choice question."""
    return Question(
        id="q1",
        prompt="What is the capital of France?",
        correct_answer="Paris",
        distractors=("London", "Berlin", "Madrid"),
        category="General Knowledge",
    )


@pytest.fixture
def true_false_question():
    """Sample true/false question."""
    return Question(
        id="tf1",
        prompt="The sun is a star.",
        correct_answer="True",
        distractors=("False",),
    )


@pytest.fixture
def sample_questions():
    """Ten multiple choice questions."""
    return [
        Question(
            id=f"q{i}",
            prompt=f"Question number {i}?",
            correct_answer=f"Right {i}",
            distractors=(f"Wrong {i}a", f"Wrong {i}b", f"Wrong {i}c"),
        )
        for i in range(10)
    ]


class MemoryBank:
    """Question bank serving a fixed snapshot."""

    def __init__(self, questions):
        self.snapshot = BankSnapshot(tuple(questions))
        self.fetch_count = 0

    async def fetch_all(self):
        self.fetch_count += 1
        return self.snapshot

    async def close(self):
        pass


class MemoryStore:
    """In-memory session and score store."""

    def __init__(self):
        self.sessions = {}
        self.stats = AggregateStats()
        self.conflicts = 0  # Number of upcoming writes to reject
        self.error = None  # Raised by every score write when set

    async def load_session(self, session_id):
        data = self.sessions.get(session_id)
        return copy.deepcopy(data) if data is not None else None

    async def save_session(self, session_id, data):
        # Round-trip through JSON like the real store
        self.sessions[session_id] = json.loads(json.dumps(data))

    async def delete_session(self, session_id):
        self.sessions.pop(session_id, None)

    async def record_score(self, round_score, max_attempts=5):
        if self.error:
            raise self.error
        for _ in range(max_attempts):
            if self.conflicts:
                self.conflicts -= 1
                continue
            self.stats = merge_round_result(self.stats, round_score)
            return self.stats
        raise StoreConflict()


@pytest.fixture
def make_bank():
    """Factory for banks over other question lists."""
    return MemoryBank


@pytest.fixture
def memory_bank(sample_questions):
    return MemoryBank(sample_questions)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def trivia_config():
    """Engine config for tests."""
    return TriviaConfig(game_length=4, max_history=100, max_fallbacks=3)


@pytest.fixture
def engine(memory_bank, memory_store, trivia_config):
    """Engine wired to in-memory collaborators with a seeded random source."""
    return TriviaEngine(
        bank=memory_bank,
        sessions=memory_store,
        tracker=ScoreTracker(memory_store, max_retries=3),
        config=trivia_config,
        rng=random.Random(1234),
    )


@pytest.fixture
def mock_nats():
    """Mock NATS client."""
    nats = AsyncMock()
    nats.subscribe = AsyncMock(return_value=MagicMock(unsubscribe=AsyncMock()))
    nats.publish = AsyncMock()

    # Setup default request response
    mock_response = MagicMock()
    mock_response.data = json.dumps({"success": True, "data": {"exists": False}}).encode()
    nats.request.return_value = mock_response

    return nats


@pytest.fixture
def plugin_config():
    """Plugin configuration for tests."""
    return {
        "game_length": 3,
        "max_fallbacks": 2,
        "session_ttl": 600,
        "emit_events": True,
    }
