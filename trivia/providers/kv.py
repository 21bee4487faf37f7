"""
Key-Value Question Bank

Reads the question bank stored in the trivia plugin's KV namespace.
"""

import logging

from .base import QuestionBank
from ..question import BankSnapshot

logger = logging.getLogger(__name__)


class KVQuestionBank(QuestionBank):
    """Question bank backed by ``TriviaStorage``'s ``bank`` key."""

    def __init__(self, storage):
        """
        Args:
            storage: TriviaStorage used to read the bank payload
        """
        self.storage = storage

    async def fetch_all(self) -> BankSnapshot:
        data = await self.storage.fetch_bank()
        snapshot = BankSnapshot.from_records(data)
        logger.debug("Loaded %d questions from KV bank", len(snapshot))
        return snapshot
