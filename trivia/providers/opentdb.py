"""
Open Trivia Database Provider

Fetches trivia questions from the Open Trivia Database API.
https://opentdb.com/
"""

import hashlib
import html
import logging
from typing import Optional

import httpx

from .base import QuestionBank
from ..question import BankSnapshot, Question

logger = logging.getLogger(__name__)


# OpenTDB response codes
RESPONSE_SUCCESS = 0
RESPONSE_NO_RESULTS = 1
RESPONSE_INVALID_PARAMETER = 2
RESPONSE_TOKEN_NOT_FOUND = 3
RESPONSE_TOKEN_EMPTY = 4
RESPONSE_RATE_LIMIT = 5

RESPONSE_MESSAGES = {
    RESPONSE_SUCCESS: "Success",
    RESPONSE_NO_RESULTS: "No results available for query",
    RESPONSE_INVALID_PARAMETER: "Invalid parameter",
    RESPONSE_TOKEN_NOT_FOUND: "Session token not found",
    RESPONSE_TOKEN_EMPTY: "Token has exhausted all questions",
    RESPONSE_RATE_LIMIT: "Too many requests",
}


class OpenTDBError(Exception):
    """Error from Open Trivia Database API."""

    def __init__(self, code: int, message: str = None):
        self.code = code
        self.message = message or RESPONSE_MESSAGES.get(code, "Unknown error")
        super().__init__(f"OpenTDB error {code}: {self.message}")


class OpenTDBProvider(QuestionBank):
    """
    Open Trivia Database question bank.

    API Documentation: https://opentdb.com/api_config.php

    Each ``fetch_all()`` pulls a fresh batch of ``bank_size`` random
    questions, which serves as the bank snapshot for one round start.
    """

    BASE_URL = "https://opentdb.com/api.php"
    MAX_AMOUNT = 50

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        bank_size: int = MAX_AMOUNT,
        category: Optional[int] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize OpenTDB provider.

        Args:
            bank_size: Questions per fetch (1-50)
            category: Optional OpenTDB category ID
            timeout: HTTP request timeout in seconds
        """
        self.bank_size = min(self.MAX_AMOUNT, max(1, bank_size))
        self.category = category
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None
        self.logger = logging.getLogger(f"{__name__}.OpenTDBProvider")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def fetch_all(self) -> BankSnapshot:
        """
        Fetch a batch of questions from OpenTDB.

        Raises:
            OpenTDBError: If API returns error
            httpx.HTTPError: If network error occurs
        """
        client = await self._get_client()

        params = {"amount": self.bank_size}
        if self.category is not None:
            params["category"] = self.category

        self.logger.debug(f"Fetching questions with params: {params}")

        response = await client.get(self.BASE_URL, params=params)
        response.raise_for_status()

        data = response.json()

        response_code = data.get("response_code", 0)
        if response_code != RESPONSE_SUCCESS:
            raise OpenTDBError(response_code)

        questions = tuple(self._parse_question(q) for q in data.get("results", []))

        self.logger.debug(f"Fetched {len(questions)} questions")
        return BankSnapshot(questions)

    def _parse_question(self, data: dict) -> Question:
        """
        Parse OpenTDB response into Question object.

        Args:
            data: Raw question data from API

        Returns:
            Question object
        """
        # Decode HTML entities
        prompt = html.unescape(data["question"])
        correct_answer = html.unescape(data["correct_answer"])
        distractors = tuple(html.unescape(a) for a in data["incorrect_answers"])
        category = html.unescape(data.get("category", "")) or None

        # Stable across processes so session history still matches
        question_id = hashlib.sha1(prompt.encode("utf-8")).hexdigest()[:12]

        return Question(
            id=question_id,
            prompt=prompt,
            correct_answer=correct_answer,
            distractors=distractors,
            category=category,
        )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
