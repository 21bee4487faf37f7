"""
Base Question Bank Interface

Abstract base class for trivia question sources.
"""

from abc import ABC, abstractmethod

from ..question import BankSnapshot


class QuestionBank(ABC):
    """
    Base class for question banks.

    A bank is read once per round start. The returned snapshot is used
    to pick the round's questions and is not consulted again afterwards.
    """

    @abstractmethod
    async def fetch_all(self) -> BankSnapshot:
        """
        Fetch every question the bank currently holds.

        Returns:
            Immutable snapshot of the bank

        Raises:
            StorageError: If the backing store cannot be read
            ConnectionError: If network error occurs
        """
        ...

    async def close(self) -> None:
        """
        Close any resources used by the bank.

        Override this in subclasses that need cleanup.
        """
        pass
