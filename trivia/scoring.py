"""
Trivia Score Aggregation

Merges finished round scores into the statistics shared by all sessions.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

from .errors import StorageError, StoreConflict


@dataclass(frozen=True)
class AggregateStats:
    """
    Statistics across every finished round.

    Attributes:
        highest_score: Best round score seen
        lowest_score: Worst round score seen (meaningless until first visit)
        total_score: Sum of all round scores
        visit_count: Number of rounds merged
        score_counts: Histogram of round score -> number of rounds
    """

    highest_score: int = 0
    lowest_score: int = 0
    total_score: int = 0
    visit_count: int = 0
    score_counts: Dict[int, int] = field(default_factory=dict)

    @property
    def average_score(self) -> float:
        if self.visit_count == 0:
            return 0.0
        return self.total_score / self.visit_count

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the store's key names."""
        return {
            "highestScore": self.highest_score,
            "lowestScore": self.lowest_score,
            "totalScore": self.total_score,
            "averageScore": self.average_score,
            "visits": self.visit_count,
            "scores": {str(k): v for k, v in sorted(self.score_counts.items())},
        }

    @classmethod
    def from_score_counts(cls, counts: Mapping[int, int]) -> "AggregateStats":
        """Fold a score histogram into aggregates, lowest score first."""
        stats = cls()
        for score in sorted(counts):
            if counts[score] > 0:
                stats = merge_round_result(stats, score, rounds=counts[score])
        return stats

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "AggregateStats":
        if not data:
            return cls()
        return cls(
            highest_score=int(data.get("highestScore", 0)),
            lowest_score=int(data.get("lowestScore", 0)),
            total_score=int(data.get("totalScore", 0)),
            visit_count=int(data.get("visits", 0)),
            score_counts={
                int(k): int(v) for k, v in (data.get("scores") or {}).items()
            },
        )


def merge_round_result(
    stats: AggregateStats, round_score: int, rounds: int = 1
) -> AggregateStats:
    """
    Merge finished rounds into the aggregate statistics.

    Args:
        stats: Aggregates so far
        round_score: Score of the round
        rounds: How many rounds finished with this score

    The average is always derived from the new total and visit count,
    never updated incrementally.
    """
    first_visit = stats.visit_count == 0

    counts = dict(stats.score_counts)
    counts[round_score] = counts.get(round_score, 0) + rounds

    return replace(
        stats,
        total_score=stats.total_score + round_score * rounds,
        visit_count=stats.visit_count + rounds,
        highest_score=round_score if first_visit else max(stats.highest_score, round_score),
        lowest_score=round_score if first_visit else min(stats.lowest_score, round_score),
        score_counts=counts,
    )


class ScoreTracker:
    """
    Applies round results to the shared statistics store.

    The store applies each score atomically and retries when its record
    moves underneath it; the tracker decides what happens when the store
    gives up or cannot be reached. Neither ever blocks round completion.
    """

    def __init__(self, store, max_retries: int = 5, logger: Optional[logging.Logger] = None):
        """
        Args:
            store: Object with ``record_score(round_score, max_attempts)``
            max_retries: Write attempts before the result is dropped
            logger: Logger to report with (defaults to module logger)
        """
        self.store = store
        self.max_retries = max_retries
        self.logger = logger or logging.getLogger(__name__)

    async def record_round(self, round_score: int) -> Optional[AggregateStats]:
        """
        Merge a round score into the stored aggregates.

        Returns:
            The merged stats, or None if the result was dropped
        """
        try:
            stats = await self.store.record_score(round_score, max_attempts=self.max_retries)
        except StoreConflict:
            self.logger.warning(
                "Dropping round score %d after %d conflicting writes",
                round_score,
                self.max_retries,
            )
            return None
        except StorageError as e:
            self.logger.error("Dropping round score %d: %s", round_score, e)
            return None

        self.logger.info(
            "Round score %d merged: %d rounds, average %.2f",
            round_score,
            stats.visit_count,
            stats.average_score,
        )
        return stats
