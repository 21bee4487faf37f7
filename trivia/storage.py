"""
Trivia Storage

Persistence for the trivia plugin through the NATS database service:
sessions and the question bank in the key-value store, round scores in
plugin rows.
"""

import json
import logging
from typing import Any, Dict, Optional

from .errors import StorageError, StoreConflict
from .scoring import AggregateStats

logger = logging.getLogger(__name__)


class TriviaStorage:
    """
    Database operations for trivia persistence via NATS.

    Key-value records under the ``trivia`` plugin namespace:

    - ``bank``: the question bank snapshot (read-only here)
    - ``session:<id>``: per-session round state, written with a TTL so
      abandoned sessions expire

    Row table ``round_scores`` holds one counter per round score. Each
    finished round is a single ``$inc`` on its score's row, so concurrent
    sessions never overwrite each other; the aggregates are folded from
    the rows on read. Rows sharing a score (two sessions creating the
    same counter at once) are summed.
    """

    PLUGIN_NAME = "trivia"

    SUBJECT_KV_GET = "rosey.db.kv.get"
    SUBJECT_KV_SET = "rosey.db.kv.set"
    SUBJECT_KV_DELETE = "rosey.db.kv.delete"

    BANK_KEY = "bank"
    SESSION_PREFIX = "session:"

    SCORES_TABLE = "round_scores"
    SCORES_LIMIT = 1000

    SCHEMAS = {
        SCORES_TABLE: {
            "fields": [
                {"name": "score", "type": "integer", "required": True},
                {"name": "visits", "type": "integer", "required": True},
            ]
        }
    }

    def __init__(self, nats_client, session_ttl: Optional[int] = 3600, timeout: float = 5.0):
        self.nc = nats_client
        self.session_ttl = session_ttl
        self.timeout = timeout

    def _row_subject(self, operation: str) -> str:
        return f"rosey.db.row.{self.PLUGIN_NAME}.{operation}"

    async def register_schemas(self) -> None:
        """Register all table schemas."""
        for table, schema in self.SCHEMAS.items():
            try:
                await self._request(
                    self._row_subject("schema.register"),
                    {"table": table, "schema": schema}
                )
            except StorageError as e:
                logger.error("Failed to register schema for %s: %s", table, e)

    async def _request(self, subject: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send NATS request and parse response."""
        try:
            response = await self.nc.request(
                subject,
                json.dumps(payload).encode(),
                timeout=self.timeout
            )
            result = json.loads(response.data.decode())
        except Exception as e:
            logger.error("NATS request failed (%s): %s", subject, e)
            raise StorageError(f"Request to {subject} failed: {e}") from e

        if not result.get("success"):
            error = result.get("error", {})
            raise StorageError(
                f"DB Error: {error.get('message', 'Unknown error')}", code=error.get("code")
            )

        return result

    # =========================================================================
    # Raw KV operations
    # =========================================================================

    async def kv_get(self, key: str) -> Optional[Any]:
        """Get a value, or None if the key does not exist."""
        result = await self._request(
            self.SUBJECT_KV_GET,
            {"plugin_name": self.PLUGIN_NAME, "key": key}
        )
        data = result.get("data") or {}
        if not data.get("exists"):
            return None
        return data.get("value")

    async def kv_set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        payload: Dict[str, Any] = {
            "plugin_name": self.PLUGIN_NAME,
            "key": key,
            "value": value,
        }
        if ttl_seconds:
            payload["ttl_seconds"] = ttl_seconds

        await self._request(self.SUBJECT_KV_SET, payload)

    async def kv_delete(self, key: str) -> None:
        await self._request(
            self.SUBJECT_KV_DELETE,
            {"plugin_name": self.PLUGIN_NAME, "key": key}
        )

    # =========================================================================
    # Question bank
    # =========================================================================

    async def fetch_bank(self) -> Dict[str, Any]:
        """Read the raw question bank payload (empty dict if none stored)."""
        return await self.kv_get(self.BANK_KEY) or {}

    # =========================================================================
    # Sessions
    # =========================================================================

    async def load_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        return await self.kv_get(f"{self.SESSION_PREFIX}{session_id}")

    async def save_session(self, session_id: str, data: Dict[str, Any]) -> None:
        await self.kv_set(
            f"{self.SESSION_PREFIX}{session_id}", data, ttl_seconds=self.session_ttl
        )

    async def delete_session(self, session_id: str) -> None:
        await self.kv_delete(f"{self.SESSION_PREFIX}{session_id}")

    # =========================================================================
    # Aggregate statistics
    # =========================================================================

    async def _get_row_id(self, table: str, filters: Dict[str, Any]) -> Optional[int]:
        """Find row ID matching filters."""
        result = await self._request(
            self._row_subject("search"),
            {
                "table": table,
                "filters": filters,
                "limit": 1
            }
        )
        rows = result.get("rows", [])
        if rows:
            return rows[0]["id"]
        return None

    async def read_stats(self) -> AggregateStats:
        """Fold every score counter into aggregate stats."""
        result = await self._request(
            self._row_subject("search"),
            {"table": self.SCORES_TABLE, "limit": self.SCORES_LIMIT}
        )

        counts: Dict[int, int] = {}
        for row in result.get("rows", []):
            score = int(row["score"])
            counts[score] = counts.get(score, 0) + int(row.get("visits") or 0)
        return AggregateStats.from_score_counts(counts)

    async def record_score(self, round_score: int, max_attempts: int = 5) -> AggregateStats:
        """
        Count one finished round and return the updated aggregates.

        The counter is bumped with an atomic ``$inc``. If its row is gone
        by the time the update lands, the lookup is repeated.

        Raises:
            StoreConflict: If the counter kept disappearing
            StorageError: If the database service failed
        """
        for attempt in range(1, max_attempts + 1):
            row_id = await self._get_row_id(self.SCORES_TABLE, {"score": round_score})

            if row_id is None:
                await self._request(
                    self._row_subject("insert"),
                    {"table": self.SCORES_TABLE, "data": {"score": round_score, "visits": 1}}
                )
                return await self.read_stats()

            result = await self._request(
                self._row_subject("update"),
                {
                    "table": self.SCORES_TABLE,
                    "id": row_id,
                    "operations": {"visits": {"$inc": 1}}
                }
            )
            if result.get("exists", True):
                return await self.read_stats()

            logger.debug(
                "Score row %s vanished before update (attempt %d/%d)",
                row_id, attempt, max_attempts,
            )

        raise StoreConflict(f"Score update failed after {max_attempts} attempts")
