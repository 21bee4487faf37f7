"""
Trivia Plugin

Conversational trivia quiz served over NATS. A voice/text front end
sends one request per turn with the recognised intent and its slots;
the plugin runs the round engine and replies with the next prompt.

NATS Subjects:
    Subscribe:
        rosey.command.trivia.turn - Handle one conversational turn (request/reply)
    Publish:
        trivia.round.started - Event when a round starts
        trivia.round.completed - Event when a round ends and is scored
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from nats.aio.client import Client as NATS

from .config import TriviaConfig
from .engine import TriviaEngine
from .intents import TurnRequest
from .providers.base import QuestionBank
from .providers.kv import KVQuestionBank
from .providers.opentdb import OpenTDBProvider
from .scoring import AggregateStats, ScoreTracker
from .session import SessionState
from .storage import TriviaStorage

logger = logging.getLogger(__name__)


class TriviaPlugin:
    """
    Trivia quiz plugin.

    Owns the engine and its collaborators: the KV-backed storage for
    sessions and statistics, the question bank, and the score tracker.

    Request format (``rosey.command.trivia.turn``):
        {
            "intent": "game.choice.value",
            "args": {"answer": "2", "raw_text": "the second one"},
            "session_id": "abc123",
            "has_screen": true
        }
    """

    # Plugin metadata
    NAMESPACE = "trivia"
    VERSION = "2.0.0"
    DESCRIPTION = "Conversational trivia quiz rounds"

    # NATS subjects - Commands
    SUBJECT_TURN = "rosey.command.trivia.turn"

    # NATS subjects - Events
    EVENT_ROUND_STARTED = "trivia.round.started"
    EVENT_ROUND_COMPLETED = "trivia.round.completed"

    def __init__(self, nats_client: NATS, config: Optional[Dict[str, Any]] = None):
        """
        Initialize trivia plugin.

        Args:
            nats_client: Connected NATS client
            config: Plugin configuration dict
        """
        self.nats = nats_client
        self.config = TriviaConfig.from_dict(config)
        self.logger = logging.getLogger(f"{__name__}.{self.NAMESPACE}")
        self._initialized = False
        self._subscriptions: List[Any] = []

        self.storage = TriviaStorage(self.nats, session_ttl=self.config.session_ttl)
        self.bank = self._create_bank()
        self.tracker = ScoreTracker(
            self.storage, max_retries=self.config.stats_max_retries, logger=self.logger
        )
        self.engine = TriviaEngine(
            bank=self.bank,
            sessions=self.storage,
            tracker=self.tracker,
            config=self.config,
            logger=self.logger,
            on_round_start=self._on_round_start,
            on_round_complete=self._on_round_complete,
        )

    def _create_bank(self) -> QuestionBank:
        if self.config.question_source == "opentdb":
            return OpenTDBProvider(
                bank_size=self.config.bank_size, category=self.config.category
            )
        return KVQuestionBank(self.storage)

    async def initialize(self) -> None:
        """
        Initialize plugin and subscribe to NATS subjects.
        """
        self.logger.info(f"Initializing {self.NAMESPACE} plugin v{self.VERSION}")

        await self.storage.register_schemas()

        sub_turn = await self.nats.subscribe(self.SUBJECT_TURN, cb=self._handle_turn)
        self._subscriptions.append(sub_turn)

        self._initialized = True
        self.logger.info(f"Plugin initialized. Subscribed to: {self.SUBJECT_TURN}")

    async def shutdown(self) -> None:
        """
        Shutdown plugin and cleanup.
        """
        self.logger.info(f"Shutting down {self.NAMESPACE} plugin")

        for sub in self._subscriptions:
            try:
                await sub.unsubscribe()
            except Exception as e:
                self.logger.warning(f"Error unsubscribing: {e}")
        self._subscriptions.clear()

        await self.bank.close()

        self._initialized = False
        self.logger.info("Plugin shutdown complete")

    # =========================================================================
    # NATS Command Handlers
    # =========================================================================

    async def _handle_turn(self, msg) -> None:
        """
        Handle one conversational turn.

        Response format:
            {
                "success": true,
                "result": {
                    "speech": "<speak>...</speak>",
                    "text": "...",
                    "suggestions": ["..."],   # only when has_screen
                    "end_conversation": false
                }
            }
        """
        try:
            data = json.loads(msg.data.decode())
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self.logger.error(f"Invalid message format: {e}")
            if msg.reply:
                await self._respond(msg, {"success": False, "error": "Invalid message"})
            return

        session_id = data.get("session_id")
        if not session_id:
            if msg.reply:
                await self._respond(msg, {"success": False, "error": "Missing session_id"})
            return

        args = data.get("args")
        request = TurnRequest(
            intent_name=str(data.get("intent", "")),
            session_id=str(session_id),
            slots=args if isinstance(args, dict) else {},
            has_screen=bool(data.get("has_screen", False)),
        )

        try:
            response = await self.engine.handle(request)
        except Exception as e:
            self.logger.error(f"Error handling {request.intent_name} for {session_id}: {e}", exc_info=True)
            if msg.reply:
                await self._respond(msg, {
                    "success": False,
                    "error": "Sorry, something went wrong. Please try again.",
                })
            return

        if msg.reply:
            await self._respond(msg, {"success": True, "result": response.to_dict()})

    # =========================================================================
    # Engine Callbacks
    # =========================================================================

    async def _on_round_start(self, session_id: str, state: SessionState) -> None:
        if self.config.emit_events:
            await self._emit_event(self.EVENT_ROUND_STARTED, {
                "session_id": session_id,
                "question_ids": state.round.question_ids,
            })

    async def _on_round_complete(
        self,
        session_id: str,
        score: int,
        game_length: int,
        stats: Optional[AggregateStats],
    ) -> None:
        if self.config.emit_events:
            await self._emit_event(self.EVENT_ROUND_COMPLETED, {
                "session_id": session_id,
                "score": score,
                "game_length": game_length,
                "stats": stats.to_dict() if stats else None,
            })

    # =========================================================================
    # Helper Methods
    # =========================================================================

    async def _respond(self, msg, data: Dict[str, Any]) -> None:
        """Send JSON response to NATS message."""
        try:
            await msg.respond(json.dumps(data).encode())
        except Exception as e:
            self.logger.error(f"Error sending response: {e}")

    async def _emit_event(self, event_type: str, data: Dict[str, Any]) -> None:
        """Emit a NATS event."""
        event_data = {
            "event": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **data,
        }
        try:
            await self.nats.publish(event_type, json.dumps(event_data).encode())
        except Exception as e:
            self.logger.debug(f"Could not publish event {event_type}: {e}")
