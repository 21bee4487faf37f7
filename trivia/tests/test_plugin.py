"""
Tests for trivia plugin integration.
"""

import json
import pytest
from unittest.mock import AsyncMock, MagicMock

from trivia.intents import TurnResponse
from trivia.plugin import TriviaPlugin
from trivia.providers.kv import KVQuestionBank
from trivia.providers.opentdb import OpenTDBProvider
from trivia.scoring import AggregateStats


def make_msg(data, reply="reply.subject"):
    """Create mock NATS message."""
    msg = MagicMock()
    msg.data = data if isinstance(data, bytes) else json.dumps(data).encode()
    msg.reply = reply
    msg.respond = AsyncMock()
    return msg


def reply_of(msg):
    return json.loads(msg.respond.call_args[0][0].decode())


def published_subjects(mock_nats):
    return [call[0][0] for call in mock_nats.publish.call_args_list]


class TestTriviaPluginInit:
    """Test plugin initialization."""

    def test_init_defaults(self, mock_nats):
        """Test default initialization."""
        plugin = TriviaPlugin(mock_nats)

        assert plugin.NAMESPACE == "trivia"
        assert plugin.VERSION == "2.0.0"
        assert plugin.config.game_length == 4
        assert plugin.config.max_fallbacks == 3
        assert isinstance(plugin.bank, KVQuestionBank)

    def test_init_with_config(self, mock_nats, plugin_config):
        """Test initialization with custom config."""
        plugin = TriviaPlugin(mock_nats, plugin_config)

        assert plugin.config.game_length == 3
        assert plugin.config.max_fallbacks == 2
        assert plugin.storage.session_ttl == 600
        assert plugin.engine.config is plugin.config

    def test_init_opentdb_source(self, mock_nats):
        """Test OpenTDB can be chosen as the question source."""
        plugin = TriviaPlugin(mock_nats, {"question_source": "opentdb", "bank_size": 20})

        assert isinstance(plugin.bank, OpenTDBProvider)
        assert plugin.bank.bank_size == 20


class TestTriviaPluginLifecycle:
    """Test plugin lifecycle methods."""

    @pytest.mark.asyncio
    async def test_initialize_subscribes(self, mock_nats):
        """Test initialize sets up subscriptions."""
        plugin = TriviaPlugin(mock_nats)

        await plugin.initialize()

        assert plugin._initialized is True
        mock_nats.subscribe.assert_called_once()
        assert mock_nats.subscribe.call_args[0][0] == "rosey.command.trivia.turn"
        assert len(plugin._subscriptions) == 1
        assert mock_nats.request.call_args_list[0][0][0] == "rosey.db.row.trivia.schema.register"

    @pytest.mark.asyncio
    async def test_shutdown_cleanup(self, mock_nats):
        """Test shutdown cleans up resources."""
        plugin = TriviaPlugin(mock_nats)
        plugin.bank = MagicMock(close=AsyncMock())
        await plugin.initialize()
        subscription = plugin._subscriptions[0]

        await plugin.shutdown()

        assert plugin._initialized is False
        assert len(plugin._subscriptions) == 0
        subscription.unsubscribe.assert_called_once()
        plugin.bank.close.assert_called_once()


class TestHandleTurn:
    """Test the turn request handler."""

    @pytest.fixture
    def plugin(self, mock_nats, plugin_config, memory_bank):
        plugin = TriviaPlugin(mock_nats, plugin_config)
        plugin.engine.bank = memory_bank
        return plugin

    @pytest.mark.asyncio
    async def test_start_success(self, plugin, mock_nats):
        """Test a start turn replies with the first question."""
        msg = make_msg({"intent": "game.start", "session_id": "abc", "has_screen": True})

        await plugin._handle_turn(msg)

        response = reply_of(msg)
        assert response["success"] is True
        result = response["result"]
        assert "Question 1." in result["text"]
        assert result["speech"].startswith("<speak>")
        assert len(result["suggestions"]) == 4
        assert result["end_conversation"] is False

        # Session saved under its key
        set_calls = [c for c in mock_nats.request.call_args_list if c[0][0] == "rosey.db.kv.set"]
        payload = json.loads(set_calls[-1][0][1].decode())
        assert payload["key"] == "session:abc"
        assert payload["ttl_seconds"] == 600
        assert payload["value"]["phase"] == "awaiting_answer"

        assert "trivia.round.started" in published_subjects(mock_nats)

    @pytest.mark.asyncio
    async def test_voice_client_gets_no_suggestions(self, plugin):
        """Test chips are omitted for clients without a screen."""
        msg = make_msg({"intent": "game.start", "session_id": "abc"})

        await plugin._handle_turn(msg)

        assert "suggestions" not in reply_of(msg)["result"]

    @pytest.mark.asyncio
    async def test_empty_bank(self, mock_nats, plugin_config):
        """Test an empty stored bank ends the conversation politely."""
        plugin = TriviaPlugin(mock_nats, plugin_config)
        msg = make_msg({"intent": "game.start", "session_id": "abc"})

        await plugin._handle_turn(msg)

        result = reply_of(msg)["result"]
        assert result["end_conversation"] is True
        assert "aren't enough trivia questions" in result["text"]

    @pytest.mark.asyncio
    async def test_invalid_json(self, plugin):
        """Test garbage payloads get an error reply."""
        msg = make_msg(b"not json")

        await plugin._handle_turn(msg)

        response = reply_of(msg)
        assert response["success"] is False
        assert response["error"] == "Invalid message"

    @pytest.mark.asyncio
    async def test_missing_session_id(self, plugin):
        """Test turns must name their session."""
        msg = make_msg({"intent": "game.start"})

        await plugin._handle_turn(msg)

        response = reply_of(msg)
        assert response["success"] is False
        assert response["error"] == "Missing session_id"

    @pytest.mark.asyncio
    async def test_engine_error(self, plugin):
        """Test engine failures get an error reply."""
        plugin.engine.handle = AsyncMock(side_effect=RuntimeError("boom"))
        msg = make_msg({"intent": "game.start", "session_id": "abc"})

        await plugin._handle_turn(msg)

        response = reply_of(msg)
        assert response["success"] is False
        assert "something went wrong" in response["error"]

    @pytest.mark.asyncio
    async def test_storage_failure(self, plugin, mock_nats):
        """Test an unreachable database gets an error reply."""
        mock_nats.request.side_effect = TimeoutError("no responders")
        msg = make_msg({"intent": "game.start", "session_id": "abc"})

        await plugin._handle_turn(msg)

        assert reply_of(msg)["success"] is False

    @pytest.mark.asyncio
    async def test_args_passed_as_slots(self, plugin):
        """Test args reach the engine as slots."""
        plugin.engine.handle = AsyncMock(return_value=TurnResponse(speech="<speak></speak>", text=""))
        msg = make_msg({
            "intent": "game.choice.value",
            "session_id": "abc",
            "args": {"answer": "2"},
        })

        await plugin._handle_turn(msg)

        request = plugin.engine.handle.call_args[0][0]
        assert request.intent_name == "game.choice.value"
        assert request.slots == {"answer": "2"}
        assert request.has_screen is False

    @pytest.mark.asyncio
    async def test_no_reply_subject(self, plugin):
        """Test fire-and-forget turns are still handled."""
        msg = make_msg({"intent": "game.start", "session_id": "abc"}, reply=None)

        await plugin._handle_turn(msg)

        msg.respond.assert_not_called()


class TestEvents:
    """Test round events."""

    @pytest.mark.asyncio
    async def test_round_completed_event(self, mock_nats, plugin_config):
        """Test the completion event carries the score and stats."""
        plugin = TriviaPlugin(mock_nats, plugin_config)

        await plugin._on_round_complete("abc", 2, 3, AggregateStats(visit_count=1, total_score=2))

        subject, data = mock_nats.publish.call_args[0]
        event = json.loads(data.decode())
        assert subject == "trivia.round.completed"
        assert event["event"] == "trivia.round.completed"
        assert event["score"] == 2
        assert event["game_length"] == 3
        assert event["stats"]["visits"] == 1
        assert "timestamp" in event

    @pytest.mark.asyncio
    async def test_events_disabled(self, mock_nats, memory_bank):
        """Test no events are published when disabled."""
        plugin = TriviaPlugin(mock_nats, {"emit_events": False})
        plugin.engine.bank = memory_bank

        await plugin._handle_turn(make_msg({"intent": "game.start", "session_id": "abc"}))

        mock_nats.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_dropped_stats_reported_as_null(self, mock_nats, plugin_config):
        """Test a completion without merged stats."""
        plugin = TriviaPlugin(mock_nats, plugin_config)

        await plugin._on_round_complete("abc", 0, 3, None)

        event = json.loads(mock_nats.publish.call_args[0][1].decode())
        assert event["stats"] is None
