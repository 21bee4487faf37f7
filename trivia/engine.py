"""
Trivia Round Engine

Interprets one conversational turn at a time. Every turn loads the
session, runs the handler for its intent, and saves the session back.

Phases and the intents that move between them:

    IDLE --start--> AWAITING_ANSWER --answer--> AWAITING_ANSWER (next question)
                                    --answer on last question--> IDLE (round merged)
    AWAITING_ANSWER --quit/restart/too many fallbacks--> AWAITING_*_CONFIRM
    AWAITING_*_CONFIRM --no--> previous phase
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from .config import TriviaConfig
from .errors import (
    AmbiguousSlot,
    CorruptSessionState,
    InsufficientAnswers,
    MalformedSlot,
    RoundError,
    UnrecognizedIntent,
)
from .formatting import Ssml, format_answers, letter, suggestion_chips
from .intents import (
    ANSWER_INTENTS,
    Intent,
    TurnRequest,
    TurnResponse,
    resolve_answer_position,
)
from .question import QuestionType
from .scoring import AggregateStats, ScoreTracker
from .selection import select_questions, shuffle_question
from .session import CONFIRM_PHASES, Phase, Round, SessionState

# Yes/no intents that answer each confirmation
CONFIRM_INTENTS = {
    Phase.AWAITING_HELP_CONFIRM: frozenset({Intent.HELP_YES, Intent.HELP_NO}),
    Phase.AWAITING_RESTART_CONFIRM: frozenset({Intent.RESTART_YES, Intent.RESTART_NO}),
    Phase.AWAITING_QUIT_CONFIRM: frozenset({Intent.QUIT_YES, Intent.QUIT_NO}),
}

YES_NO_CHIPS = ["Yes", "No"]

RoundStartCallback = Optional[Callable[[str, SessionState], Optional[Awaitable[None]]]]
RoundCompleteCallback = Optional[
    Callable[[str, int, int, Optional[AggregateStats]], Optional[Awaitable[None]]]
]


@dataclass
class Turn:
    """Working state of one turn while its handler runs."""

    request: TurnRequest
    intent: Optional[Intent]
    state: SessionState
    prompt: Ssml
    suggestions: List[str] = field(default_factory=list)
    end_conversation: bool = False

    def say(self, text: str) -> "Turn":
        self.prompt.say(text)
        return self

    def pause(self) -> "Turn":
        self.prompt.pause()
        return self

    def close(self) -> None:
        """End the conversation; the session is deleted."""
        self.end_conversation = True
        self.suggestions = []

    def response(self) -> TurnResponse:
        return TurnResponse(
            speech=self.prompt.speech(),
            text=self.prompt.text(),
            suggestions=suggestion_chips(self.suggestions) if self.request.has_screen else None,
            end_conversation=self.end_conversation,
        )


Handler = Callable[[Turn], Awaitable[None]]


class TriviaEngine:
    """
    Round-management engine for one trivia front end.

    Collaborators are injected:

    - ``bank``: a ``QuestionBank``, read once per round start
    - ``sessions``: object with ``load_session``/``save_session``/``delete_session``
    - ``tracker``: ``ScoreTracker`` that merges finished rounds
    """

    def __init__(
        self,
        bank,
        sessions,
        tracker: Optional[ScoreTracker] = None,
        config: Optional[TriviaConfig] = None,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
        on_round_start: RoundStartCallback = None,
        on_round_complete: RoundCompleteCallback = None,
    ):
        self.bank = bank
        self.sessions = sessions
        self.tracker = tracker
        self.config = config or TriviaConfig()
        self.rng = rng or random.Random()
        self.logger = logger or logging.getLogger(__name__)
        self.on_round_start = on_round_start
        self.on_round_complete = on_round_complete

        self._handlers = self._build_handlers()

    def _build_handlers(self) -> Dict[Intent, Handler]:
        handlers: Dict[Intent, Handler] = {
            Intent.START: self._handle_start,
            Intent.DEEPLINK_UNKNOWN: self._handle_deeplink,
            Intent.UNKNOWN: self._handle_fallback,
            Intent.DONT_KNOW: self._handle_fallback,
            Intent.REPEAT: self._handle_repeat,
            Intent.ANSWERS: self._handle_answers,
            Intent.SCORE: self._handle_score,
            Intent.HELP: self._handle_help,
            Intent.HELP_YES: self._handle_help_yes,
            Intent.HELP_NO: self._handle_help_no,
            Intent.HINT: self._handle_hint,
            Intent.QUIT: self._handle_quit,
            Intent.QUIT_YES: self._handle_quit_yes,
            Intent.QUIT_NO: self._handle_quit_no,
            Intent.RESTART: self._handle_restart,
            Intent.RESTART_YES: self._handle_restart_yes,
            Intent.RESTART_NO: self._handle_restart_no,
            Intent.MISTAKEN: self._handle_mistaken,
            Intent.DISAGREE: self._handle_disagree,
            Intent.FEELING_LUCKY: self._handle_feeling_lucky,
        }
        for intent in ANSWER_INTENTS:
            handlers[intent] = self._handle_answer

        missing = [intent.value for intent in Intent if intent not in handlers]
        if missing:
            raise TypeError(f"No handler for intents: {', '.join(missing)}")
        return handlers

    # =========================================================================
    # Turn lifecycle
    # =========================================================================

    async def handle(self, request: TurnRequest) -> TurnResponse:
        """
        Handle one conversational turn.

        Args:
            request: Intent, slots and session id of the turn

        Returns:
            Prompt to send back to the front end
        """
        try:
            intent: Optional[Intent] = Intent.parse(request.intent_name)
        except UnrecognizedIntent as e:
            self.logger.debug("%s (session %s)", e, request.session_id)
            intent = None

        state = await self._load_session(request.session_id)
        turn = Turn(
            request=request,
            intent=intent,
            state=state,
            prompt=Ssml(default_break=self.config.tts_delay),
        )

        # Anything but yes/no abandons a pending confirmation
        if state.phase in CONFIRM_PHASES and intent not in CONFIRM_INTENTS[state.phase]:
            state.resume()

        self.logger.debug(
            "Session %s: %s in %s", request.session_id, request.intent_name, state.phase.value
        )

        handler = self._handlers[intent] if intent else self._handle_fallback
        await handler(turn)

        if turn.end_conversation:
            await self.sessions.delete_session(request.session_id)
        else:
            await self.sessions.save_session(request.session_id, state.to_dict())

        return turn.response()

    async def _load_session(self, session_id: str) -> SessionState:
        data = await self.sessions.load_session(session_id)
        if data is None:
            return SessionState(max_history=self.config.max_history)

        try:
            return SessionState.from_dict(data, max_history=self.config.max_history)
        except CorruptSessionState as e:
            self.logger.warning("Discarding session %s: %s", session_id, e)
            await self.sessions.delete_session(session_id)
            return SessionState(max_history=self.config.max_history)

    async def _notify(self, callback, *args) -> None:
        if not callback:
            return
        try:
            result = callback(*args)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            self.logger.warning(f"Round callback failed: {e}")

    # =========================================================================
    # Round start and completion
    # =========================================================================

    async def _start_round(self, turn: Turn, preface: Optional[str] = None) -> None:
        state = turn.state
        length = self.config.game_length

        try:
            snapshot = await self.bank.fetch_all()
        except Exception as e:
            self.logger.error(f"Failed to fetch questions: {e}")
            self._abort(turn, "Sorry, I couldn't load any trivia questions right now. Please try again later.")
            return

        pool = snapshot.playable()
        try:
            selected = select_questions(pool.questions, length, state.asked_history, self.rng)
            by_id = pool.by_id()
            questions = [by_id[question_id] for question_id in selected]
            answers, position = shuffle_question(questions[0], self.rng)
        except RoundError as e:
            self.logger.warning("Cannot start round for %s: %s", turn.request.session_id, e)
            self._abort(turn, "Sorry, there aren't enough trivia questions to play a game right now.")
            return

        state.start_round(Round(questions), answers, position)
        self.logger.info(
            "Round started for %s: %s", turn.request.session_id, ", ".join(selected)
        )
        await self._notify(self.on_round_start, turn.request.session_id, state)

        turn.say(preface)
        turn.say(
            f"Welcome to {self.config.game_title}! I'll ask you {length} "
            f"question{'s' if length != 1 else ''}. Try to get as many right as you can."
        )
        turn.pause()
        self._ask(turn)

    def _abort(self, turn: Turn, message: str) -> None:
        turn.state.end_round()
        turn.say(message)
        turn.close()

    async def _merge_round(self, turn: Turn) -> int:
        """Merge the round score into the aggregates and leave the round."""
        state = turn.state
        score, length = state.score, state.game_length

        stats = await self.tracker.record_round(score) if self.tracker else None
        self.logger.info(
            "Round ended for %s at question %d/%d with score %d",
            turn.request.session_id, state.current_index + 1, length, score,
        )
        await self._notify(
            self.on_round_complete, turn.request.session_id, score, length, stats
        )

        state.end_round()
        return score

    async def _complete_round(self, turn: Turn) -> None:
        length = turn.state.game_length
        score = await self._merge_round(turn)
        turn.pause()
        turn.say(f"That's the end of the game. You got {score} out of {length} right.")
        if score == length:
            turn.say("A perfect score!")
        turn.say("Would you like to play again?")
        turn.suggestions = ["Play again", "Quit"]

    # =========================================================================
    # Prompts
    # =========================================================================

    def _ask(self, turn: Turn) -> None:
        state = turn.state
        question = state.current_question
        turn.say(f"Question {state.current_index + 1}.")
        if question.type == QuestionType.TRUE_FALSE:
            turn.say(f"True or false: {question.prompt}")
            turn.suggestions = list(state.shuffled_answers)
            return
        turn.say(question.prompt)
        turn.pause()
        turn.say(format_answers(state.shuffled_answers))
        turn.suggestions = list(state.shuffled_answers)

    def _idle_prompt(self, turn: Turn) -> None:
        turn.say("There's no game in progress. Say start to play a new game.")
        turn.suggestions = ["Start", "Quit"]

    def _reask_or_idle(self, turn: Turn) -> None:
        if turn.state.in_round:
            turn.pause()
            self._ask(turn)
        else:
            self._idle_prompt(turn)

    def _help_text(self, turn: Turn) -> None:
        turn.say(
            "I'll read you a question and some possible answers. "
            "Answer with the letter, the number, or the answer itself. "
            "You can also ask me to repeat the question, ask for a hint, "
            "check your score, start over, or quit."
        )

    # =========================================================================
    # Intent handlers
    # =========================================================================

    async def _handle_start(self, turn: Turn) -> None:
        await self._start_round(turn)

    async def _handle_deeplink(self, turn: Turn) -> None:
        await self._start_round(turn, preface="I'm not sure about that, but let's play!")

    async def _handle_answer(self, turn: Turn) -> None:
        state = turn.state
        if state.phase != Phase.AWAITING_ANSWER:
            self._idle_prompt(turn)
            return

        try:
            position = resolve_answer_position(
                turn.intent, turn.request.slots, state.shuffled_answers
            )
        except AmbiguousSlot as e:
            answers = state.shuffled_answers
            options = " or ".join(f"{letter(p)}: {answers[p]}" for p in e.positions)
            turn.say(f"Which one did you mean, {options}?")
            turn.suggestions = [answers[p] for p in e.positions]
            return
        except MalformedSlot as e:
            self.logger.debug("Unresolved answer for %s: %s", turn.request.session_id, e)
            await self._handle_fallback(turn)
            return

        if state.answer(position):
            turn.say("That's right!")
        else:
            correct = state.correct_answer_position
            turn.say(
                f"Sorry, that's not it. The answer was "
                f"{letter(correct)}: {state.correct_answer}."
            )

        if state.is_last_question:
            await self._complete_round(turn)
            return

        next_question = state.round.questions[state.current_index + 1]
        try:
            answers, position = shuffle_question(next_question, self.rng)
        except InsufficientAnswers as e:
            self.logger.warning("Cannot continue round for %s: %s", turn.request.session_id, e)
            self._abort(turn, "Sorry, something is wrong with the next question. Let's play again later.")
            return

        state.advance(answers, position)
        turn.say(f"Your score is {state.score}.")
        turn.pause()
        self._ask(turn)

    async def _handle_fallback(self, turn: Turn) -> None:
        state = turn.state
        if not state.in_round:
            self._idle_prompt(turn)
            return

        count = state.register_fallback()
        if count >= self.config.max_fallbacks:
            state.confirm(Phase.AWAITING_HELP_CONFIRM)
            turn.say("I'm having trouble understanding. Would you like some help?")
            turn.suggestions = list(YES_NO_CHIPS)
            return

        if turn.intent == Intent.DONT_KNOW:
            turn.say("Have a guess! You might get it right.")
        else:
            turn.say("Sorry, I didn't catch that. Which answer do you choose?")
        turn.pause()
        turn.say(format_answers(state.shuffled_answers))
        turn.suggestions = list(state.shuffled_answers)

    async def _handle_repeat(self, turn: Turn) -> None:
        if not turn.state.in_round:
            self._idle_prompt(turn)
            return
        self._ask(turn)

    async def _handle_answers(self, turn: Turn) -> None:
        state = turn.state
        if not state.in_round:
            self._idle_prompt(turn)
            return
        turn.say(f"The answers are: {format_answers(state.shuffled_answers)}")
        turn.suggestions = list(state.shuffled_answers)

    async def _handle_score(self, turn: Turn) -> None:
        state = turn.state
        if not state.in_round:
            self._idle_prompt(turn)
            return
        answered = state.current_index
        turn.say(
            f"You have {state.score} point{'s' if state.score != 1 else ''} "
            f"after {answered} question{'s' if answered != 1 else ''}."
        )
        self._reask_or_idle(turn)

    async def _handle_help(self, turn: Turn) -> None:
        self._help_text(turn)
        self._reask_or_idle(turn)

    async def _handle_help_yes(self, turn: Turn) -> None:
        state = turn.state
        if state.phase != Phase.AWAITING_HELP_CONFIRM:
            await self._handle_fallback(turn)
            return
        state.resume()
        state.fallback_count = 0
        self._help_text(turn)
        self._reask_or_idle(turn)

    async def _handle_help_no(self, turn: Turn) -> None:
        state = turn.state
        if state.phase != Phase.AWAITING_HELP_CONFIRM:
            await self._handle_fallback(turn)
            return
        state.resume()
        state.fallback_count = 0
        turn.say("OK, let's keep going.")
        self._reask_or_idle(turn)

    async def _handle_hint(self, turn: Turn) -> None:
        state = turn.state
        if not state.in_round:
            self._idle_prompt(turn)
            return
        wrong = [
            i for i in range(len(state.shuffled_answers))
            if i != state.correct_answer_position
        ]
        position = self.rng.choice(wrong)
        turn.say(
            f"Here's a hint: it's not {letter(position)}, "
            f"{state.shuffled_answers[position]}."
        )
        turn.suggestions = list(state.shuffled_answers)

    async def _handle_quit(self, turn: Turn) -> None:
        turn.state.confirm(Phase.AWAITING_QUIT_CONFIRM)
        turn.say("Are you sure you want to quit?")
        turn.suggestions = list(YES_NO_CHIPS)

    async def _handle_quit_yes(self, turn: Turn) -> None:
        state = turn.state
        if state.phase != Phase.AWAITING_QUIT_CONFIRM:
            await self._handle_fallback(turn)
            return

        state.resume()
        if state.in_round:
            score = await self._merge_round(turn)
            turn.say(f"You scored {score}.")
        turn.say(f"Thanks for playing {self.config.game_title}. Goodbye!")
        turn.close()

    async def _handle_quit_no(self, turn: Turn) -> None:
        state = turn.state
        if state.phase != Phase.AWAITING_QUIT_CONFIRM:
            await self._handle_fallback(turn)
            return
        state.resume()
        turn.say("OK, let's continue.")
        self._reask_or_idle(turn)

    async def _handle_restart(self, turn: Turn) -> None:
        turn.state.confirm(Phase.AWAITING_RESTART_CONFIRM)
        turn.say("Do you want to start a new game?")
        turn.suggestions = list(YES_NO_CHIPS)

    async def _handle_restart_yes(self, turn: Turn) -> None:
        state = turn.state
        if state.phase not in (Phase.AWAITING_RESTART_CONFIRM, Phase.IDLE):
            await self._handle_fallback(turn)
            return
        state.end_round()
        await self._start_round(turn, preface="OK, here's a new game.")

    async def _handle_restart_no(self, turn: Turn) -> None:
        state = turn.state
        if state.phase == Phase.IDLE:
            turn.say(f"Thanks for playing {self.config.game_title}. Goodbye!")
            turn.close()
            return
        if state.phase != Phase.AWAITING_RESTART_CONFIRM:
            await self._handle_fallback(turn)
            return
        state.resume()
        turn.say("OK, let's continue.")
        self._reask_or_idle(turn)

    async def _handle_mistaken(self, turn: Turn) -> None:
        if not turn.state.in_round:
            self._idle_prompt(turn)
            return
        turn.say("No problem, let's try that again.")
        self._reask_or_idle(turn)

    async def _handle_disagree(self, turn: Turn) -> None:
        state = turn.state
        if not state.in_round:
            self._idle_prompt(turn)
            return
        if state.last_answer:
            turn.say(
                f"I double checked, and the answer to the last question "
                f"was {state.last_answer.correct_answer}."
            )
        else:
            turn.say("We haven't finished a question yet.")
        self._reask_or_idle(turn)

    async def _handle_feeling_lucky(self, turn: Turn) -> None:
        state = turn.state
        if not state.in_round:
            self._idle_prompt(turn)
            return
        position = self.rng.randrange(len(state.shuffled_answers))
        turn.say(
            f"Feeling lucky? I'd go with {letter(position)}: "
            f"{state.shuffled_answers[position]}. Or pick your own."
        )
        turn.suggestions = list(state.shuffled_answers)
