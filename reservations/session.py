"""Per-conversation reservation session — drives the booking FSM.

Each browser conversation gets a ReservationSession that:
  1. Holds the ReservationDraft, filled one field per step
  2. Tracks the current ConversationStep in the fixed question sequence
  3. Keeps the append-only transcript of agent and user turns
  4. Parses each finalized utterance (from STT) with the fuzzy parsers
  5. Runs the weather lookup and the save against its collaborators
  6. Returns the agent's next line (for TTS) after each utterance

Sessions share nothing: the host owns one object per conversation and
passes it around explicitly.
"""

from __future__ import annotations

import logging
import secrets
import time
from datetime import date
from typing import Any, Awaitable, Callable, Optional

from reservations.config import settings
from reservations.debug_events import EventBroadcaster
from reservations.errors import ConfigurationError, ExternalServiceError, ValidationError
from reservations.models.conversation import ConversationStep, ConversationTurn, Sender
from reservations.models.reservation import Reservation, ReservationDraft
from reservations.models.weather import SeatingPreference, WeatherInsight
from reservations.parsing import (
    Intent,
    detect_intent,
    local_today,
    parse_booking_date,
    parse_booking_time,
    parse_guest_count,
)
from reservations.storage.base import BookingStore
from reservations.storage.memory import InMemoryBookingStore
from reservations.validation import validate_request
from reservations.weather.normalize import seating_for_category
from reservations.weather.provider import OpenWeatherMapProvider
from reservations.weather.service import WeatherService
from reservations.workflows.restaurant_booking import (
    FIRST_STEP,
    GREETING_TEXT,
    REPEAT_TEXT,
    STEPS,
    next_step,
)

log = logging.getLogger("reservations.session")

RESTART_KEYWORD = "restart"

# Bookings are only saved with weather attached
WEATHER_RETRY_TEXT = (
    "I need the weather before I can save the booking. "
    "Say yes to try again, or restart to begin again."
)

Step = ConversationStep
StepHandler = Callable[[str], Awaitable[Optional[str]]]


def redact_pii(value: str) -> str:
    """Mask PII for logging — show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


def format_date_for_speech(value: date) -> str:
    """date(2026, 12, 20) -> 'December 20, 2026'."""
    return f"{value:%B} {value.day}, {value.year}"


# ── Session registry ─────────────────────────────────────────────

_active_sessions: dict[str, "ReservationSession"] = {}


def register_session(session: "ReservationSession") -> str:
    """Register a session and return its unique ID."""
    session_id = secrets.token_urlsafe(18)
    session._session_id = session_id
    session._started_at = time.time()
    _active_sessions[session_id] = session
    log.info("Session registered: %s", session_id)
    return session_id


def unregister_session(session_id: str) -> None:
    _active_sessions.pop(session_id, None)
    log.info("Session unregistered: %s", session_id)


def get_active_sessions() -> dict[str, "ReservationSession"]:
    return _active_sessions


def get_session(session_id: str) -> "ReservationSession | None":
    return _active_sessions.get(session_id)


class ReservationSession:
    """One caller's reservation conversation.

    Typical lifecycle::

        session = ReservationSession(weather_service=weather, booking_store=store)
        # → TTS speaks session.agent_message (the greeting)

        while session.current_step is not ConversationStep.COMPLETE:
            reply = await session.handle_utterance(final_transcript)
            # → TTS speaks reply

    Weather and save calls are awaited inside ``handle_utterance``. A
    restart while one is in flight bumps the generation counter, and the
    late result is dropped instead of being written into the fresh draft.
    """

    def __init__(
        self,
        weather_service: Optional[WeatherService] = None,
        booking_store: Optional[BookingStore] = None,
        default_city: str = "",
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._weather = weather_service or WeatherService(OpenWeatherMapProvider())
        self._store = booking_store or InMemoryBookingStore()
        self._default_city = default_city or settings.default_city
        self._today = today or local_today

        # Registry metadata (set by register_session)
        self._session_id: str = ""
        self._started_at: float = 0.0

        self._generation = 0
        self._bookings: list[Reservation] = []
        self._broadcaster: EventBroadcaster | None = None

        self._handlers: dict[Step, StepHandler] = {
            Step.GREETING: self._handle_greeting,
            Step.ASK_GUESTS: self._handle_guests,
            Step.ASK_DATE: self._handle_date,
            Step.ASK_TIME: self._handle_time,
            Step.ASK_CUISINE: self._handle_cuisine,
            Step.ASK_SPECIAL: self._handle_special,
            Step.CONFIRMATION: self._handle_confirmation,
            Step.COMPLETE: self._handle_complete,
        }

        self._init_conversation()

    def _init_conversation(self) -> None:
        self._step: Step = FIRST_STEP
        self._draft = ReservationDraft(city=self._default_city)
        self._transcript: list[ConversationTurn] = []
        self._agent_message = ""
        self._is_saving = False
        self._last_error: str | None = None
        self._say(GREETING_TEXT)

    # ── Public API ────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def current_step(self) -> Step:
        return self._step

    @property
    def draft(self) -> ReservationDraft:
        """Snapshot of the in-progress reservation."""
        return self._draft.model_copy(deep=True)

    @property
    def transcript(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._transcript)

    @property
    def agent_message(self) -> str:
        """The agent's latest line (what the speech adapter should say)."""
        return self._agent_message

    @property
    def bookings(self) -> list[Reservation]:
        """Persisted reservations, newest first."""
        return list(self._bookings)

    @property
    def is_saving(self) -> bool:
        return self._is_saving

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def generation(self) -> int:
        return self._generation

    def attach_broadcaster(self, broadcaster: EventBroadcaster) -> None:
        """Attach an event broadcaster for live transcript views."""
        self._broadcaster = broadcaster

    def _emit_event(self, event_type: str, data: dict[str, Any]) -> None:
        if self._broadcaster:
            self._broadcaster.emit(event_type, self._step.value, data)

    async def handle_utterance(self, text: str) -> str:
        """Process one finalized utterance and return the agent's reply.

        Empty input asks the user to repeat without touching the step.
        Any utterance containing "restart" resets the whole conversation.
        """
        cleaned = (text or "").strip()
        if not cleaned:
            return self._say(REPEAT_TEXT)

        if RESTART_KEYWORD in cleaned.lower():
            self.reset()
            return self._agent_message

        self._append(Sender.USER, cleaned)

        if not STEPS[self._step].user_driven:
            # WEATHER_CHECK / SAVE in flight for an earlier utterance
            return self._say("One moment, I'm still working on your reservation.")

        reply = await self._handlers[self._step](cleaned)
        if reply is None:
            return self._agent_message
        return self._say(reply)

    def reset(self) -> None:
        """Discard the draft and transcript and start over from the greeting."""
        self._generation += 1
        log.info("Session %s restarted (generation %d)", self._session_id, self._generation)
        self._emit_event("restart", {"generation": self._generation})
        self._init_conversation()

    async def refresh_bookings(self) -> list[Reservation]:
        """Reload the persisted bookings list from the store."""
        try:
            self._bookings = await self._store.list()
        except Exception as e:
            log.warning("Failed to load bookings: %s", e)
        return self.bookings

    def to_dict(self, detail: bool = False) -> dict[str, Any]:
        """Serialize session state for the API.

        With detail=False: summary suitable for listing.
        With detail=True: adds the full transcript and bookings.
        """
        d: dict[str, Any] = {
            "session_id": self._session_id,
            "started_at": self._started_at,
            "current_step": self._step.value,
            "agent_message": self._agent_message,
            "is_saving": self._is_saving,
            "last_error": self._last_error,
            "draft": self._draft.model_dump(mode="json", by_alias=True),
        }
        if detail:
            d["transcript"] = [t.model_dump(mode="json") for t in self._transcript]
            d["bookings"] = [b.model_dump(mode="json", by_alias=True) for b in self._bookings]
            if self._broadcaster:
                d["event_log"] = self._broadcaster.history
        return d

    # ── Internal: transcript & transitions ───────────────────

    def _append(self, sender: Sender, text: str) -> ConversationTurn:
        turn = ConversationTurn(sender=sender, text=text)
        self._transcript.append(turn)
        if sender is Sender.AGENT:
            self._agent_message = text
        self._emit_event("turn", {"sender": sender.value, "text": text})
        return turn

    def _say(self, text: str) -> str:
        self._append(Sender.AGENT, text)
        return text

    def _transition(self, to: Step) -> None:
        if to is self._step:
            return
        log.info("FSM advance: %s → %s (%s)", self._step.value, to.value, STEPS[to].name)
        self._emit_event("transition", {"from": self._step.value, "to": to.value})
        self._step = to

    def _advance(self) -> str:
        """Move to the next step and return its prompt."""
        self._transition(next_step(self._step))
        return STEPS[self._step].prompt.format(customer_name=self._draft.customer_name)

    def _reprompt(self) -> str:
        return STEPS[self._step].reprompt

    def _is_stale(self, generation: int) -> bool:
        if generation == self._generation:
            return False
        log.info(
            "Discarding result from generation %d (current %d)",
            generation, self._generation,
        )
        self._emit_event("discarded", {"generation": generation})
        return True

    # ── Internal: step handlers ──────────────────────────────

    async def _handle_greeting(self, text: str) -> str:
        self._draft.customer_name = text
        log.info("Customer name captured: %s", redact_pii(text))
        return self._advance()

    async def _handle_guests(self, text: str) -> str:
        guests = parse_guest_count(text)
        if guests is None:
            return self._reprompt()
        self._draft.number_of_guests = guests
        return self._advance()

    async def _handle_date(self, text: str) -> str:
        booking_date = parse_booking_date(text, today=self._today())
        if booking_date is None:
            return self._reprompt()
        self._draft.booking_date = booking_date
        return self._advance()

    async def _handle_time(self, text: str) -> str:
        booking_time = parse_booking_time(text)
        if booking_time is None:
            return self._reprompt()
        self._draft.booking_time = booking_time
        return self._advance()

    async def _handle_cuisine(self, text: str) -> str:
        self._draft.cuisine_preference = text
        return self._advance()

    async def _handle_special(self, text: str) -> Optional[str]:
        self._draft.special_requests = "None" if "none" in text.lower() else text
        return await self._run_weather_check()

    async def _handle_confirmation(self, text: str) -> Optional[str]:
        intent = detect_intent(text)
        if intent is Intent.AFFIRMATIVE:
            return await self._save()
        if intent is Intent.NEGATIVE:
            return (
                "No problem. Let me know what you would like to change, "
                "or say restart to begin again."
            )
        return self._reprompt()

    async def _handle_complete(self, text: str) -> str:
        return STEPS[Step.COMPLETE].prompt

    # ── Internal: weather ────────────────────────────────────

    async def _run_weather_check(self) -> Optional[str]:
        """Look up weather for the booking date and suggest seating.

        Always lands on CONFIRMATION (or ASK_DATE when no date exists yet).
        Returns None when a restart made the result irrelevant.
        """
        draft = self._draft
        if draft.booking_date is None:
            self._transition(Step.ASK_DATE)
            return "I still need the booking date before fetching the weather."

        self._transition(Step.WEATHER_CHECK)
        generation = self._generation
        try:
            insight = await self._weather.get_weather_for_date(
                draft.booking_date, city=draft.city, at=draft.booking_time,
            )
        except ConfigurationError as e:
            if self._is_stale(generation):
                return None
            log.error("Weather check unavailable: %s", e)
            self._last_error = str(e)
            self._transition(Step.CONFIRMATION)
            return f"I'm sorry, I can't check the weather right now. {WEATHER_RETRY_TEXT}"
        except Exception as e:
            if self._is_stale(generation):
                return None
            if isinstance(e, ExternalServiceError):
                log.warning("Weather lookup failed: %s", e)
            else:
                log.exception("Unexpected weather lookup failure")
            self._last_error = str(e)
            self._transition(Step.CONFIRMATION)
            return f"I could not retrieve the weather. {WEATHER_RETRY_TEXT}"

        if self._is_stale(generation):
            return None

        seating = seating_for_category(insight.category)
        draft.weather_info = insight
        draft.seating_preference = seating
        self._last_error = None
        self._emit_event("weather", insight.model_dump(mode="json", by_alias=True))

        self._transition(Step.SEATING_SUGGESTION)
        suggestion = f"{self._weather_line(insight)} {self._seating_line(seating)}"
        self._transition(Step.CONFIRMATION)
        return f"{suggestion} {STEPS[Step.CONFIRMATION].prompt}"

    def _weather_line(self, insight: WeatherInsight) -> str:
        when = format_date_for_speech(self._draft.booking_date)
        looks = insight.summary or insight.category.value
        if insight.temperature_c is None:
            return f"Weather for {when} in {insight.city} looks {looks} with comfortable temperatures."
        return (
            f"Weather for {when} in {insight.city} looks {looks} "
            f"with temperatures around {round(insight.temperature_c)} degrees Celsius."
        )

    @staticmethod
    def _seating_line(seating: SeatingPreference) -> str:
        if seating is SeatingPreference.EITHER:
            return "Conditions are flexible, so we can seat you indoors or outdoors."
        return f"I recommend our {seating.value} area for the best experience."

    # ── Internal: save ───────────────────────────────────────

    async def _save(self) -> Optional[str]:
        """Persist the draft; COMPLETE on success, back to CONFIRMATION otherwise."""
        draft = self._draft
        if draft.booking_date is None:
            self._transition(Step.ASK_DATE)
            return "I need the date before I can save the booking. Which date should I book for you?"
        if draft.weather_info is None:
            log.info("Save requested without weather data — retrying lookup")
            return await self._run_weather_check()

        request = draft.to_request()
        errors = validate_request(request, today=self._today())
        if errors:
            return self._rejected(errors)

        generation = self._generation
        self._is_saving = True
        self._transition(Step.SAVE)
        self._emit_event("save", {"status": "started"})
        try:
            created = await self._store.create(request)
        except ValidationError as e:
            if self._is_stale(generation):
                return None
            return self._rejected(e.errors)
        except Exception as e:
            if self._is_stale(generation):
                return None
            if isinstance(e, ExternalServiceError):
                log.warning("Booking save failed: %s", e)
            else:
                log.exception("Unexpected booking save failure")
            self._last_error = str(e)
            self._transition(Step.CONFIRMATION)
            return "Hmm, I could not save the booking. Can we try again?"
        finally:
            if generation == self._generation:
                self._is_saving = False

        if self._is_stale(generation):
            return None

        self._bookings.insert(0, created)
        self._last_error = None
        self._emit_event("save", {"status": "saved", "booking_id": created.booking_id})
        self._transition(Step.COMPLETE)
        log.info("Booking %s confirmed", created.booking_id)
        return (
            f"You're all set! Booking {created.booking_id} is confirmed for "
            f"{format_date_for_speech(draft.booking_date)} at {draft.booking_time}. "
            "Enjoy your meal!"
        )

    def _rejected(self, errors: list[str]) -> str:
        log.info("Booking rejected: %s", errors)
        self._last_error = "; ".join(errors)
        self._transition(Step.CONFIRMATION)
        return (
            "I can't save this booking yet. " + " ".join(errors)
            + " Say restart to begin again."
        )
