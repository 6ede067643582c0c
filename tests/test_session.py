"""Tests for ReservationSession — the per-conversation FSM driver."""

import asyncio
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest

from reservations.debug_events import EventBroadcaster
from reservations.errors import ExternalServiceError, ValidationError
from reservations.models.conversation import ConversationStep, Sender
from reservations.models.weather import SeatingPreference, WeatherCategory
from reservations.session import (
    ReservationSession,
    format_date_for_speech,
    get_session,
    redact_pii,
    register_session,
    unregister_session,
)
from reservations.storage.memory import InMemoryBookingStore
from reservations.weather.service import WeatherService
from reservations.workflows.restaurant_booking import GREETING_TEXT, REPEAT_TEXT

from conftest import TODAY, FakeWeatherProvider, forecast_entry

Step = ConversationStep


def _session(provider=None, store=None) -> ReservationSession:
    provider = provider or FakeWeatherProvider(forecast=[
        forecast_entry(datetime(2030, 12, 20, 19, tzinfo=timezone.utc),
                       main="Clear", description="clear sky", temp=22.4),
    ])
    weather = WeatherService(provider, default_city="New York", tz=timezone.utc)
    return ReservationSession(
        weather_service=weather,
        booking_store=store or InMemoryBookingStore(),
        default_city="New York",
        today=lambda: TODAY,
    )


async def _fill_to_special(session: ReservationSession) -> None:
    await session.handle_utterance("Alice")
    await session.handle_utterance("4 people")
    await session.handle_utterance("December 20th, 2030")
    await session.handle_utterance("7 pm")
    await session.handle_utterance("Italian")


# ── Helpers ────────────────────────────────────────────────────────


class TestHelpers:
    def test_redact_pii(self):
        assert redact_pii("Alice Johnson") == "Ali***on"
        assert redact_pii("Bob") == "***"

    def test_format_date_for_speech(self):
        assert format_date_for_speech(date(2030, 12, 20)) == "December 20, 2030"

    def test_registry(self):
        session = _session()
        sid = register_session(session)
        assert session.session_id == sid
        assert get_session(sid) is session
        unregister_session(sid)
        assert get_session(sid) is None


# ── Initial state ──────────────────────────────────────────────────


class TestInit:
    def test_greeting_seeded(self):
        session = _session()
        assert session.current_step is Step.GREETING
        assert session.agent_message == GREETING_TEXT
        assert len(session.transcript) == 1
        assert session.transcript[0].sender is Sender.AGENT
        assert session.draft.city == "New York"
        assert session.is_saving is False

    def test_draft_is_a_copy(self):
        session = _session()
        session.draft.customer_name = "Mallory"
        assert session.draft.customer_name == ""


# ── Question sequence ──────────────────────────────────────────────


class TestQuestionFlow:
    async def test_name_then_guests_prompt(self):
        session = _session()
        reply = await session.handle_utterance("Alice")
        assert reply == "Great to meet you, Alice! How many guests are joining?"
        assert session.current_step is Step.ASK_GUESTS
        assert session.draft.customer_name == "Alice"

    async def test_unusable_guest_count_stays(self):
        session = _session()
        await session.handle_utterance("Alice")
        reply = await session.handle_utterance("a few of us")
        assert session.current_step is Step.ASK_GUESTS
        assert "guest count" in reply
        assert session.draft.number_of_guests is None

    async def test_past_date_reprompts(self):
        session = _session()
        await session.handle_utterance("Alice")
        await session.handle_utterance("4")
        reply = await session.handle_utterance("January 5th")
        assert session.current_step is Step.ASK_DATE
        assert reply == "Please share a future date, like December 12th."

    async def test_bad_time_reprompts(self):
        session = _session()
        await session.handle_utterance("Alice")
        await session.handle_utterance("4")
        await session.handle_utterance("December 20th, 2030")
        reply = await session.handle_utterance("sometime in the evening")
        assert session.current_step is Step.ASK_TIME
        assert reply == "Could you provide a specific time, such as 7:30 PM?"

    async def test_full_flow_reaches_confirmation(self):
        session = _session()
        await _fill_to_special(session)
        assert session.current_step is Step.ASK_SPECIAL

        reply = await session.handle_utterance("none")
        assert session.current_step is Step.CONFIRMATION

        draft = session.draft
        assert draft.customer_name == "Alice"
        assert draft.number_of_guests == 4
        assert draft.booking_date == date(2030, 12, 20)
        assert draft.booking_time == "19:00"
        assert draft.cuisine_preference == "Italian"
        assert draft.special_requests == "None"
        assert draft.weather_info.category is WeatherCategory.SUNNY
        assert draft.seating_preference is SeatingPreference.OUTDOOR

        assert reply == (
            "Weather for December 20, 2030 in New York looks clear sky with "
            "temperatures around 22 degrees Celsius. I recommend our outdoor "
            "area for the best experience. Shall I confirm all of these details?"
        )

    async def test_special_request_text_kept(self):
        session = _session()
        await _fill_to_special(session)
        await session.handle_utterance("a window table for a birthday")
        assert session.draft.special_requests == "a window table for a birthday"

    async def test_cloudy_weather_offers_either(self):
        provider = FakeWeatherProvider(forecast=[
            forecast_entry(datetime(2030, 12, 20, 19, tzinfo=timezone.utc),
                           main="Clouds", description="", temp=15.0),
        ])
        session = _session(provider=provider)
        await _fill_to_special(session)
        reply = await session.handle_utterance("none")
        assert "looks cloudy" in reply
        assert "we can seat you indoors or outdoors" in reply
        assert session.draft.seating_preference is SeatingPreference.EITHER

    async def test_transcript_alternates(self):
        session = _session()
        await session.handle_utterance("Alice")
        senders = [t.sender for t in session.transcript]
        assert senders == [Sender.AGENT, Sender.USER, Sender.AGENT]
        assert session.transcript[1].text == "Alice"


# ── Empty input & restart ──────────────────────────────────────────


class TestEmptyAndRestart:
    @pytest.mark.parametrize("text", ["", "   ", None])
    async def test_empty_input_asks_to_repeat(self, text):
        session = _session()
        await session.handle_utterance("Alice")
        reply = await session.handle_utterance(text)
        assert reply == REPEAT_TEXT
        assert session.current_step is Step.ASK_GUESTS
        assert session.transcript[-1].sender is Sender.AGENT
        assert all(t.text != "" for t in session.transcript if t.sender is Sender.USER)

    async def test_restart_resets_everything(self):
        session = _session()
        await _fill_to_special(session)
        generation = session.generation

        reply = await session.handle_utterance("Actually, restart please")
        assert reply == GREETING_TEXT
        assert session.current_step is Step.GREETING
        assert session.draft.customer_name == ""
        assert session.draft.number_of_guests is None
        assert len(session.transcript) == 1
        assert session.transcript[0].text == GREETING_TEXT
        assert session.generation == generation + 1

    async def test_restart_mid_weather_lookup_discards_result(self):
        release = asyncio.Event()

        class SlowProvider(FakeWeatherProvider):
            async def get_forecast(self, city):
                await release.wait()
                return await super().get_forecast(city)

        provider = SlowProvider(forecast=[
            forecast_entry(datetime(2030, 12, 20, 19, tzinfo=timezone.utc)),
        ])
        session = _session(provider=provider)
        await _fill_to_special(session)

        task = asyncio.create_task(session.handle_utterance("none"))
        await asyncio.sleep(0)
        assert session.current_step is Step.WEATHER_CHECK
        busy = await session.handle_utterance("hello?")
        assert busy == "One moment, I'm still working on your reservation."

        session.reset()
        release.set()
        reply = await task

        assert reply == GREETING_TEXT
        assert session.current_step is Step.GREETING
        assert session.draft.weather_info is None
        assert len(session.transcript) == 1

    async def test_restart_mid_save_discards_result(self):
        release = asyncio.Event()

        class SlowStore(InMemoryBookingStore):
            async def create(self, request):
                await release.wait()
                return await super().create(request)

        store = SlowStore()
        session = _session(store=store)
        await _fill_to_special(session)
        await session.handle_utterance("none")

        task = asyncio.create_task(session.handle_utterance("yes"))
        await asyncio.sleep(0)
        assert session.current_step is Step.SAVE
        assert session.is_saving is True

        session.reset()
        release.set()
        reply = await task

        assert reply == GREETING_TEXT
        assert session.current_step is Step.GREETING
        assert session.bookings == []
        assert session.is_saving is False
        assert session.last_error is None
        assert len(session.transcript) == 1

    async def test_restart_mid_failing_save_keeps_fresh_state(self):
        release = asyncio.Event()

        async def failing_create(request):
            await release.wait()
            raise ExternalServiceError("bookings API down")

        store = InMemoryBookingStore()
        store.create = AsyncMock(side_effect=failing_create)
        session = _session(store=store)
        await _fill_to_special(session)
        await session.handle_utterance("none")

        task = asyncio.create_task(session.handle_utterance("yes"))
        await asyncio.sleep(0)
        session.reset()
        release.set()
        reply = await task

        assert reply == GREETING_TEXT
        assert session.current_step is Step.GREETING
        assert session.is_saving is False
        assert session.last_error is None


# ── Weather failures ───────────────────────────────────────────────


class TestWeatherFailures:
    async def test_missing_api_key(self):
        session = _session(provider=FakeWeatherProvider(configured=False))
        await _fill_to_special(session)
        reply = await session.handle_utterance("none")
        assert session.current_step is Step.CONFIRMATION
        assert reply == (
            "I'm sorry, I can't check the weather right now. "
            "I need the weather before I can save the booking. "
            "Say yes to try again, or restart to begin again."
        )
        assert "confirm the booking" not in reply
        assert session.draft.weather_info is None
        assert session.last_error == "OPENWEATHER_API_KEY is missing"

    async def test_provider_down(self):
        provider = FakeWeatherProvider(
            forecast_error=ExternalServiceError("down"),
            current_error=ExternalServiceError("down"),
        )
        session = _session(provider=provider)
        await _fill_to_special(session)
        reply = await session.handle_utterance("none")
        assert session.current_step is Step.CONFIRMATION
        assert reply.startswith("I could not retrieve the weather.")
        assert reply.endswith("Say yes to try again, or restart to begin again.")

    async def test_yes_without_weather_retries_and_does_not_save(self):
        store = InMemoryBookingStore()
        session = _session(provider=FakeWeatherProvider(configured=False), store=store)
        await _fill_to_special(session)
        await session.handle_utterance("none")

        for _ in range(3):
            reply = await session.handle_utterance("yes")
            assert reply == (
                "I'm sorry, I can't check the weather right now. "
                "I need the weather before I can save the booking. "
                "Say yes to try again, or restart to begin again."
            )
            assert session.current_step is Step.CONFIRMATION
        assert await store.list() == []

    async def test_weather_recovers_on_retry(self):
        provider = FakeWeatherProvider(
            forecast=[forecast_entry(datetime(2030, 12, 20, 19, tzinfo=timezone.utc))],
            configured=False,
        )
        store = InMemoryBookingStore()
        session = _session(provider=provider, store=store)
        await _fill_to_special(session)
        await session.handle_utterance("none")

        provider.configured = True
        reply = await session.handle_utterance("yes")
        assert reply.endswith("Shall I confirm all of these details?")
        assert session.draft.weather_info is not None
        assert await store.list() == []

        await session.handle_utterance("yes")
        assert session.current_step is Step.COMPLETE
        assert len(await store.list()) == 1


# ── Confirmation & save ────────────────────────────────────────────


class TestConfirmation:
    async def test_affirmative_saves(self):
        store = InMemoryBookingStore()
        session = _session(store=store)
        await _fill_to_special(session)
        await session.handle_utterance("none")

        reply = await session.handle_utterance("Yes, please book it")
        assert session.current_step is Step.COMPLETE
        assert session.is_saving is False

        saved = await store.list()
        assert len(saved) == 1
        assert saved[0].customer_name == "Alice"
        assert saved[0].special_requests == "None"
        assert saved[0].weather_info is not None
        assert session.bookings[0].booking_id == saved[0].booking_id
        assert reply == (
            f"You're all set! Booking {saved[0].booking_id} is confirmed for "
            "December 20, 2030 at 19:00. Enjoy your meal!"
        )

    async def test_negative_stays(self):
        session = _session()
        await _fill_to_special(session)
        await session.handle_utterance("none")
        reply = await session.handle_utterance("no, not yet")
        assert session.current_step is Step.CONFIRMATION
        assert reply.startswith("No problem.")

    @pytest.mark.parametrize("text", ["hmm", "yes, but wait"])
    async def test_unclear_answer_reprompts(self, text):
        session = _session()
        await _fill_to_special(session)
        await session.handle_utterance("none")
        reply = await session.handle_utterance(text)
        assert session.current_step is Step.CONFIRMATION
        assert reply == "Just to confirm, should I lock in this reservation?"

    async def test_save_failure_keeps_draft(self):
        store = InMemoryBookingStore()
        store.create = AsyncMock(side_effect=ExternalServiceError("bookings API down"))
        session = _session(store=store)
        await _fill_to_special(session)
        await session.handle_utterance("none")

        reply = await session.handle_utterance("yes")
        assert reply == "Hmm, I could not save the booking. Can we try again?"
        assert session.current_step is Step.CONFIRMATION
        assert session.is_saving is False
        assert session.draft.customer_name == "Alice"
        assert session.last_error == "bookings API down"

        # Retry is allowed
        await session.handle_utterance("yes")
        assert store.create.await_count == 2

    async def test_rejected_booking_lists_errors(self):
        store = InMemoryBookingStore()
        store.create = AsyncMock(side_effect=ValidationError(["bookingTime is required."]))
        session = _session(store=store)
        await _fill_to_special(session)
        await session.handle_utterance("none")

        reply = await session.handle_utterance("confirm")
        assert session.current_step is Step.CONFIRMATION
        assert "bookingTime is required." in reply
        assert reply.endswith("Say restart to begin again.")

    async def test_complete_repeats_confirmation(self):
        session = _session()
        await _fill_to_special(session)
        await session.handle_utterance("none")
        await session.handle_utterance("yes")
        reply = await session.handle_utterance("thanks")
        assert session.current_step is Step.COMPLETE
        assert "already confirmed" in reply


# ── Events & serialization ─────────────────────────────────────────


class TestEventsAndDict:
    async def test_events_emitted(self):
        session = _session()
        broadcaster = EventBroadcaster("test")
        session.attach_broadcaster(broadcaster)
        queue = broadcaster.subscribe()

        await session.handle_utterance("Alice")

        types = [e["type"] for e in broadcaster.history]
        assert types == ["turn", "transition", "turn"]
        assert queue.qsize() == 3

    async def test_restart_drops_earlier_events(self):
        session = _session()
        broadcaster = EventBroadcaster("test")
        session.attach_broadcaster(broadcaster)

        await session.handle_utterance("Alice")
        await session.handle_utterance("restart")

        event_log = session.to_dict(detail=True)["event_log"]
        assert [e["type"] for e in event_log] == ["restart", "turn"]
        assert event_log[1]["data"]["text"] == GREETING_TEXT
        assert "Alice" not in str(event_log)

    async def test_to_dict(self):
        session = _session()
        await session.handle_utterance("Alice")
        summary = session.to_dict()
        assert summary["current_step"] == "ASK_GUESTS"
        assert summary["draft"]["customerName"] == "Alice"
        assert "transcript" not in summary

        detail = session.to_dict(detail=True)
        assert len(detail["transcript"]) == 3
        assert detail["bookings"] == []
