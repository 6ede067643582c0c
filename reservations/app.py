"""FastAPI application — HTTP + WebSocket endpoints for the reservation agent.

Endpoints:

  GET    /health                              Health check
  POST   /api/sessions                        Start a conversation (returns greeting)
  GET    /api/sessions                        Active conversations
  GET    /api/sessions/{id}                   Conversation detail
  POST   /api/sessions/{id}/utterances        Feed one finalized utterance
  POST   /api/sessions/{id}/restart           Reset a conversation
  GET    /api/sessions/{id}/transcript        Transcript turns
  DELETE /api/sessions/{id}                   End a conversation
  WS     /api/sessions/{id}/events            Live event feed for a conversation
  GET    /api/bookings                        Persisted bookings, newest first
  GET    /api/weather?date=&city=             Weather preview for a date
  WS     /ws/conversation                     Browser speech adapter

The browser runs speech recognition and synthesis; only text crosses
these endpoints.
"""

from __future__ import annotations

# Load .env into os.environ before settings are read
from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
import time
from typing import Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-28s %(levelname)-7s %(message)s",
)

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from reservations.channels.runner import run_conversation
from reservations.channels.websocket_channel import WebSocketChannel
from reservations.config import settings
from reservations.debug_events import get_broadcaster, remove_broadcaster
from reservations.errors import ConfigurationError, ExternalServiceError, InputError
from reservations.session import (
    ReservationSession,
    get_active_sessions,
    get_session,
    register_session,
    unregister_session,
)
from reservations.storage.base import BookingStore
from reservations.storage.http import HttpBookingStore
from reservations.storage.memory import InMemoryBookingStore
from reservations.weather.provider import OpenWeatherMapProvider
from reservations.weather.service import WeatherService

log = logging.getLogger("reservations.app")

_START_TIME = time.time()


class UtteranceIn(BaseModel):
    text: str = ""


def create_app(
    weather_service: Optional[WeatherService] = None,
    booking_store: Optional[BookingStore] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Restaurant Reservation Voice Agent",
        description="Voice-driven restaurant booking with weather-aware seating",
        version="0.1.0",
    )

    for warning in settings.validate_startup():
        log.warning(warning)

    weather = weather_service or WeatherService(OpenWeatherMapProvider())
    store = booking_store or _create_store()

    # One utterance at a time per conversation
    turn_locks: dict[str, asyncio.Lock] = {}

    async def _new_session() -> tuple[str, ReservationSession]:
        session = ReservationSession(weather_service=weather, booking_store=store)
        sid = register_session(session)
        session.attach_broadcaster(get_broadcaster(sid))
        turn_locks[sid] = asyncio.Lock()
        await session.refresh_bookings()
        return sid, session

    def _end_session(sid: str) -> None:
        turn_locks.pop(sid, None)
        remove_broadcaster(sid)
        unregister_session(sid)

    def _not_found() -> JSONResponse:
        return JSONResponse({"error": "Session not found"}, status_code=404)

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({"status": "ok", "uptime": uptime})

    # ── Conversations ──────────────────────────────────────────

    @app.post("/api/sessions")
    async def create_session() -> JSONResponse:
        sid, session = await _new_session()
        return JSONResponse(session.to_dict(), status_code=201)

    @app.get("/api/sessions")
    async def list_sessions() -> JSONResponse:
        sessions = get_active_sessions()
        return JSONResponse({
            "sessions": [s.to_dict() for s in sessions.values()],
            "count": len(sessions),
        })

    @app.get("/api/sessions/{session_id}")
    async def session_detail(session_id: str) -> JSONResponse:
        session = get_session(session_id)
        if not session:
            return _not_found()
        return JSONResponse(session.to_dict(detail=True))

    @app.post("/api/sessions/{session_id}/utterances")
    async def post_utterance(session_id: str, body: UtteranceIn) -> JSONResponse:
        session = get_session(session_id)
        if not session:
            return _not_found()
        lock = turn_locks.setdefault(session_id, asyncio.Lock())
        async with lock:
            reply = await session.handle_utterance(body.text)
        return JSONResponse({
            "reply": reply,
            "step": session.current_step.value,
            "session": session.to_dict(),
        })

    @app.post("/api/sessions/{session_id}/restart")
    async def restart_session(session_id: str) -> JSONResponse:
        # Not behind the turn lock: a restart must work while a lookup is in flight
        session = get_session(session_id)
        if not session:
            return _not_found()
        session.reset()
        return JSONResponse({"reply": session.agent_message, "step": session.current_step.value})

    @app.get("/api/sessions/{session_id}/transcript")
    async def get_transcript(session_id: str) -> JSONResponse:
        session = get_session(session_id)
        if not session:
            return _not_found()
        return JSONResponse([turn.model_dump(mode="json") for turn in session.transcript])

    @app.delete("/api/sessions/{session_id}")
    async def end_session(session_id: str) -> JSONResponse:
        if not get_session(session_id):
            return _not_found()
        _end_session(session_id)
        return JSONResponse({"message": "Session ended"})

    @app.websocket("/api/sessions/{session_id}/events")
    async def event_stream(websocket: WebSocket, session_id: str) -> None:
        """Stream transcript turns and transitions for a view layer."""
        session = get_session(session_id)
        if not session:
            await websocket.close(code=4004, reason="Session not found")
            return

        await websocket.accept()
        broadcaster = get_broadcaster(session_id)
        session.attach_broadcaster(broadcaster)
        queue = broadcaster.subscribe()
        try:
            while True:
                event = await queue.get()
                await websocket.send_json(event)
        except WebSocketDisconnect:
            pass
        finally:
            broadcaster.unsubscribe(queue)

    # ── Bookings & weather ─────────────────────────────────────

    @app.get("/api/bookings")
    async def list_bookings() -> JSONResponse:
        try:
            bookings = await store.list()
        except ExternalServiceError as e:
            log.error("Failed to load bookings: %s", e)
            return JSONResponse({"message": str(e)}, status_code=502)
        return JSONResponse([b.model_dump(mode="json", by_alias=True) for b in bookings])

    @app.get("/api/weather")
    async def weather_preview(date: str = "", city: str = "") -> JSONResponse:
        if not date:
            return JSONResponse(
                {"message": "date query parameter is required"}, status_code=400,
            )
        try:
            insight = await weather.get_weather_for_date(date, city=city or None)
        except InputError as e:
            return JSONResponse({"message": str(e)}, status_code=400)
        except ConfigurationError as e:
            log.error("Weather preview unavailable: %s", e)
            return JSONResponse({"message": str(e)}, status_code=500)
        except ExternalServiceError as e:
            log.error("Weather preview failed: %s", e)
            return JSONResponse({"message": str(e)}, status_code=502)
        return JSONResponse(insight.model_dump(mode="json", by_alias=True))

    # ── Browser speech adapter ─────────────────────────────────

    @app.websocket("/ws/conversation")
    async def conversation_ws(websocket: WebSocket) -> None:
        """One conversation per socket: utterances in, agent replies out."""
        await websocket.accept()
        sid, session = await _new_session()
        channel = WebSocketChannel(websocket, session_id=sid)
        log.info("Conversation socket connected (session=%s)", sid)
        try:
            await run_conversation(session, channel)
        except Exception:
            log.exception("Conversation socket error (session=%s)", sid)
        finally:
            _end_session(sid)
            await channel.close()

    return app


def _create_store() -> BookingStore:
    """Bookings API when configured, otherwise in-memory."""
    if settings.bookings_api_url:
        return HttpBookingStore(base_url=settings.bookings_api_url)
    log.warning("Using in-memory booking store")
    return InMemoryBookingStore()


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "reservations.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
