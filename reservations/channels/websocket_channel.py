"""WebSocketChannel — UtteranceChannel over a FastAPI WebSocket.

Protocol messages:

  Client → Server:
    {"type": "utterance", "text": "..."}   → one finalized transcript
    {"type": "close"}                      → end the conversation

  Server → Client:
    {"type": "reply", "text": "...", "step": "ASK_GUESTS"}
    {"type": "error", "message": "..."}
"""

from __future__ import annotations

import logging
from typing import AsyncIterator

from fastapi import WebSocket, WebSocketDisconnect

from reservations.channels.base import AgentReply, UtteranceChannel

log = logging.getLogger("reservations.channels.websocket")


class WebSocketChannel(UtteranceChannel):
    """UtteranceChannel for browser clients doing their own STT/TTS."""

    def __init__(self, websocket: WebSocket, session_id: str = "") -> None:
        self._ws = websocket
        self._session_id = session_id
        self._closed = False

    async def receive_utterances(self) -> AsyncIterator[str]:
        try:
            while not self._closed:
                try:
                    message = await self._ws.receive_json()
                except ValueError:
                    await self._send_error("Messages must be JSON objects")
                    continue
                msg_type = message.get("type") if isinstance(message, dict) else None

                if msg_type == "utterance":
                    yield str(message.get("text") or "")
                elif msg_type == "close":
                    break
                else:
                    await self._send_error(f"Unknown message type: {msg_type!r}")
        except WebSocketDisconnect:
            log.info("Client disconnected (session=%s)", self._session_id)
            self._closed = True

    async def send_reply(self, reply: AgentReply) -> None:
        if self._closed:
            return
        await self._ws.send_json(reply.to_message())

    async def _send_error(self, message: str) -> None:
        log.warning("Bad client message (session=%s): %s", self._session_id, message)
        await self._ws.send_json({"type": "error", "message": message})

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._ws.close()
        except RuntimeError:
            # Already closed by the client
            pass
