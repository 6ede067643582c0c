"""Conversation loop: drain a channel into a session, one utterance at a time."""

from __future__ import annotations

import logging

from reservations.channels.base import AgentReply, UtteranceChannel
from reservations.session import ReservationSession

log = logging.getLogger("reservations.channels.runner")


async def run_conversation(session: ReservationSession, channel: UtteranceChannel) -> None:
    """Speak the greeting, then answer each utterance until the channel ends.

    Each utterance is fully handled (including any weather or save call)
    before the next one is read, so the session never sees two at once.
    """
    await channel.send_reply(AgentReply(session.agent_message, session.current_step.value))

    async for text in channel.receive_utterances():
        reply = await session.handle_utterance(text)
        log.info("Reply (step=%s): %s", session.current_step.value, reply[:100])
        await channel.send_reply(AgentReply(reply, session.current_step.value))

    log.info("Conversation ended (session=%s)", session.session_id)
