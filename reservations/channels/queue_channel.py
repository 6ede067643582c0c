"""QueueChannel — in-process UtteranceChannel over asyncio queues.

The host pushes finalized text with ``push_utterance`` and reads agent
replies from ``outbound``. Used for embedding the agent in another
asyncio program and in tests.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

from reservations.channels.base import AgentReply, UtteranceChannel

log = logging.getLogger("reservations.channels.queue")


class QueueChannel(UtteranceChannel):
    def __init__(self) -> None:
        self.inbound: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self.outbound: asyncio.Queue[AgentReply] = asyncio.Queue()
        self._closed = False

    async def push_utterance(self, text: str) -> None:
        if self._closed:
            raise RuntimeError("QueueChannel is closed")
        await self.inbound.put(text)

    async def receive_utterances(self) -> AsyncIterator[str]:
        # Utterances pushed before close() are still delivered
        while True:
            text = await self.inbound.get()
            if text is None:
                break
            yield text

    async def send_reply(self, reply: AgentReply) -> None:
        await self.outbound.put(reply)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Wake a consumer blocked in receive_utterances
        self.inbound.put_nowait(None)
        log.info("QueueChannel closed")
