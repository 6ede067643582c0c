"""UtteranceChannel ABC — the boundary to the speech I/O adapter.

Speech recognition and synthesis happen on the client (the browser's
speech APIs). What crosses this boundary is text only:

  inbound:  finalized utterance strings, one per user turn
  outbound: agent replies, tagged with the step the session is now on

Implementors wrap a concrete transport (in-process queues, a WebSocket).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator


@dataclass
class AgentReply:
    """One agent line to be spoken and displayed."""

    text: str
    step: str

    def to_message(self) -> dict:
        return {"type": "reply", "text": self.text, "step": self.step}


class UtteranceChannel(ABC):
    """Abstract speech I/O channel carrying finalized text."""

    @abstractmethod
    def receive_utterances(self) -> AsyncIterator[str]:
        """Yield finalized utterances in arrival order.

        Runs until the client disconnects or close() is called.
        """

    @abstractmethod
    async def send_reply(self, reply: AgentReply) -> None:
        """Deliver an agent reply to the client for TTS and display."""

    @abstractmethod
    async def close(self) -> None:
        """Tear down the channel. Safe to call multiple times."""
