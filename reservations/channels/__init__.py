"""Text channels between the speech I/O adapter and the session."""

from .base import AgentReply, UtteranceChannel
from .queue_channel import QueueChannel
from .runner import run_conversation

__all__ = ["AgentReply", "QueueChannel", "UtteranceChannel", "run_conversation"]
