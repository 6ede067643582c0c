"""Conversation steps and transcript turns."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class ConversationStep(str, Enum):
    """Position of the dialogue in the fixed question sequence."""

    GREETING = "GREETING"
    ASK_GUESTS = "ASK_GUESTS"
    ASK_DATE = "ASK_DATE"
    ASK_TIME = "ASK_TIME"
    ASK_CUISINE = "ASK_CUISINE"
    ASK_SPECIAL = "ASK_SPECIAL"
    WEATHER_CHECK = "WEATHER_CHECK"
    SEATING_SUGGESTION = "SEATING_SUGGESTION"
    CONFIRMATION = "CONFIRMATION"
    SAVE = "SAVE"
    COMPLETE = "COMPLETE"


class Sender(str, Enum):
    AGENT = "agent"
    USER = "user"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class ConversationTurn(BaseModel):
    """One line of the transcript. Never mutated after creation."""

    sender: Sender
    text: str
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}
