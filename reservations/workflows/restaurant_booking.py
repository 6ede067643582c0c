"""Restaurant reservation workflow: step order and agent lines.

The step sequence is fixed; the session's handlers decide when to stay on
a step (unusable answer) and when to advance. Prompts use ``str.format``
placeholders filled from the draft.
"""

from __future__ import annotations

from dataclasses import dataclass

from reservations.models.conversation import ConversationStep


@dataclass(frozen=True)
class BookingStep:
    """One state in the reservation FSM."""

    step: ConversationStep
    name: str
    prompt: str = ""        # Spoken when the step is entered
    reprompt: str = ""      # Spoken when the answer could not be used
    user_driven: bool = True  # False for steps the session runs on its own


GREETING_TEXT = "Hello! I am your restaurant assistant. What is your name?"
REPEAT_TEXT = "Could you repeat that for me?"

_STEP_DEFS = [
    BookingStep(
        ConversationStep.GREETING, "Greeting",
        prompt=GREETING_TEXT,
    ),
    BookingStep(
        ConversationStep.ASK_GUESTS, "Party size",
        prompt="Great to meet you, {customer_name}! How many guests are joining?",
        reprompt="I did not catch the guest count. How many people are in your party?",
    ),
    BookingStep(
        ConversationStep.ASK_DATE, "Date",
        prompt="Perfect. Which date should I book for you?",
        reprompt="Please share a future date, like December 12th.",
    ),
    BookingStep(
        ConversationStep.ASK_TIME, "Time",
        prompt="Thanks! What time would you like?",
        reprompt="Could you provide a specific time, such as 7:30 PM?",
    ),
    BookingStep(
        ConversationStep.ASK_CUISINE, "Cuisine",
        prompt="Got it. Any cuisine preference for this reservation?",
    ),
    BookingStep(
        ConversationStep.ASK_SPECIAL, "Special requests",
        prompt="Noted. Do you have any special requests or dietary needs? You can say none.",
    ),
    BookingStep(
        ConversationStep.WEATHER_CHECK, "Weather check",
        user_driven=False,
    ),
    BookingStep(
        ConversationStep.SEATING_SUGGESTION, "Seating suggestion",
        user_driven=False,
    ),
    BookingStep(
        ConversationStep.CONFIRMATION, "Confirmation",
        prompt="Shall I confirm all of these details?",
        reprompt="Just to confirm, should I lock in this reservation?",
    ),
    BookingStep(
        ConversationStep.SAVE, "Save",
        user_driven=False,
    ),
    BookingStep(
        ConversationStep.COMPLETE, "Complete",
        prompt="Your reservation is already confirmed. Say restart if you need another booking.",
    ),
]

STEP_ORDER: list[ConversationStep] = [d.step for d in _STEP_DEFS]
STEPS: dict[ConversationStep, BookingStep] = {d.step: d for d in _STEP_DEFS}
FIRST_STEP: ConversationStep = STEP_ORDER[0]


def next_step(step: ConversationStep) -> ConversationStep:
    """The step after ``step`` on the happy path; COMPLETE is terminal."""
    index = STEP_ORDER.index(step)
    return STEP_ORDER[min(index + 1, len(STEP_ORDER) - 1)]
