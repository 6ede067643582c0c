"""Conversation workflow definitions."""

from .restaurant_booking import FIRST_STEP, STEP_ORDER, STEPS, BookingStep, next_step

__all__ = ["BookingStep", "FIRST_STEP", "STEP_ORDER", "STEPS", "next_step"]
