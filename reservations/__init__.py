"""Voice-driven restaurant reservation agent with weather-aware seating."""
