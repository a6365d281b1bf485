"""Turn-based space strategy simulation core: content loading, game state, and daily simulation ticks."""

__version__ = "0.1.0"

__all__ = [
    "combat",
    "content",
    "economy",
    "events",
    "model",
    "movement",
    "sensors",
    "simulation",
]