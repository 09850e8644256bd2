"""Outbound game events."""

from server.events.publisher import GameCompletedEvent, GameEventPublisher

__all__ = [
    "GameCompletedEvent",
    "GameEventPublisher",
]
