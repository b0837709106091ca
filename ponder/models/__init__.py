"""Domain models for messages, users and envelopes."""

from ponder.models.envelope import Envelope
from ponder.models.message import (
    CatchAllMessage,
    EnterMessage,
    EventMessage,
    LeaveMessage,
    Message,
    ServerMessage,
    TextMessage,
    TopicMessage,
)
from ponder.models.user import Room, User

__all__ = [
    "CatchAllMessage",
    "EnterMessage",
    "Envelope",
    "EventMessage",
    "LeaveMessage",
    "Message",
    "Room",
    "ServerMessage",
    "TextMessage",
    "TopicMessage",
    "User",
]
