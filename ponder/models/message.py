"""Incoming message types.

Every message references the user who sent it and the room it came from.
Text messages may carry NLU results attached by the understand stage.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, field_serializer

from ponder.models.user import Room, User
from ponder.nlu import NLU
from ponder.utils import random_id


class Message(BaseModel, ABC):
    """Base for anything received from the chat platform or server."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=random_id, description="Unique message ID")
    user: User = Field(..., description="User who sent the message")
    room: Room = Field(default_factory=Room, description="Room the message came from")

    @abstractmethod
    def __str__(self) -> str:
        """String representation used for text matching."""

    @property
    def type(self) -> str:
        """Message type name, allows filtering responders."""
        return type(self).__name__

    def clone(self, **update: Any) -> "Message":
        """Return a copy to alter without affecting the original."""
        return self.model_copy(update=update)


class TextMessage(Message):
    """A plain text message."""

    text: str = Field(..., description="Text content of the message")
    nlu: NLU | None = Field(default=None, description="Attached NLU results")

    def __str__(self) -> str:
        return self.text

    @field_serializer("nlu")
    def serialize_nlu(self, nlu: NLU | None) -> dict[str, Any] | None:
        return nlu.to_raw() if nlu is not None else None


class EventMessage(Message):
    """A platform event about a user, rather than content."""

    event: str = Field(default="event", description="Event name")

    def __str__(self) -> str:
        return f"{self.event} event for {self.user.name}"


class EnterMessage(EventMessage):
    """A user entered a room."""

    event: Literal["enter"] = "enter"


class LeaveMessage(EventMessage):
    """A user left a room."""

    event: Literal["leave"] = "leave"


class TopicMessage(EventMessage):
    """A user changed the room topic."""

    event: Literal["topic"] = "topic"


class ServerMessage(EventMessage):
    """Data received from a server request on behalf of a user."""

    event: Literal["server request"] = "server request"
    data: dict[str, Any] | None = Field(default=None, description="Request payload")

    def __str__(self) -> str:
        return f"Data for user {self.user.id}: {json.dumps(self.data, default=str)}"


class CatchAllMessage(Message):
    """Wraps a message that no branch matched before the act stage."""

    message: SerializeAsAny[Message] = Field(..., description="The unmatched message")

    def __init__(self, message: Message | None = None, **data: Any) -> None:
        if message is not None:
            data.setdefault("message", message)
            data.setdefault("id", message.id)
            data.setdefault("user", message.user)
            data.setdefault("room", message.room)
        super().__init__(**data)

    def __str__(self) -> str:
        return str(self.message)

    @property
    def type(self) -> str:
        return self.message.type
