"""Outgoing envelopes, addressing content to a user and/or room."""

from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

from ponder.models.message import Message
from ponder.models.user import Room, User
from ponder.utils import random_id

if TYPE_CHECKING:
    from ponder.state import State


class Envelope(BaseModel):
    """Content and addressing for a response or unprompted dispatch.

    The ``method`` tells the message adapter how to deliver it, e.g.
    ``send``, ``reply`` or ``dm``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=random_id, description="Unique envelope ID")
    method: str = Field(default="send", description="Adapter method to deliver with")
    user: User | None = Field(default=None, description="Recipient user")
    room: Room = Field(default_factory=Room, description="Recipient room")
    message: SerializeAsAny[Message] | None = Field(
        default=None, description="Message this envelope responds to"
    )
    strings: list[str] = Field(default_factory=list, description="Text content to send")
    branch_id: str | None = Field(default=None, description="Branch that prompted the response")
    responded: datetime | None = Field(default=None, description="When it was dispatched")

    @classmethod
    def for_state(cls, state: "State", **options: Any) -> "Envelope":
        """Address an envelope to the origin of the state's message."""
        message = state.message
        if message is not None:
            options.setdefault("message", message)
            options.setdefault("user", message.user)
            options.setdefault("room", message.room)
        return cls(**options)

    def write(self, *strings: str) -> "Envelope":
        """Add strings to the content."""
        self.strings.extend(strings)
        return self

    def compose(self, *strings: str) -> "Envelope":
        """Add content, alias of write used when building responses."""
        return self.write(*strings)

    def via(self, method: str) -> "Envelope":
        """Set the delivery method."""
        self.method = method
        return self

    def to_user(self, user: User) -> "Envelope":
        """Address to a user, in the room they are in if known."""
        self.user = user
        room = getattr(user, "room", None)
        if isinstance(room, dict):
            self.room = Room.model_validate(room)
        elif isinstance(room, Room):
            self.room = room
        return self

    def to_room_id(self, room_id: str) -> "Envelope":
        """Address to a room by ID."""
        self.room = Room(id=room_id)
        return self
