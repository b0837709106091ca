"""Users and rooms of the chat platform."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Room(BaseModel):
    """A room (channel, group or direct conversation) on the platform."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(default="", description="Platform room identifier")
    name: str | None = Field(default=None, description="Display name")
    type: str | None = Field(default=None, description="Platform room type")


class User(BaseModel):
    """A user in the chat.

    Adapters may attach any platform attributes as extra fields.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Platform user identifier")
    name: str = Field(default="", description="Display name, defaults to the ID")

    @model_validator(mode="before")
    @classmethod
    def default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name") and data.get("id"):
            return {**data, "name": data["id"]}
        return data
