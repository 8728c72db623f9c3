"""
Database Schemas for the chat room

Each Pydantic model describes a document stored in MongoDB or a request body.
- Participant -> "participants"
- Message -> "messages"
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PARTICIPANTS = "participants"
MESSAGES = "messages"

# Recipient meaning "everyone in the room"; join refuses it as a name.
BROADCAST = "Todos"

JOIN_TEXT = "entra na sala..."
LEAVE_TEXT = "sai da sala..."

MessageType = Literal["message", "private_message", "status"]
USER_MESSAGE_TYPES = ("message", "private_message")


class Participant(BaseModel):
    """
    Someone currently in the room
    Collection: "participants"
    """
    name: str = Field(..., min_length=1, description="Unique display name")
    lastStatus: int = Field(..., description="Last heartbeat, epoch milliseconds")


class Message(BaseModel):
    """
    Chat line, private message or join/leave notice
    Collection: "messages"
    """
    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(..., alias="from", min_length=1)
    to: str = Field(..., min_length=1, description="Participant name or the broadcast token")
    text: str = Field(..., min_length=1)
    type: MessageType
    time: str = Field(..., description="HH:MM:SS of creation")
    createdAt: Optional[datetime] = Field(None, description="Full UTC creation time")


# Request bodies

class JoinRequest(BaseModel):
    name: str = Field(..., min_length=1)


class SendRequest(BaseModel):
    to: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    type: Literal["message", "private_message"]
