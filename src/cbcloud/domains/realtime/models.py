# src/cbcloud/domains/realtime/models.py
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RoomMessage(BaseModel):
    """Client message on the realtime socket."""

    model_config = ConfigDict(populate_by_name=True)

    action: Literal["join-room", "leave-room"]
    room_id: str = Field(..., alias="roomId", min_length=1)
