"""
DeenVerse Backend: Connection Schemas
======================================

What:  Request body for connection requests and the connection record as
       returned to clients, with both parties' summaries attached.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from deenverse.models.connection import (
    MESSAGE_MAX_LENGTH,
    ConnectionStatus,
    ConnectionType,
)
from deenverse.schemas.account import AccountSummary
from deenverse.schemas.common import ApiModel


class ConnectionCreateRequest(ApiModel):
    """Body of POST /api/imaam/{teacherId}/connect (may be empty)."""

    message: Optional[str] = Field(default=None, max_length=MESSAGE_MAX_LENGTH)

    @field_validator("message")
    @classmethod
    def strip_message(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v


class ConnectionResponse(ApiModel):
    id: uuid.UUID
    requester: AccountSummary
    recipient: AccountSummary
    status: ConnectionStatus
    type: ConnectionType
    message: str = ""
    accepted_at: Optional[datetime] = None
    last_interaction_at: datetime
    created_at: datetime
