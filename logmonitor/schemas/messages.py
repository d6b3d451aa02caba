# logmonitor/schemas/messages.py
"""
Live feed message schemas (WS /ws/logs).

Server -> client messages form a closed union tagged by `type`:
- {"type": "status", "status": "connected"}     once per connection
- {"type": "subscribed", "fileId": ..., "fileName": ...}   once per subscription
- {"type": "logEntry", "data": LogRecord}        per new or merged record

Client -> server: {"type": "subscribe", "fileId": ...}. The legacy web client
sends the identifier under "fileName"; both keys are accepted.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import Field, TypeAdapter, model_validator

from logmonitor.schemas.common import CamelModel
from logmonitor.schemas.logs import LogRecord


class StatusMessage(CamelModel):
    type: Literal["status"] = "status"
    status: Literal["connected"] = "connected"


class SubscribedMessage(CamelModel):
    type: Literal["subscribed"] = "subscribed"
    file_id: str
    file_name: str


class LogEntryMessage(CamelModel):
    type: Literal["logEntry"] = "logEntry"
    data: LogRecord


ServerMessage = Annotated[
    Union[StatusMessage, SubscribedMessage, LogEntryMessage],
    Field(discriminator="type"),
]


class SubscribeRequest(CamelModel):
    type: Literal["subscribe"]
    file_id: Optional[str] = None
    file_name: Optional[str] = None

    @model_validator(mode="after")
    def _require_target(self):
        if not (self.file_id or self.file_name):
            raise ValueError("subscribe requires fileId")
        return self

    @property
    def target(self) -> str:
        return self.file_id or self.file_name or ""


server_message_adapter = TypeAdapter(ServerMessage)


def to_wire(message) -> dict:
    """JSON-ready dict with camelCase keys."""
    return message.model_dump(mode="json", by_alias=True)
