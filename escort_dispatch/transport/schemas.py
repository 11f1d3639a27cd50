# escort_dispatch/transport/schemas.py
from typing import Any, Literal

from pydantic import BaseModel, Field

from escort_dispatch.core.domain import Channel


class NotifyIn(BaseModel):
    channel: Channel = Channel.SMS


class BulkNotifyIn(BaseModel):
    channel: Channel = Channel.SMS
    assignment_ids: list[str] | None = Field(default=None, max_length=1000)
    date_range: Literal["today", "week"] | None = None
    status: Literal["pending", "assigned"] | None = None


class PropagateIn(BaseModel):
    changes: dict[str, Any] = Field(default_factory=dict)


class RequestEditIn(BaseModel):
    changes: dict[str, Any] = Field(default_factory=dict)


class DashboardRefreshIn(BaseModel):
    filter: Literal["today", "week", "pending", "assigned"] = "today"


class ChannelResultOut(BaseModel):
    channel: str
    success: bool
    message: str
    error_code: str | None = None


class DispatchOut(BaseModel):
    assignment_id: str
    success: bool
    message: str
    error_code: str | None = None
    sms: ChannelResultOut | None = None
    email: ChannelResultOut | None = None


class BatchOut(BaseModel):
    successful: int
    failed: int
    errors: list[str]
    message: str
    total: int


class HistoryEntryOut(BaseModel):
    id: str
    timestamp: str
    type: str
    recipient: str
    request_id: str
    status: str
    message_preview: str
