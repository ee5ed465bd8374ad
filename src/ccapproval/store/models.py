from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ThreadStatus = Literal["executing", "done", "failed"]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class SessionThreadMapping(BaseModel):
    """Links an agent session to the Slack thread its approvals are posted in."""

    # camelCase on disk so existing session-threads.json files keep loading.
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    thread_ts: str = Field(alias="threadTs")
    channel_id: str = Field(alias="channelId")
    status: ThreadStatus = "executing"
    created_at: str = Field(alias="createdAt", default_factory=_now_iso)
    updated_at: str = Field(alias="updatedAt", default_factory=_now_iso)
