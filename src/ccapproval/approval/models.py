"""Approval records and the values exchanged at the approval boundary.

An ``ApprovalRequest`` starts ``pending`` and moves exactly once to one of the terminal
statuses. Records are frozen; the registry replaces them wholesale on every change.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, JsonValue

TOOL_NAME_MAX_LENGTH = 200


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    timeout = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self != ApprovalStatus.pending


class DecisionOutcome(str, Enum):
    """Outcome tag carried by a decision control."""

    approve = "approve"
    reject = "reject"

    @property
    def status(self) -> ApprovalStatus:
        if self == DecisionOutcome.approve:
            return ApprovalStatus.approved
        return ApprovalStatus.rejected

    @property
    def verb(self) -> str:
        return "Approved" if self == DecisionOutcome.approve else "Rejected"


class MessageLocation(BaseModel):
    """Where a notification landed on the messaging platform."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    message_ts: str


class RenderedMessage(BaseModel):
    """Notification content: a one-line fallback plus structured body blocks."""

    model_config = ConfigDict(frozen=True)

    summary_text: str
    blocks: list[dict[str, Any]] = Field(default_factory=list)


class ApprovalRequest(BaseModel):
    """A gated tool call awaiting (or holding) a human decision."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    created_at: datetime

    tool_name: str = Field(min_length=1, max_length=TOOL_NAME_MAX_LENGTH)
    parameters: JsonValue | None = None
    working_directory: str | None = None

    status: ApprovalStatus = ApprovalStatus.pending
    decided_by: str | None = None
    decided_at: datetime | None = None
    reason: str | None = None

    # Set once the request message has been posted.
    message: MessageLocation | None = None


class PermissionDecision(BaseModel):
    """Result handed back to the tool-call caller."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    behavior: Literal["allow", "deny"]
    updated_input: JsonValue | None = Field(default=None, alias="updatedInput")
    message: str | None = None

    @classmethod
    def allow(cls, updated_input: JsonValue | None = None) -> PermissionDecision:
        return cls(behavior="allow", updated_input=updated_input)

    @classmethod
    def deny(cls, message: str) -> PermissionDecision:
        return cls(behavior="deny", message=message)

    @property
    def allowed(self) -> bool:
        return self.behavior == "allow"

    def to_payload(self) -> str:
        """Serialize the decision the way the permission-prompt caller expects it."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
