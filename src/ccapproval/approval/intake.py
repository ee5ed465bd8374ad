"""Inbound human decisions.

Slack delivers button clicks as loosely-shaped ``block_actions`` payloads. They are decoded
at the boundary into a closed set of events (approve / reject); anything else is rejected
as malformed before it can reach the registry.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ccapproval.approval.formatter import DEFAULT_MAX_PARAMETER_CHARS, format_decision_message
from ccapproval.approval.models import ApprovalRequest, DecisionOutcome, MessageLocation
from ccapproval.approval.registry import ApprovalRegistry
from ccapproval.errors import InvalidInteractionError
from ccapproval.slack.gateway import MessagingGateway

logger = logging.getLogger(__name__)

Ack = Callable[[], Awaitable[None]]


class _SlackUser(BaseModel):
    id: str = Field(min_length=1)
    name: str | None = None


class _SlackAction(BaseModel):
    action_id: str
    value: str | None = None


class _SlackChannel(BaseModel):
    id: str


class _SlackMessage(BaseModel):
    ts: str


class _SlackContainer(BaseModel):
    channel_id: str | None = None
    message_ts: str | None = None


class SlackBlockActionsPayload(BaseModel):
    """The subset of a Slack ``block_actions`` payload that decisions depend on."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["block_actions"]
    user: _SlackUser
    actions: list[_SlackAction] = Field(min_length=1)
    channel: _SlackChannel | None = None
    message: _SlackMessage | None = None
    container: _SlackContainer | None = None

    def location(self) -> MessageLocation | None:
        channel_id = self.channel.id if self.channel else None
        message_ts = self.message.ts if self.message else None
        if self.container is not None:
            channel_id = channel_id or self.container.channel_id
            message_ts = message_ts or self.container.message_ts
        if channel_id and message_ts:
            return MessageLocation(channel_id=channel_id, message_ts=message_ts)
        return None


class _DecisionEventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    approval_id: UUID
    user_id: str = Field(min_length=1)
    location: MessageLocation | None = None

    @property
    def decision(self) -> DecisionOutcome:
        return DecisionOutcome(self.outcome)  # type: ignore[attr-defined]


class ApproveEvent(_DecisionEventBase):
    outcome: Literal["approve"] = "approve"


class RejectEvent(_DecisionEventBase):
    outcome: Literal["reject"] = "reject"


DecisionEvent = Annotated[ApproveEvent | RejectEvent, Field(discriminator="outcome")]

_decision_event_adapter: TypeAdapter[ApproveEvent | RejectEvent] = TypeAdapter(DecisionEvent)


def parse_interaction(payload: Mapping[str, Any]) -> ApproveEvent | RejectEvent:
    """Decode a raw Slack interaction payload into a decision event.

    Raises:
        InvalidInteractionError: If the payload is not an approve/reject button click.
    """
    try:
        parsed = SlackBlockActionsPayload.model_validate(payload)
    except ValidationError as e:
        raise InvalidInteractionError(f"Malformed interaction payload: {e}") from e

    action = parsed.actions[0]
    try:
        return _decision_event_adapter.validate_python(
            {
                "outcome": action.action_id,
                "approval_id": action.value,
                "user_id": parsed.user.id,
                "location": parsed.location(),
            }
        )
    except ValidationError as e:
        raise InvalidInteractionError(
            f"Unsupported interaction action {action.action_id!r}: {e}"
        ) from e


@dataclass
class DecisionIntake:
    """Applies human decisions to the registry exactly once and wakes the waiting caller."""

    registry: ApprovalRegistry
    gateway: MessagingGateway | None = None
    channel_label: str = "Slack"
    max_parameter_chars: int = DEFAULT_MAX_PARAMETER_CHARS

    async def handle_interaction(self, payload: Mapping[str, Any], ack: Ack) -> bool:
        """Acknowledge, decode and apply a raw interaction payload.

        Returns True if this interaction decided the approval.
        """
        await ack()
        event = parse_interaction(payload)
        return await self.decide(event)

    async def decide(
        self, event: ApproveEvent | RejectEvent, *, channel_label: str | None = None
    ) -> bool:
        """Apply a decision event.

        Returns False when the approval is unknown or already decided; that covers double
        clicks and clicks that arrive after the timeout.
        """
        outcome = event.decision
        label = channel_label or self.channel_label
        applied = self.registry.apply_decision(
            event.approval_id,
            outcome.status,
            event.user_id,
            f"{outcome.verb} via {label}",
        )
        if not applied:
            logger.info(
                "Ignoring %s for approval_id=%s: unknown or already decided",
                outcome.value,
                event.approval_id,
            )
            return False

        approval = self.registry.get_approval(event.approval_id)
        if approval is None:  # pragma: no cover - apply_decision just found it
            return False
        logger.info(
            "Approval %s approval_id=%s by %s",
            approval.status.value,
            approval.id,
            event.user_id,
        )

        try:
            await self._show_decision(event, approval)
        finally:
            # The decision is recorded; wake the caller even if the update was cancelled.
            self.registry.resolve_waiter(event.approval_id)
        return True

    async def _show_decision(
        self, event: ApproveEvent | RejectEvent, approval: ApprovalRequest
    ) -> None:
        location = event.location or approval.message
        if location is None or self.gateway is None:
            return
        message = format_decision_message(
            approval,
            event.user_id,
            event.decision,
            max_parameter_chars=self.max_parameter_chars,
        )
        try:
            await self.gateway.update_message(location, message)
        except Exception:
            logger.warning(
                "Failed to update request message for approval_id=%s",
                approval.id,
                exc_info=True,
            )
