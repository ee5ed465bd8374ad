"""Approval orchestrator: one state machine per gated tool call.

Flow for a gated call: create record -> post request -> verify channel membership ->
mark the thread root as pending -> wait for a decision or the deadline -> swap the
reaction for the outcome -> answer the caller.

The thread root (the first request message this orchestrator posted) is instance state,
so independent orchestrators never share a Slack thread by accident.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from ccapproval.approval.formatter import (
    DEFAULT_MAX_PARAMETER_CHARS,
    INVITE_MESSAGE,
    format_invite_message,
    format_request_message,
)
from ccapproval.approval.models import (
    TOOL_NAME_MAX_LENGTH,
    ApprovalRequest,
    ApprovalStatus,
    MessageLocation,
    PermissionDecision,
)
from ccapproval.approval.policy import requires_approval
from ccapproval.approval.registry import ApprovalRegistry
from ccapproval.config.settings import DEFAULT_TIMEOUT_SECONDS, PolicyConfig
from ccapproval.errors import NotificationError
from ccapproval.slack.gateway import MessagingGateway
from ccapproval.store.interface import ThreadStore
from ccapproval.store.models import SessionThreadMapping, ThreadStatus

logger = logging.getLogger(__name__)

PENDING_REACTION = "hourglass_flowing_sand"
APPROVED_REACTION = "white_check_mark"
DENIED_REACTION = "x"


@dataclass
class ApprovalOrchestrator:
    """Gates tool calls behind a human decision posted to a chat channel."""

    registry: ApprovalRegistry
    gateway: MessagingGateway
    channel: str
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    mention: str | None = None
    channel_label: str = "Slack"
    max_parameter_chars: int = DEFAULT_MAX_PARAMETER_CHARS
    thread_store: ThreadStore | None = None
    session_id: str = field(default_factory=lambda: str(uuid4()))
    working_directory: str | None = field(default_factory=os.getcwd)

    _thread_root: MessageLocation | None = field(default=None, init=False)
    _terminal_reaction: str | None = field(default=None, init=False)
    _in_flight: int = field(default=0, init=False)

    @property
    def thread_root(self) -> MessageLocation | None:
        return self._thread_root

    def resume_thread(self) -> bool:
        """Reuse the thread previously recorded for this session, if any."""
        if self.thread_store is None:
            return False
        try:
            mapping = self.thread_store.get(self.session_id)
        except Exception:
            logger.warning("Failed to read thread mapping for %s", self.session_id, exc_info=True)
            return False
        if mapping is None:
            return False
        self._thread_root = MessageLocation(
            channel_id=mapping.channel_id, message_ts=mapping.thread_ts
        )
        logger.info("Resuming thread %s for session %s", mapping.thread_ts, self.session_id)
        return True

    async def request_approval(
        self,
        tool_name: str,
        parameters: Any,
        *,
        wait_timeout: float | None = None,
    ) -> PermissionDecision:
        """Ask a human to allow or deny ``tool_name`` and wait for the answer.

        Args:
            tool_name: Name of the tool the agent wants to run.
            parameters: The tool's call arguments, passed back untouched on approval.
            wait_timeout: Seconds to wait for a decision; defaults to ``timeout_seconds``.

        Returns:
            ``allow`` with the original parameters, or ``deny`` with a reason.

        Raises:
            ValueError: If ``tool_name`` is blank or longer than ``TOOL_NAME_MAX_LENGTH``.
            NotificationError: If the request could not be delivered.
        """
        if not isinstance(tool_name, str) or not tool_name.strip():
            raise ValueError("tool_name must be a non-empty string")
        if len(tool_name) > TOOL_NAME_MAX_LENGTH:
            raise ValueError(f"tool_name must be at most {TOOL_NAME_MAX_LENGTH} characters")

        if not requires_approval(tool_name, self.policy):
            logger.debug("Tool %s does not require approval", tool_name)
            return PermissionDecision.allow(parameters)

        approval = self.registry.create_approval(
            tool_name, parameters, working_directory=self.working_directory
        )
        logger.info("Approval requested approval_id=%s tool=%s", approval.id, tool_name)

        location = await self._post_request(approval)

        if not await self._check_membership(approval, location):
            return PermissionDecision.deny(f"SlackError: {INVITE_MESSAGE}")

        root = self._adopt_thread_root(location)
        self._in_flight += 1
        try:
            await self._add_reaction(root, PENDING_REACTION)
            self._record_thread_status("executing")

            timeout = self.timeout_seconds if wait_timeout is None else wait_timeout
            logger.debug("Waiting for decision approval_id=%s timeout=%ss", approval.id, timeout)
            decided = await self.registry.wait_for_decision(approval.id, timeout=timeout)
        finally:
            self._in_flight -= 1

        logger.info(
            "Approval resolved approval_id=%s status=%s decided_by=%s",
            decided.id,
            decided.status.value,
            decided.decided_by,
        )
        await self._mark_outcome(root, decided)
        self._record_thread_status("done" if decided.status == ApprovalStatus.approved else "failed")
        return self._to_decision(decided, parameters)

    async def _post_request(self, approval: ApprovalRequest) -> MessageLocation:
        message = format_request_message(
            approval.tool_name,
            approval.parameters,
            approval.id,
            approval.working_directory,
            mention=self.mention,
            max_parameter_chars=self.max_parameter_chars,
        )
        thread_ts = self._thread_root.message_ts if self._thread_root else None
        try:
            location = await self.gateway.post_message(self.channel, message, thread_ts=thread_ts)
        except Exception as e:
            self.registry.withdraw(approval.id, f"Approval notification failed: {e}")
            raise NotificationError(f"Failed to post approval request: {e}") from e

        self.registry.bind_message(approval.id, location)
        logger.debug(
            "Posted approval request approval_id=%s channel=%s ts=%s thread=%s",
            approval.id,
            location.channel_id,
            location.message_ts,
            thread_ts,
        )
        return location

    async def _check_membership(self, approval: ApprovalRequest, location: MessageLocation) -> bool:
        try:
            is_member = await self.gateway.is_channel_member(location.channel_id)
        except Exception as e:
            self.registry.withdraw(approval.id, f"Approval notification failed: {e}")
            raise NotificationError(f"Failed to verify channel membership: {e}") from e

        if is_member:
            return True

        logger.warning(
            "Not a member of channel %s; withdrawing approval_id=%s",
            location.channel_id,
            approval.id,
        )
        self.registry.withdraw(approval.id, INVITE_MESSAGE)
        try:
            await self.gateway.delete_message(location)
        except Exception:
            logger.warning("Failed to delete request message", exc_info=True)
        try:
            await self.gateway.post_message(self.channel, format_invite_message())
        except Exception:
            logger.warning("Failed to post invite instructions", exc_info=True)
        return False

    def _adopt_thread_root(self, location: MessageLocation) -> MessageLocation:
        if self._thread_root is None:
            logger.debug("Starting thread %s in %s", location.message_ts, location.channel_id)
            self._thread_root = location
            self._terminal_reaction = None
        return self._thread_root

    async def _mark_outcome(self, root: MessageLocation, decided: ApprovalRequest) -> None:
        if self._in_flight == 0:
            await self._remove_reaction(root, PENDING_REACTION)
            if self._in_flight:
                # A request started while the marker was being removed.
                await self._add_reaction(root, PENDING_REACTION)

        reaction = APPROVED_REACTION if decided.status == ApprovalStatus.approved else DENIED_REACTION
        if self._terminal_reaction and self._terminal_reaction != reaction:
            await self._remove_reaction(root, self._terminal_reaction)
        await self._add_reaction(root, reaction)
        self._terminal_reaction = reaction

    async def _add_reaction(self, location: MessageLocation, name: str) -> None:
        try:
            await self.gateway.add_reaction(location, name)
        except Exception:
            logger.warning("Failed to add reaction %s", name, exc_info=True)

    async def _remove_reaction(self, location: MessageLocation, name: str) -> None:
        try:
            await self.gateway.remove_reaction(location, name)
        except Exception:
            logger.warning("Failed to remove reaction %s", name, exc_info=True)

    def _record_thread_status(self, status: ThreadStatus) -> None:
        if self.thread_store is None or self._thread_root is None:
            return
        root = self._thread_root
        try:
            if self.thread_store.get(self.session_id) is None:
                self.thread_store.create(
                    SessionThreadMapping(
                        session_id=self.session_id,
                        thread_ts=root.message_ts,
                        channel_id=root.channel_id,
                        status=status,
                    )
                )
            else:
                self.thread_store.update(
                    self.session_id,
                    thread_ts=root.message_ts,
                    channel_id=root.channel_id,
                    status=status,
                )
        except Exception:
            logger.warning("Failed to record thread status for %s", self.session_id, exc_info=True)

    def _to_decision(self, decided: ApprovalRequest, parameters: Any) -> PermissionDecision:
        if decided.status == ApprovalStatus.approved:
            return PermissionDecision.allow(parameters)
        return PermissionDecision.deny(f"Denied via {self.channel_label}: {decided.reason}")
