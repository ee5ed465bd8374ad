"""In-memory approval registry.

The registry is the single owner of approval records and of the waiters blocked on them.
Every status change funnels through ``_finalize``, a synchronous check-then-set with no
suspension point, so the human-decision path and the timeout path can never both win on the
single-threaded event loop. Records live for the lifetime of the process.

Not thread-safe: all methods must be called from the event loop that owns the registry.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import JsonValue

from ccapproval.approval.models import ApprovalRequest, ApprovalStatus, MessageLocation

logger = logging.getLogger(__name__)

TIMEOUT_REASON = "Approval request timed out"

Waiter = Callable[[ApprovalRequest], None]


class ApprovalRegistry:
    def __init__(self) -> None:
        self._approvals: dict[UUID, ApprovalRequest] = {}  # approval_id -> record
        self._waiters: dict[UUID, Waiter] = {}  # approval_id -> one-shot callback

    def create_approval(
        self,
        tool_name: str,
        parameters: JsonValue | None,
        *,
        working_directory: str | None = None,
    ) -> ApprovalRequest:
        approval = ApprovalRequest(
            id=uuid4(),
            created_at=datetime.now(UTC),
            tool_name=tool_name,
            parameters=parameters,
            working_directory=working_directory,
        )
        self._approvals[approval.id] = approval
        logger.debug("Created approval approval_id=%s tool=%s", approval.id, tool_name)
        return approval

    def get_approval(self, approval_id: UUID) -> ApprovalRequest | None:
        return self._approvals.get(approval_id)

    def list_approvals(self, *, status: ApprovalStatus | None = None) -> Sequence[ApprovalRequest]:
        items = list(self._approvals.values())
        if status is not None:
            items = [a for a in items if a.status == status]
        return sorted(items, key=lambda a: a.created_at)

    def has_waiter(self, approval_id: UUID) -> bool:
        return approval_id in self._waiters

    def bind_message(self, approval_id: UUID, location: MessageLocation) -> ApprovalRequest | None:
        """Remember where the request message for ``approval_id`` was posted."""
        existing = self._approvals.get(approval_id)
        if existing is None:
            return None
        updated = existing.model_copy(update={"message": location})
        self._approvals[approval_id] = updated
        return updated

    def apply_decision(
        self,
        approval_id: UUID,
        status: ApprovalStatus,
        decided_by: str,
        reason: str | None = None,
    ) -> bool:
        """Record a human decision.

        Returns False, changing nothing, if the id is unknown or the approval is no longer
        pending (double click, click after timeout).
        """
        if status not in (ApprovalStatus.approved, ApprovalStatus.rejected):
            raise ValueError(f"Not a human decision status: {status.value}")
        return self._finalize(approval_id, status, decided_by=decided_by, reason=reason)

    def withdraw(self, approval_id: UUID, reason: str) -> bool:
        """Reject an approval on behalf of the system and release any waiter.

        Used when the request could not be delivered to a reviewer.
        """
        if not self._finalize(approval_id, ApprovalStatus.rejected, decided_by=None, reason=reason):
            return False
        self.resolve_waiter(approval_id)
        return True

    def fire_timeout(self, approval_id: UUID, reason: str = TIMEOUT_REASON) -> bool:
        """Time the approval out unless a decision already landed.

        A late firing after a decision is a silent no-op.
        """
        if not self._finalize(approval_id, ApprovalStatus.timeout, decided_by=None, reason=reason):
            return False
        logger.info("Approval timed out approval_id=%s", approval_id)
        self.resolve_waiter(approval_id)
        return True

    def _finalize(
        self,
        approval_id: UUID,
        status: ApprovalStatus,
        *,
        decided_by: str | None,
        reason: str | None,
    ) -> bool:
        # Check and write must stay in one synchronous step: no awaits in here.
        existing = self._approvals.get(approval_id)
        if existing is None or existing.status != ApprovalStatus.pending:
            return False
        self._approvals[approval_id] = existing.model_copy(
            update={
                "status": status,
                "decided_by": decided_by,
                "decided_at": datetime.now(UTC),
                "reason": reason,
            }
        )
        logger.debug(
            "Finalized approval approval_id=%s status=%s decided_by=%s",
            approval_id,
            status.value,
            decided_by,
        )
        return True

    def register_waiter(self, approval_id: UUID, callback: Waiter) -> None:
        """Store a one-shot callback invoked with the final record.

        Registering twice for the same id replaces the earlier waiter; callers must not.
        """
        if approval_id not in self._approvals:
            raise KeyError(approval_id)
        self._waiters[approval_id] = callback

    def resolve_waiter(self, approval_id: UUID) -> bool:
        """Pop and fire the waiter for ``approval_id``, if any.

        Callers must have moved the approval to a terminal status first.
        """
        waiter = self._waiters.pop(approval_id, None)
        if waiter is None:
            return False
        approval = self._approvals[approval_id]
        if approval.status == ApprovalStatus.pending:
            logger.warning("Resolving waiter for still-pending approval approval_id=%s", approval_id)
        waiter(approval)
        return True

    async def wait_for_decision(self, approval_id: UUID, *, timeout: float) -> ApprovalRequest:
        """Block until the approval is decided or ``timeout`` seconds elapse.

        The timer and the human decision race through the same gated ``_finalize``; whichever
        gets there first completes the wait and the other becomes a no-op.
        """
        approval = self._approvals.get(approval_id)
        if approval is None:
            raise KeyError(approval_id)
        if approval.status.is_terminal:
            # Decided between posting and waiting.
            return approval

        loop = asyncio.get_running_loop()
        future: asyncio.Future[ApprovalRequest] = loop.create_future()

        def _complete(decided: ApprovalRequest) -> None:
            if not future.done():
                future.set_result(decided)

        self.register_waiter(approval_id, _complete)
        timer = loop.call_later(max(timeout, 0.0), self.fire_timeout, approval_id)
        try:
            return await future
        finally:
            timer.cancel()
            # Only non-empty when the wait itself was cancelled (shutdown).
            if self._waiters.get(approval_id) is _complete:
                del self._waiters[approval_id]
