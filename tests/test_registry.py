"""Tests for the in-memory approval registry."""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from ccapproval.approval.models import ApprovalRequest, ApprovalStatus, MessageLocation
from ccapproval.approval.registry import TIMEOUT_REASON, ApprovalRegistry


def test_create_approval_starts_pending(registry: ApprovalRegistry) -> None:
    approval = registry.create_approval("Bash", {"command": "ls"}, working_directory="/repo")

    assert approval.status == ApprovalStatus.pending
    assert approval.decided_by is None
    assert approval.decided_at is None
    assert approval.message is None
    assert registry.get_approval(approval.id) == approval


def test_create_approval_generates_distinct_ids(registry: ApprovalRegistry) -> None:
    ids = {registry.create_approval("Bash", {"command": "ls"}).id for _ in range(20)}
    assert len(ids) == 20


def test_get_unknown_approval_returns_none(registry: ApprovalRegistry) -> None:
    assert registry.get_approval(uuid4()) is None


def test_apply_decision_records_human_decision(registry: ApprovalRegistry) -> None:
    approval = registry.create_approval("Bash", {"command": "rm -rf build"})

    assert registry.apply_decision(approval.id, ApprovalStatus.rejected, "U123", "unsafe")

    decided = registry.get_approval(approval.id)
    assert decided is not None
    assert decided.status == ApprovalStatus.rejected
    assert decided.decided_by == "U123"
    assert decided.reason == "unsafe"
    assert decided.decided_at is not None


def test_second_decision_is_ignored(registry: ApprovalRegistry) -> None:
    """Only the first decision counts; later ones change nothing."""
    approval = registry.create_approval("Bash", {"command": "ls"})

    assert registry.apply_decision(approval.id, ApprovalStatus.approved, "U1")
    assert not registry.apply_decision(approval.id, ApprovalStatus.rejected, "U2")

    decided = registry.get_approval(approval.id)
    assert decided is not None
    assert decided.status == ApprovalStatus.approved
    assert decided.decided_by == "U1"


def test_apply_decision_unknown_id_returns_false(registry: ApprovalRegistry) -> None:
    assert not registry.apply_decision(uuid4(), ApprovalStatus.approved, "U1")


def test_apply_decision_rejects_non_human_status(registry: ApprovalRegistry) -> None:
    approval = registry.create_approval("Bash", {"command": "ls"})

    with pytest.raises(ValueError):
        registry.apply_decision(approval.id, ApprovalStatus.timeout, "U1")
    with pytest.raises(ValueError):
        registry.apply_decision(approval.id, ApprovalStatus.pending, "U1")

    stored = registry.get_approval(approval.id)
    assert stored is not None
    assert stored.status == ApprovalStatus.pending


def test_fire_timeout_after_decision_is_noop(registry: ApprovalRegistry) -> None:
    approval = registry.create_approval("Bash", {"command": "ls"})
    registry.apply_decision(approval.id, ApprovalStatus.approved, "U1")

    assert not registry.fire_timeout(approval.id)

    stored = registry.get_approval(approval.id)
    assert stored is not None
    assert stored.status == ApprovalStatus.approved


def test_fire_timeout_marks_pending_approval(registry: ApprovalRegistry) -> None:
    approval = registry.create_approval("Bash", {"command": "ls"})

    assert registry.fire_timeout(approval.id)

    stored = registry.get_approval(approval.id)
    assert stored is not None
    assert stored.status == ApprovalStatus.timeout
    assert stored.decided_by is None
    assert stored.reason == TIMEOUT_REASON


def test_bind_message_keeps_status(registry: ApprovalRegistry) -> None:
    approval = registry.create_approval("Bash", {"command": "ls"})
    location = MessageLocation(channel_id="C1", message_ts="1.0")

    bound = registry.bind_message(approval.id, location)

    assert bound is not None
    assert bound.message == location
    assert bound.status == ApprovalStatus.pending
    assert registry.bind_message(uuid4(), location) is None


def test_list_approvals_filters_by_status(registry: ApprovalRegistry) -> None:
    first = registry.create_approval("Bash", {"command": "ls"})
    second = registry.create_approval("Write", {"file_path": "a.txt"})
    registry.apply_decision(first.id, ApprovalStatus.approved, "U1")

    assert [a.id for a in registry.list_approvals()] == [first.id, second.id]
    assert [a.id for a in registry.list_approvals(status=ApprovalStatus.pending)] == [second.id]
    assert [a.id for a in registry.list_approvals(status=ApprovalStatus.approved)] == [first.id]


def test_register_waiter_unknown_id_raises(registry: ApprovalRegistry) -> None:
    with pytest.raises(KeyError):
        registry.register_waiter(uuid4(), lambda _: None)


def test_resolve_waiter_fires_once(registry: ApprovalRegistry) -> None:
    approval = registry.create_approval("Bash", {"command": "ls"})
    seen: list[ApprovalRequest] = []
    registry.register_waiter(approval.id, seen.append)
    registry.apply_decision(approval.id, ApprovalStatus.approved, "U1")

    assert registry.resolve_waiter(approval.id)
    assert not registry.resolve_waiter(approval.id)

    assert len(seen) == 1
    assert seen[0].status == ApprovalStatus.approved
    assert not registry.has_waiter(approval.id)


def test_withdraw_rejects_and_releases_waiter(registry: ApprovalRegistry) -> None:
    approval = registry.create_approval("Bash", {"command": "ls"})
    seen: list[ApprovalRequest] = []
    registry.register_waiter(approval.id, seen.append)

    assert registry.withdraw(approval.id, "Approval notification failed: boom")
    assert not registry.withdraw(approval.id, "again")

    assert [a.status for a in seen] == [ApprovalStatus.rejected]
    assert seen[0].decided_by is None
    assert seen[0].reason == "Approval notification failed: boom"


@pytest.mark.asyncio
async def test_wait_for_decision_returns_human_decision(registry: ApprovalRegistry) -> None:
    approval = registry.create_approval("Bash", {"command": "ls"})

    async def decide_soon() -> None:
        await asyncio.sleep(0.01)
        registry.apply_decision(approval.id, ApprovalStatus.approved, "U1", "Approved via Slack")
        registry.resolve_waiter(approval.id)

    task = asyncio.create_task(decide_soon())
    decided = await registry.wait_for_decision(approval.id, timeout=5.0)
    await task

    assert decided.status == ApprovalStatus.approved
    assert decided.decided_by == "U1"
    assert not registry.has_waiter(approval.id)


@pytest.mark.asyncio
async def test_wait_for_decision_times_out(registry: ApprovalRegistry) -> None:
    approval = registry.create_approval("Bash", {"command": "ls"})

    decided = await registry.wait_for_decision(approval.id, timeout=0.05)

    assert decided.status == ApprovalStatus.timeout
    assert decided.reason == TIMEOUT_REASON
    assert not registry.has_waiter(approval.id)


@pytest.mark.asyncio
async def test_decision_before_zero_timeout_wait_wins(registry: ApprovalRegistry) -> None:
    """A decision applied before the wait starts resolves even with a zero timeout."""
    approval = registry.create_approval("Bash", {"command": "ls"})
    registry.apply_decision(approval.id, ApprovalStatus.approved, "U1")

    decided = await registry.wait_for_decision(approval.id, timeout=0)

    assert decided.status == ApprovalStatus.approved
    stored = registry.get_approval(approval.id)
    assert stored is not None
    assert stored.status == ApprovalStatus.approved


@pytest.mark.asyncio
async def test_late_decision_after_timeout_is_ignored(registry: ApprovalRegistry) -> None:
    approval = registry.create_approval("Bash", {"command": "ls"})

    decided = await registry.wait_for_decision(approval.id, timeout=0.01)
    assert decided.status == ApprovalStatus.timeout

    assert not registry.apply_decision(approval.id, ApprovalStatus.approved, "U1")
    stored = registry.get_approval(approval.id)
    assert stored is not None
    assert stored.status == ApprovalStatus.timeout


@pytest.mark.asyncio
async def test_cancelled_wait_removes_waiter(registry: ApprovalRegistry) -> None:
    approval = registry.create_approval("Bash", {"command": "ls"})

    task = asyncio.create_task(registry.wait_for_decision(approval.id, timeout=60))
    await asyncio.sleep(0)
    assert registry.has_waiter(approval.id)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert not registry.has_waiter(approval.id)
    stored = registry.get_approval(approval.id)
    assert stored is not None
    assert stored.status == ApprovalStatus.pending


@pytest.mark.asyncio
async def test_wait_for_unknown_approval_raises(registry: ApprovalRegistry) -> None:
    with pytest.raises(KeyError):
        await registry.wait_for_decision(uuid4(), timeout=1)
