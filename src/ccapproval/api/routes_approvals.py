from __future__ import annotations

from typing import cast
from uuid import UUID

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from ccapproval.approval.intake import ApproveEvent, DecisionIntake, RejectEvent
from ccapproval.approval.models import ApprovalRequest, ApprovalStatus
from ccapproval.approval.registry import ApprovalRegistry

router = APIRouter(prefix="/api")

API_CHANNEL_LABEL = "API"


class DecisionBody(BaseModel):
    user: str = Field(default="api", min_length=1, max_length=200)


def _get_registry(request: Request) -> ApprovalRegistry:
    return cast(ApprovalRegistry, request.app.state.registry)


def _get_intake(request: Request) -> DecisionIntake:
    return cast(DecisionIntake, request.app.state.intake)


def _get_existing(request: Request, approval_id: UUID) -> ApprovalRequest:
    existing = _get_registry(request).get_approval(approval_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="approval not found")
    return existing


async def _decide(request: Request, event: ApproveEvent | RejectEvent) -> ApprovalRequest:
    _get_existing(request, event.approval_id)

    applied = await _get_intake(request).decide(event, channel_label=API_CHANNEL_LABEL)
    decided = _get_existing(request, event.approval_id)
    if not applied:
        raise HTTPException(
            status_code=409, detail=f"approval already {decided.status.value}"
        )
    return decided


@router.get("/approvals", response_model=list[ApprovalRequest])
def list_approvals(request: Request, status: ApprovalStatus | None = None) -> list[ApprovalRequest]:
    """List approvals known to this process, oldest first."""
    return list(_get_registry(request).list_approvals(status=status))


@router.get("/approvals/{approval_id}", response_model=ApprovalRequest)
def get_approval(approval_id: UUID, request: Request) -> ApprovalRequest:
    return _get_existing(request, approval_id)


@router.post("/approvals/{approval_id}/approve", response_model=ApprovalRequest)
async def approve(
    approval_id: UUID, request: Request, body: DecisionBody | None = None
) -> ApprovalRequest:
    user = (body or DecisionBody()).user
    return await _decide(request, ApproveEvent(approval_id=approval_id, user_id=user))


@router.post("/approvals/{approval_id}/reject", response_model=ApprovalRequest)
async def reject(
    approval_id: UUID, request: Request, body: DecisionBody | None = None
) -> ApprovalRequest:
    user = (body or DecisionBody()).user
    return await _decide(request, RejectEvent(approval_id=approval_id, user_id=user))
