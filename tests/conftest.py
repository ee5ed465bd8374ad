from __future__ import annotations

import pytest

from ccapproval.approval.intake import DecisionIntake
from ccapproval.approval.orchestrator import ApprovalOrchestrator
from ccapproval.approval.registry import ApprovalRegistry
from ccapproval.config.settings import PolicyConfig
from fakes import FakeGateway


@pytest.fixture
def registry() -> ApprovalRegistry:
    return ApprovalRegistry()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def orchestrator(registry: ApprovalRegistry, gateway: FakeGateway) -> ApprovalOrchestrator:
    return ApprovalOrchestrator(
        registry=registry,
        gateway=gateway,
        channel="approvals",
        policy=PolicyConfig(),
        timeout_seconds=5.0,
        working_directory="/work/repo",
    )


@pytest.fixture
def intake(registry: ApprovalRegistry, gateway: FakeGateway) -> DecisionIntake:
    return DecisionIntake(registry=registry, gateway=gateway)
