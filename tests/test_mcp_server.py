"""Tests for the tool-approval MCP handlers."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock
from uuid import UUID

import pytest
from fakes import FakeGateway
from mcp import types
from mcp.shared.exceptions import McpError

from ccapproval.approval.intake import ApproveEvent, DecisionIntake
from ccapproval.approval.orchestrator import ApprovalOrchestrator
from ccapproval.config.settings import PolicyConfig
from ccapproval.mcp import TOOL_NAME, ApprovalServer


@pytest.fixture
def server(orchestrator: ApprovalOrchestrator) -> ApprovalServer:
    return ApprovalServer(orchestrator=orchestrator)


def test_tool_definition(server: ApprovalServer) -> None:
    (tool,) = server._get_tool_definitions()

    assert tool.name == TOOL_NAME
    assert tool.inputSchema["required"] == ["tool_name", "input"]


@pytest.mark.asyncio
async def test_safe_tool_call_returns_allow_payload(
    server: ApprovalServer, gateway: FakeGateway
) -> None:
    result = await server._handle_tool_call(
        TOOL_NAME, {"tool_name": "Read", "input": {"file_path": "README.md"}}
    )

    assert len(result) == 1
    assert result[0].type == "text"
    assert json.loads(result[0].text) == {
        "behavior": "allow",
        "updatedInput": {"file_path": "README.md"},
    }
    assert gateway.call_count == 0


@pytest.mark.asyncio
async def test_gated_tool_call_waits_for_decision(
    server: ApprovalServer, gateway: FakeGateway, intake: DecisionIntake
) -> None:
    task = asyncio.create_task(
        server._handle_tool_call(TOOL_NAME, {"tool_name": "Bash", "input": {"command": "ls"}})
    )
    posted = await gateway.wait_for_post()
    await intake.decide(ApproveEvent(approval_id=UUID(posted.approval_id), user_id="U1"))

    result = await task

    assert json.loads(result[0].text) == {"behavior": "allow", "updatedInput": {"command": "ls"}}


@pytest.mark.asyncio
async def test_timeout_returns_deny_payload(
    server: ApprovalServer, orchestrator: ApprovalOrchestrator
) -> None:
    orchestrator.timeout_seconds = 0.01

    result = await server._handle_tool_call(
        TOOL_NAME, {"tool_name": "Bash", "input": {"command": "ls"}}
    )

    payload = json.loads(result[0].text)
    assert payload["behavior"] == "deny"
    assert "timed out" in payload["message"]
    assert "updatedInput" not in payload


@pytest.mark.asyncio
async def test_unknown_tool_is_method_not_found(server: ApprovalServer) -> None:
    with pytest.raises(McpError) as exc_info:
        await server._handle_tool_call("approve-everything", {})

    assert exc_info.value.error.code == types.METHOD_NOT_FOUND


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "arguments",
    [
        {},
        {"tool_name": "Bash"},
        {"tool_name": "", "input": {}},
        {"tool_name": "Bash", "input": "ls"},
    ],
)
async def test_invalid_arguments_are_invalid_params(
    server: ApprovalServer, gateway: FakeGateway, arguments: dict[str, object]
) -> None:
    with pytest.raises(McpError) as exc_info:
        await server._handle_tool_call(TOOL_NAME, arguments)

    assert exc_info.value.error.code == types.INVALID_PARAMS
    assert exc_info.value.error.message.startswith("Invalid arguments:")
    assert gateway.call_count == 0


@pytest.mark.asyncio
async def test_notification_failure_is_internal_error(
    server: ApprovalServer, gateway: FakeGateway
) -> None:
    gateway.post_error = RuntimeError("channel_not_found")

    with pytest.raises(McpError) as exc_info:
        await server._handle_tool_call(TOOL_NAME, {"tool_name": "Bash", "input": {"command": "ls"}})

    assert exc_info.value.error.code == types.INTERNAL_ERROR
    assert exc_info.value.error.message.startswith("Approval process failed:")
    assert "channel_not_found" in exc_info.value.error.message


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "tool_name",
    [
        pytest.param("   ", id="blank"),
        pytest.param("\t\n", id="whitespace"),
        pytest.param("B" * 201, id="too-long"),
    ],
)
async def test_malformed_tool_name_is_invalid_params(
    server: ApprovalServer,
    orchestrator: ApprovalOrchestrator,
    gateway: FakeGateway,
    tool_name: str,
) -> None:
    orchestrator.policy = PolicyConfig(gate_all_tools=True)

    with pytest.raises(McpError) as exc_info:
        await server._handle_tool_call(TOOL_NAME, {"tool_name": tool_name, "input": {}})

    assert exc_info.value.error.code == types.INVALID_PARAMS
    assert list(orchestrator.registry.list_approvals()) == []
    assert gateway.call_count == 0


@pytest.mark.asyncio
async def test_orchestrator_value_error_is_invalid_params(
    server: ApprovalServer, orchestrator: ApprovalOrchestrator
) -> None:
    orchestrator.request_approval = AsyncMock(  # type: ignore[method-assign]
        side_effect=ValueError("tool_name must be a non-empty string")
    )

    with pytest.raises(McpError) as exc_info:
        await server._handle_tool_call(TOOL_NAME, {"tool_name": "Bash", "input": {}})

    assert exc_info.value.error.code == types.INVALID_PARAMS
    assert "tool_name must be a non-empty string" in exc_info.value.error.message
