"""MCP stdio server exposing the ``tool-approval`` permission prompt tool.

The agent calls ``tool-approval`` with ``{tool_name, input}`` before running a tool and
receives a JSON decision ``{behavior, updatedInput?, message?}`` as text content.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from pydantic import BaseModel, Field, JsonValue, ValidationError, field_validator

from ccapproval import __version__
from ccapproval.approval.models import TOOL_NAME_MAX_LENGTH
from ccapproval.approval.orchestrator import ApprovalOrchestrator

logger = logging.getLogger(__name__)

SERVER_NAME = "ccapproval"
TOOL_NAME = "tool-approval"


class ToolApprovalArguments(BaseModel):
    tool_name: str = Field(min_length=1, max_length=TOOL_NAME_MAX_LENGTH)
    input: dict[str, JsonValue]

    @field_validator("tool_name")
    @classmethod
    def _reject_blank_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("tool_name must not be blank")
        return value


def _error(code: int, message: str) -> McpError:
    return McpError(types.ErrorData(code=code, message=message))


@dataclass
class ApprovalServer:
    """MCP server that answers permission prompts through the approval orchestrator."""

    orchestrator: ApprovalOrchestrator

    _server: Server = field(init=False)

    def __post_init__(self) -> None:
        self._server = Server(SERVER_NAME, version=__version__)
        self._register_handlers()

    def _register_handlers(self) -> None:
        @self._server.list_tools()  # type: ignore[no-untyped-call,untyped-decorator]
        async def list_tools() -> list[types.Tool]:
            return self._get_tool_definitions()

        @self._server.call_tool()  # type: ignore[untyped-decorator]
        async def call_tool(name: str, arguments: dict[str, Any] | None) -> Sequence[types.TextContent]:
            return await self._handle_tool_call(name, arguments or {})

    def _get_tool_definitions(self) -> list[types.Tool]:
        return [
            types.Tool(
                name=TOOL_NAME,
                description="Request approval for dangerous tool usage with Slack notification",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "tool_name": {
                            "type": "string",
                            "description": "Name of the tool requiring approval",
                        },
                        "input": {
                            "type": "object",
                            "description": "Parameters being passed to the tool",
                        },
                    },
                    "required": ["tool_name", "input"],
                },
            )
        ]

    async def _handle_tool_call(
        self, name: str, arguments: dict[str, Any]
    ) -> Sequence[types.TextContent]:
        """Validate the call, run the approval flow and serialize the decision.

        Invalid arguments are the caller's fault and surface as ``INVALID_PARAMS``; anything
        that goes wrong inside the approval flow surfaces as ``INTERNAL_ERROR``.
        """
        if name != TOOL_NAME:
            raise _error(types.METHOD_NOT_FOUND, f"Unknown tool: {name}")

        try:
            args = ToolApprovalArguments.model_validate(arguments)
        except ValidationError as e:
            raise _error(types.INVALID_PARAMS, f"Invalid arguments: {e}") from e

        try:
            decision = await self.orchestrator.request_approval(args.tool_name, args.input)
        except ValueError as e:
            raise _error(types.INVALID_PARAMS, f"Invalid arguments: {e}") from e
        except Exception as e:
            logger.error("Approval process failed for %s: %s", args.tool_name, e, exc_info=True)
            raise _error(types.INTERNAL_ERROR, f"Approval process failed: {e}") from e

        logger.debug("Returning decision for %s: %s", args.tool_name, decision.behavior)
        return [types.TextContent(type="text", text=decision.to_payload())]

    async def run(self) -> None:
        """Serve MCP over stdio until the client closes stdin."""
        async with stdio_server() as (read, write):
            await self._server.run(read, write, self._server.create_initialization_options())
        logger.debug("MCP client disconnected")
