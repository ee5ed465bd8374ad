"""MCP server module.

Exposes the permission prompt tool consumed by the agent.
"""

from ccapproval.mcp.server import TOOL_NAME, ApprovalServer, ToolApprovalArguments

__all__ = ["TOOL_NAME", "ApprovalServer", "ToolApprovalArguments"]
