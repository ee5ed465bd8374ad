"""Render approval state into Slack Block Kit messages.

Pure functions only: nothing here talks to Slack or touches the registry.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from ccapproval.approval.models import ApprovalRequest, DecisionOutcome, RenderedMessage
from ccapproval.approval.truncation import render_parameters

DEFAULT_MAX_PARAMETER_CHARS = 500

INVITE_MESSAGE = "Please invite the app to this channel"

_BUTTONS: dict[DecisionOutcome, tuple[str, str]] = {
    DecisionOutcome.approve: ("✅ Approve", "primary"),
    DecisionOutcome.reject: ("❌ Reject", "danger"),
}

_SLACK_USER_ID = re.compile(r"[UW][A-Z0-9]{2,}")

_DECISION_HEADERS: dict[DecisionOutcome, tuple[str, str]] = {
    DecisionOutcome.approve: ("✅ *Tool execution approved*", "Tool execution approved"),
    DecisionOutcome.reject: ("❌ *Tool execution rejected*", "Tool execution rejected"),
}


def markdown_section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _code_block(text: str) -> str:
    return f"```{text}```"


def _format_mention(mention: str) -> str:
    if mention.startswith("<"):
        return mention
    if mention.startswith("S"):
        return f"<!subteam^{mention}>"
    return f"<@{mention}>"


def _format_user(user_id: str) -> str:
    # Decisions from the local API carry a plain name rather than a Slack user id.
    if _SLACK_USER_ID.fullmatch(user_id):
        return f"<@{user_id}>"
    return user_id


def make_decision_control(approval_id: UUID | str, outcome: DecisionOutcome) -> dict[str, Any]:
    """Build the button whose click carries ``approval_id`` and the outcome tag."""
    label, style = _BUTTONS[outcome]
    return {
        "type": "button",
        "text": {"type": "plain_text", "text": label},
        "style": style,
        "action_id": outcome.value,
        "value": str(approval_id),
    }


def format_request_message(
    tool_name: str,
    parameters: Any,
    approval_id: UUID | str,
    working_directory: str | None = None,
    *,
    mention: str | None = None,
    max_parameter_chars: int = DEFAULT_MAX_PARAMETER_CHARS,
) -> RenderedMessage:
    lines: list[str] = []
    if mention:
        lines.append(_format_mention(mention))
    lines += ["🔧 *Tool execution approval requested*", "", f"*Tool:* {tool_name}"]
    if working_directory:
        lines.append(f"*Working directory:* `{working_directory}`")
    lines.append("*Parameters:*")
    lines.append(_code_block(render_parameters(parameters, max_chars=max_parameter_chars)))

    return RenderedMessage(
        summary_text=f"Tool execution approval requested: {tool_name}",
        blocks=[
            markdown_section("\n".join(lines)),
            {
                "type": "actions",
                "block_id": f"approval_{approval_id}",
                "elements": [
                    make_decision_control(approval_id, DecisionOutcome.approve),
                    make_decision_control(approval_id, DecisionOutcome.reject),
                ],
            },
        ],
    )


def format_decision_message(
    approval: ApprovalRequest,
    deciding_user_id: str,
    outcome: DecisionOutcome,
    *,
    decided_at: datetime | None = None,
    max_parameter_chars: int = DEFAULT_MAX_PARAMETER_CHARS,
) -> RenderedMessage:
    """Render the terminal outcome. The decision buttons are dropped: they are single-use."""
    header, summary = _DECISION_HEADERS[outcome]
    when = decided_at or approval.decided_at or datetime.now(UTC)
    arguments = render_parameters(approval.parameters, max_chars=max_parameter_chars)

    lines = [header, "", f"*Tool:* {approval.tool_name}"]
    if approval.working_directory:
        lines.append(f"*Working directory:* `{approval.working_directory}`")
    lines += [
        f"*Arguments:* {_code_block(arguments)}",
        f"*Decided by:* {_format_user(deciding_user_id)}",
        f"*Time:* {when.isoformat()}",
    ]
    return RenderedMessage(
        summary_text=f"{summary}: {approval.tool_name}",
        blocks=[markdown_section("\n".join(lines))],
    )


def format_invite_message() -> RenderedMessage:
    return RenderedMessage(summary_text=INVITE_MESSAGE, blocks=[markdown_section(INVITE_MESSAGE)])
