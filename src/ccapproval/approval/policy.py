from __future__ import annotations

from ccapproval.config.settings import DEFAULT_DANGEROUS_TOOLS, PolicyConfig

__all__ = ["DEFAULT_DANGEROUS_TOOLS", "requires_approval"]


def requires_approval(tool_name: str, policy: PolicyConfig) -> bool:
    """Return True if a call to ``tool_name`` must be approved by a human."""
    if policy.gate_all_tools:
        return True
    return tool_name in policy.dangerous_tools
