"""Local HTTP API for inspecting and deciding approvals without Slack."""
