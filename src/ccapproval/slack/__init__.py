"""Slack transport: Web API gateway and Socket Mode listener."""
