"""Human-in-the-loop Slack approval gate for agent tool calls."""

__version__ = "0.4.0"
