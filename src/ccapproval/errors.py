from __future__ import annotations


class CcapprovalError(Exception):
    """Base class for errors raised by ccapproval."""


class ConfigurationError(CcapprovalError):
    """Required configuration is missing or invalid."""


class InvalidInteractionError(CcapprovalError, ValueError):
    """An inbound interaction payload could not be decoded into a decision."""


class NotificationError(CcapprovalError):
    """Posting the approval request to the messaging gateway failed."""


class SessionNotFoundError(CcapprovalError, KeyError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id

    def __str__(self) -> str:
        return str(self.args[0])
