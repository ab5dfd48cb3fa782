"""
swarm-chat error types.

Only send-path and programming errors are raised. Stream and reconciliation
failures are absorbed and logged instead.
"""

from typing import Any, Optional


class SwarmChatError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class SubmissionError(SwarmChatError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("submission_error", message, details)


class ConnectionError(SwarmChatError):
    def __init__(self, message: str):
        super().__init__("connection_error", message)


class RegistryError(SwarmChatError):
    def __init__(self, message: str, code: str = "registry_error"):
        super().__init__(code, message)
