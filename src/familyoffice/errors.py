"""Application-level exception types for FamilyOffice."""

from __future__ import annotations

from pathlib import Path


class FamilyOfficeError(Exception):
    """Base exception for FamilyOffice."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message

    def with_prefix(self, prefix: str) -> FamilyOfficeError:
        """Prefix the message in place so the error can be re-raised with its own type."""
        self.message = f"{prefix}: {self.message}"
        return self


class TemplateNotFoundError(FamilyOfficeError):
    """Raised when a prompt template is missing or unreadable."""

    def __init__(self, name: str, reason: str = "not found") -> None:
        super().__init__(f"Failed to load prompt {name}: {reason}")
        self.name = name


class WorkingDirectoryError(FamilyOfficeError):
    """Raised when a session working directory cannot be created."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot create working directory {path}: {reason}")
        self.path = path


class SessionCreationError(FamilyOfficeError):
    """Raised when the agent runtime refuses to create a session."""


class TurnFailedError(FamilyOfficeError):
    """Raised when the runtime reports a failed turn."""

    def __init__(self, error: str) -> None:
        super().__init__(f"Task failed: {error}")
        self.error = error


class EmptyResponseError(FamilyOfficeError):
    """Raised when a turn finishes without any agent message."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "No response generated. The agent may need a different prompt or model configuration."
        )


class MarketDataError(FamilyOfficeError):
    """Raised when the market-data provider returns an error payload."""


class InvalidRequestError(FamilyOfficeError):
    """Raised when a task request is missing required input."""
