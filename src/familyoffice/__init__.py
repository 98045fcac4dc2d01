"""FamilyOffice - agent-driven equity research."""

from familyoffice.errors import (
    EmptyResponseError,
    FamilyOfficeError,
    InvalidRequestError,
    SessionCreationError,
    TemplateNotFoundError,
    TurnFailedError,
    WorkingDirectoryError,
)
from familyoffice.runtime.reducer import StreamReducer, TurnResult
from familyoffice.tasks.desk import ResearchDesk

__version__ = "0.1.0"

__all__ = [
    "EmptyResponseError",
    "FamilyOfficeError",
    "InvalidRequestError",
    "ResearchDesk",
    "SessionCreationError",
    "StreamReducer",
    "TemplateNotFoundError",
    "TurnFailedError",
    "TurnResult",
    "WorkingDirectoryError",
]
