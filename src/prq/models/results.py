"""
Result types for backend calls and reviewer actions.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ActionResponse(BaseModel):
    """Normalised reply of a mutating backend call."""

    model_config = ConfigDict(extra="allow")

    success: bool = False
    message: str | None = None


class ErrorKind(str, Enum):
    """Why a reviewer action did not succeed."""

    VALIDATION = "validation"  # rejected locally, backend never called
    BACKEND = "backend"  # backend answered success=False
    TRANSPORT = "transport"  # the call itself errored
    BUSY = "busy"  # another action is still saving


class ReviewActionResult(BaseModel):
    """Outcome of a ReviewWorkflow action."""

    success: bool
    message: str
    error_kind: ErrorKind | None = None
    request_id: str | None = None

    @classmethod
    def ok(cls, message: str, request_id: str | None = None) -> "ReviewActionResult":
        return cls(success=True, message=message, request_id=request_id)

    @classmethod
    def failed(
        cls, kind: ErrorKind, message: str, request_id: str | None = None
    ) -> "ReviewActionResult":
        return cls(success=False, message=message, error_kind=kind, request_id=request_id)
