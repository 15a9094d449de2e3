"""
Backend boundary for the Project Review Queue.

The remote system of record is an RPC service. Every call is a single async
request/response; a completed call reports success or failure in an
ActionResponse, while a call that could not complete raises
BackendTransportError.
"""

from typing import Protocol, runtime_checkable

from prq.models import ActionResponse, DeletionRequest, Project


class BackendError(Exception):
    """Base class for backend boundary errors."""

    pass


class BackendTransportError(BackendError):
    """Raised when a backend call could not be completed."""

    pass


@runtime_checkable
class ReviewBackend(Protocol):
    """Operations the review workflow needs from the remote service."""

    async def get_projects(self, subject_domain: str) -> list[Project]:
        """All projects a reviewer can see for one subject domain."""
        ...

    async def get_deletion_requests(self, subject_domain: str) -> list[DeletionRequest]:
        """Deletion requests (any status) filed under one subject domain."""
        ...

    async def approve_deletion_request(self, request_id: str, entity_type: str) -> ActionResponse:
        ...

    async def reject_deletion_request(self, request_id: str) -> ActionResponse:
        ...

    async def save_project_update(self, project: Project, status: str) -> ActionResponse:
        """Persist the full project content together with a new status."""
        ...

    async def get_project_details(self, project_id: str, owner_id: str | None) -> Project | None:
        """Full project tree, or None when the backend returned no project."""
        ...
