"""
Deletion request models for the Project Review Queue.

Requests are created by students elsewhere and consumed read-only here.
The reconciliation pass turns them into annotations on the project tree and
into DeletionRequestDetail rows for the reviewer's details panel.
"""

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class EntityType(str, Enum):
    """Level of the project tree a deletion request targets."""

    PROJECT = "project"
    STAGE = "stage"
    TASK = "task"


class RequestStatus(str, Enum):
    """Lifecycle status of a deletion request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


REVIEWABLE_ENTITY_TYPES = frozenset(e.value for e in EntityType)


class DeletionRequest(BaseModel):
    """A student's request to delete a project, stage or task."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    request_id: str = Field(..., min_length=1)
    entity_type: str
    project_id: str | None = None
    stage_id: str | None = None
    task_id: str | None = None
    status: str = RequestStatus.PENDING.value
    reason: str = ""
    requester: str | None = Field(
        default=None,
        validation_alias=AliasChoices("requester", "requested_by", "student_email", "email_id"),
    )
    timestamp: str | None = Field(
        default=None,
        validation_alias=AliasChoices("timestamp", "created_at", "requested_at"),
    )

    # Some backends echo the target's title on the request itself
    title: str | None = Field(
        default=None,
        validation_alias=AliasChoices("title", "entity_title", "task_title", "stage_title"),
    )

    @field_validator("entity_type", "status", mode="before")
    @classmethod
    def _lowercase(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("request_id", "project_id", "stage_id", "task_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING.value

    @property
    def is_reviewable(self) -> bool:
        """Pending and aimed at a level of the tree this queue understands."""
        return self.is_pending and self.entity_type in REVIEWABLE_ENTITY_TYPES


class DeletionRequestDetail(BaseModel):
    """One row of the reviewer-facing deletion request panel."""

    request_id: str
    entity_type: str
    project_id: str | None = None
    stage_id: str | None = None
    task_id: str | None = None
    entity_title: str = ""
    reason: str = ""
    requester: str | None = None
    timestamp: str | None = None
