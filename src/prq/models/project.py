"""
Project tree models for the Project Review Queue.

A Project owns an ordered list of Stages and each Stage owns its Tasks.
Payloads from the backend are loosely typed, so every model keeps unknown
fields (extra="allow") and survives a load, edit and save round trip.

The three deletion annotation fields are derived by reconciliation. Values
present in raw backend data are never trusted.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .deletion_request import DeletionRequest, DeletionRequestDetail, RequestStatus

ANNOTATION_FIELDS = ("deletion_requested", "deletion_request_status", "deletion_request_id")

# Project fields the backend may send as null
PROJECT_TEXT_FIELDS = (
    "title",
    "description",
    "subject_domain",
    "owner_name",
    "owner_email",
)


class ProjectStatus(str, Enum):
    """Project review status."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REVISION = "Revision"
    PENDING_REVISION = "Pending Revision"
    COMPLETED = "Completed"
    PENDING_DELETION = "Pending Deletion"


class TaskStatus(str, Enum):
    """Task status values seen in practice. Stored on tasks as free text."""

    NONE = ""
    COMPLETED = "Completed"
    REVISION = "Revision"
    PENDING_DELETION = "Pending Deletion"
    PENDING_ADDITION = "Pending Addition"


class DeletionAnnotated(BaseModel):
    """Base for entities that can carry a deletion request annotation."""

    model_config = ConfigDict(extra="allow")

    deletion_requested: bool | None = None
    deletion_request_status: str | None = None
    deletion_request_id: str | None = None

    def clear_deletion_annotation(self) -> None:
        for name in ANNOTATION_FIELDS:
            setattr(self, name, None)

    def annotate_deletion(self, request: DeletionRequest) -> None:
        self.deletion_requested = True
        self.deletion_request_status = RequestStatus.PENDING.value
        self.deletion_request_id = request.request_id

    @property
    def has_pending_deletion(self) -> bool:
        return (
            bool(self.deletion_requested)
            and self.deletion_request_status == RequestStatus.PENDING.value
            and bool(self.deletion_request_id)
        )


class Task(DeletionAnnotated):
    """Leaf work item inside a stage."""

    task_id: str | None = None
    title: str = ""
    description: str = ""
    status: str = TaskStatus.NONE.value
    due_date: str | None = None
    resource_links: list[str] = Field(default_factory=list)

    @field_validator("task_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value

    @field_validator("title", "description", "status", mode="before")
    @classmethod
    def _none_text(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("resource_links", mode="before")
    @classmethod
    def _none_links(cls, value: object) -> object:
        return [] if value is None else value


class Stage(DeletionAnnotated):
    """
    An ordered step of a project.

    Entries without a stage_id are gate placeholders kept for round-tripping;
    they are skipped when stages are indexed for review.
    """

    stage_id: str | None = None
    order: int = 0
    title: str = ""
    tasks: list[Task] = Field(default_factory=list)
    gate: dict[str, Any] | None = None

    @field_validator("stage_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value

    @field_validator("tasks", mode="before")
    @classmethod
    def _none_tasks(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("title", mode="before")
    @classmethod
    def _none_title(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("order", mode="before")
    @classmethod
    def _none_order(cls, value: object) -> object:
        return 0 if value is None else value

    def find_task(self, task_id: str) -> Task | None:
        return next((t for t in self.tasks if t.task_id == task_id), None)


class Resource(BaseModel):
    """A resource attached to a project."""

    model_config = ConfigDict(extra="allow")

    title: str = ""
    url: str = ""
    resource_type: str | None = None

    @field_validator("title", "url", mode="before")
    @classmethod
    def _none_text(cls, value: object) -> object:
        return "" if value is None else value


class ActivityEntry(BaseModel):
    """An entry in a project's activity log."""

    model_config = ConfigDict(extra="allow")

    actor: str = ""
    action: str = ""
    timestamp: str | None = None
    note: str = ""

    @field_validator("actor", "action", "note", mode="before")
    @classmethod
    def _none_text(cls, value: object) -> object:
        return "" if value is None else value


class Project(DeletionAnnotated):
    """
    A student-authored project under review.

    The has_deletion_requests, deletion_request_count and
    deletion_request_details fields are the per-project summary produced by
    reconciliation.
    """

    project_id: str = ""
    user_id: str | None = None
    title: str = ""
    description: str = ""
    subject_domain: str = ""
    status: str = ProjectStatus.PENDING.value
    owner_name: str = ""
    owner_email: str = ""
    created_at: str | None = None

    stages: list[Stage] = Field(default_factory=list)
    resources: list[Resource] = Field(default_factory=list)
    activity: list[ActivityEntry] = Field(default_factory=list)

    # Reconciliation summary
    has_deletion_requests: bool = False
    deletion_request_count: int = 0
    deletion_request_details: list[DeletionRequestDetail] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _apply_field_fallbacks(cls, data: Any) -> Any:
        """Map the alternate field names the backend uses onto ours."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("project_id") and data.get("id"):
            data["project_id"] = data["id"]
        if not data.get("title") and data.get("project_title"):
            data["title"] = data["project_title"]
        if not data.get("owner_name") and data.get("Student_Name"):
            data["owner_name"] = data["Student_Name"]
        for key in ("stages", "resources", "activity"):
            if data.get(key) is None:
                data.pop(key, None)
        if not data.get("status"):
            data.pop("status", None)
        if data.get("project_id") is None:
            data.pop("project_id", None)
        else:
            data["project_id"] = str(data["project_id"])
        if isinstance(data.get("user_id"), int):
            data["user_id"] = str(data["user_id"])
        for key in PROJECT_TEXT_FIELDS:
            if key in data and data[key] is None:
                data[key] = ""
        return data

    def review_stages(self) -> list[Stage]:
        """Real stages (gates excluded) in display order, ties kept in list order."""
        stages = [s for s in self.stages if s.stage_id]
        return sorted(stages, key=lambda s: s.order)

    def find_stage(self, stage_id: str) -> Stage | None:
        return next((s for s in self.stages if s.stage_id == stage_id), None)

    def iter_tasks(self):
        for stage in self.stages:
            yield from stage.tasks

    def remove_stage(self, stage_id: str) -> bool:
        before = len(self.stages)
        self.stages = [s for s in self.stages if s.stage_id != stage_id]
        return len(self.stages) != before

    def remove_task(self, stage_id: str, task_id: str) -> bool:
        stage = self.find_stage(stage_id)
        if stage is None:
            return False
        before = len(stage.tasks)
        stage.tasks = [t for t in stage.tasks if t.task_id != task_id]
        return len(stage.tasks) != before
