"""
Data models for the Project Review Queue.
"""

from .deletion_request import (
    REVIEWABLE_ENTITY_TYPES,
    DeletionRequest,
    DeletionRequestDetail,
    EntityType,
    RequestStatus,
)
from .project import (
    ANNOTATION_FIELDS,
    ActivityEntry,
    DeletionAnnotated,
    Project,
    ProjectStatus,
    Resource,
    Stage,
    Task,
    TaskStatus,
)
from .results import ActionResponse, ErrorKind, ReviewActionResult

__all__ = [
    # Deletion requests
    "REVIEWABLE_ENTITY_TYPES",
    "DeletionRequest",
    "DeletionRequestDetail",
    "EntityType",
    "RequestStatus",
    # Project tree
    "ANNOTATION_FIELDS",
    "ActivityEntry",
    "DeletionAnnotated",
    "Project",
    "ProjectStatus",
    "Resource",
    "Stage",
    "Task",
    "TaskStatus",
    # Results
    "ActionResponse",
    "ErrorKind",
    "ReviewActionResult",
]
