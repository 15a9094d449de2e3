"""
Pytest configuration and fixtures for the Project Review Queue tests.
"""

import pytest

from prq.backend.base import BackendTransportError
from prq.models import ActionResponse, DeletionRequest, Project
from prq.services.request_store import RequestStore
from prq.services.review_workflow import ReviewSession, ReviewWorkflow


class FakeBackend:
    """In-memory ReviewBackend that records every call."""

    def __init__(self):
        self.projects: dict[str, list[Project]] = {}
        self.requests_by_domain: dict[str, list[DeletionRequest]] = {}
        self.failing_domains: set[str] = set()
        self.details: dict[str, Project] = {}
        self.details_error: Exception | None = None
        self.projects_error: Exception | None = None
        self.response = ActionResponse(success=True)
        self.error: Exception | None = None
        self.calls: list[tuple] = []

    async def get_projects(self, subject_domain):
        self.calls.append(("get_projects", subject_domain))
        if self.projects_error:
            raise self.projects_error
        return [p.model_copy(deep=True) for p in self.projects.get(subject_domain, [])]

    async def get_deletion_requests(self, subject_domain):
        self.calls.append(("get_deletion_requests", subject_domain))
        if subject_domain in self.failing_domains:
            raise BackendTransportError(f"lookup failed for {subject_domain}")
        return list(self.requests_by_domain.get(subject_domain, []))

    async def approve_deletion_request(self, request_id, entity_type):
        self.calls.append(("approve_deletion_request", request_id, entity_type))
        if self.error:
            raise self.error
        return self.response

    async def reject_deletion_request(self, request_id):
        self.calls.append(("reject_deletion_request", request_id))
        if self.error:
            raise self.error
        return self.response

    async def save_project_update(self, project, status):
        self.calls.append(("save_project_update", project, status))
        if self.error:
            raise self.error
        return self.response

    async def get_project_details(self, project_id, owner_id):
        self.calls.append(("get_project_details", project_id, owner_id))
        if self.details_error:
            raise self.details_error
        detail = self.details.get(project_id)
        return detail.model_copy(deep=True) if detail else None

    def mutating_calls(self) -> list[tuple]:
        mutating = {"approve_deletion_request", "reject_deletion_request", "save_project_update"}
        return [c for c in self.calls if c[0] in mutating]


def build_project(project_id="P1", **overrides) -> Project:
    """Project with two stages: S1 (T1, T2) and S2 (T3)."""
    data = {
        "project_id": project_id,
        "user_id": "U1",
        "title": "Water Quality Study",
        "description": "Testing the local river",
        "subject_domain": "Science",
        "status": "Approved",
        "stages": [
            {
                "stage_id": "S1",
                "order": 1,
                "title": "Research",
                "tasks": [
                    {"task_id": "T1", "title": "Collect samples", "status": "Completed"},
                    {"task_id": "T2", "title": "Read papers", "status": ""},
                ],
            },
            {
                "stage_id": "S2",
                "order": 2,
                "title": "Analysis",
                "tasks": [{"task_id": "T3", "title": "Chart results", "status": ""}],
            },
        ],
    }
    data.update(overrides)
    return Project.model_validate(data)


def build_request(request_id="R1", entity_type="task", **overrides) -> DeletionRequest:
    data = {
        "request_id": request_id,
        "entity_type": entity_type,
        "project_id": "P1",
        "status": "pending",
        "reason": "No longer needed",
        "requester": "student@example.org",
        "timestamp": "2025-01-10T09:00:00Z",
    }
    if entity_type in ("stage", "task"):
        data["stage_id"] = "S1"
    if entity_type == "task":
        data["task_id"] = "T1"
    data.update(overrides)
    return DeletionRequest.model_validate(data)


@pytest.fixture
def make_project():
    return build_project


@pytest.fixture
def make_request():
    return build_request


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def workflow(backend):
    session = ReviewSession(request_store=RequestStore(backend))
    return ReviewWorkflow(backend, session)
