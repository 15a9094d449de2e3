"""
HTTP implementation of the review backend.

Every call is a POST of ``{"action": ..., "payload": {...}}`` to one invoke
endpoint. Replies are handed to the extractors in ``prq.backend.envelopes``.

Usage:
    async with HttpReviewBackend(settings.backend_url) as backend:
        requests = await backend.get_deletion_requests("Science")
"""

import logging
from typing import Any

import httpx

from prq.backend.base import BackendTransportError
from prq.backend.envelopes import (
    extract_action_response,
    extract_project,
    extract_projects,
    extract_requests,
)
from prq.models import ANNOTATION_FIELDS, ActionResponse, DeletionRequest, Project

logger = logging.getLogger(__name__)

ACTION_PROJECTS = "myprojects"
ACTION_DELETE_REQUESTS = "deleterequest"

# Derived by reconciliation, never persisted
RECONCILIATION_SUMMARY_FIELDS = {
    "has_deletion_requests",
    "deletion_request_count",
    "deletion_request_details",
}

_ANNOTATIONS = {name: True for name in ANNOTATION_FIELDS}

# Nested exclude for model_dump: no derived field reaches the backend at any level
DERIVED_FIELDS_EXCLUDE: dict[str, Any] = {
    **_ANNOTATIONS,
    **{name: True for name in RECONCILIATION_SUMMARY_FIELDS},
    "stages": {"__all__": {**_ANNOTATIONS, "tasks": {"__all__": _ANNOTATIONS}}},
}


class HttpReviewBackend:
    """ReviewBackend that talks JSON over HTTP via httpx."""

    def __init__(
        self,
        base_url: str,
        reviewer_email: str = "teacher@example.org",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.reviewer_email = reviewer_email
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HttpReviewBackend":
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "Client not initialized. Use 'async with HttpReviewBackend(...) as backend:'"
            )
        return self._client

    async def _invoke(self, action: str, payload: dict[str, Any]) -> Any:
        """POST one action envelope and return the decoded JSON reply."""
        body = {
            "action": action,
            "payload": {**payload, "actor": {"role": "teacher", "email_id": self.reviewer_email}},
        }
        try:
            response = await self.client.post(self.base_url, json=body)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise BackendTransportError(
                f"{action}/{payload.get('request')} failed with HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise BackendTransportError(f"{action}/{payload.get('request')} failed: {e}") from e
        except ValueError as e:
            raise BackendTransportError(
                f"{action}/{payload.get('request')} returned invalid JSON"
            ) from e

    async def get_projects(self, subject_domain: str) -> list[Project]:
        data = await self._invoke(
            ACTION_PROJECTS,
            {"request": "teacher_view_all", "subject_domain": subject_domain},
        )
        projects = extract_projects(data)
        logger.info(f"Fetched {len(projects)} projects for subject {subject_domain!r}")
        return projects

    async def get_deletion_requests(self, subject_domain: str) -> list[DeletionRequest]:
        data = await self._invoke(
            ACTION_DELETE_REQUESTS,
            {"request": "teacher_list", "subject_domain": subject_domain},
        )
        return extract_requests(data)

    async def approve_deletion_request(self, request_id: str, entity_type: str) -> ActionResponse:
        data = await self._invoke(
            ACTION_DELETE_REQUESTS,
            {"request": "teacher_approve", "request_id": request_id, "entity_type": entity_type},
        )
        return extract_action_response(data)

    async def reject_deletion_request(self, request_id: str) -> ActionResponse:
        data = await self._invoke(
            ACTION_DELETE_REQUESTS,
            {"request": "teacher_reject", "request_id": request_id},
        )
        return extract_action_response(data)

    async def save_project_update(self, project: Project, status: str) -> ActionResponse:
        data = await self._invoke(
            ACTION_PROJECTS,
            {
                "request": "teacher_update",
                "project_id": project.project_id,
                "user_id": project.user_id,
                "status": status,
                "project": project.model_dump(
                    mode="json", exclude_none=True, exclude=DERIVED_FIELDS_EXCLUDE
                ),
            },
        )
        return extract_action_response(data)

    async def get_project_details(self, project_id: str, owner_id: str | None) -> Project | None:
        data = await self._invoke(
            ACTION_PROJECTS,
            {"request": "project_details", "project_id": str(project_id), "user_id": owner_id},
        )
        return extract_project(data)
