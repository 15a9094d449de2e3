"""
Response envelope normalisation.

The backend wraps payloads inconsistently: the same list may arrive as
``{"action_response": {...}}``, ``{"body": {"action_response": {...}}}``,
``{"requests": [...]}`` or a bare list, and ``body`` is sometimes a JSON
string. Each backend call gets one extractor here that tries the known
shapes in a fixed order and falls back to an empty/default value. Nothing
outside this module branches on envelope shape.
"""

import json
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import ValidationError

from prq.models import ActionResponse, DeletionRequest, Project

logger = logging.getLogger(__name__)

Path = Sequence[str]

REQUEST_PATHS: tuple[Path, ...] = (
    ("action_response", "requests"),
    ("body", "action_response", "requests"),
    ("requests",),
)

PROJECT_LIST_PATHS: tuple[Path, ...] = (
    ("body", "projects"),
    ("body", "action_response", "projects"),
    ("action_response", "projects"),
    ("projects",),
)

PROJECT_DETAIL_PATHS: tuple[Path, ...] = (
    ("body", "action_response", "json", "project"),
    ("body", "project"),
    ("project",),
    ("body", "action_response", "project"),
    ("action_response", "json", "project"),
)

ACTION_RESPONSE_PATHS: tuple[Path, ...] = (
    (),
    ("body",),
    ("body", "action_response"),
    ("action_response",),
)


def decode_body(response: Any) -> Any:
    """Parse a ``body`` that was delivered as a JSON string."""
    if isinstance(response, dict) and isinstance(response.get("body"), str):
        try:
            body = json.loads(response["body"])
        except json.JSONDecodeError:
            logger.warning("Response body is not valid JSON; ignoring it")
            body = None
        return {**response, "body": body}
    return response


def dig(data: Any, path: Path) -> Any:
    """Follow ``path`` through nested dicts, returning None on any miss."""
    current = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def first_match(data: Any, paths: Iterable[Path], kind: type) -> Any:
    for path in paths:
        value = dig(data, path)
        if isinstance(value, kind):
            return value
    return None


def extract_requests(response: Any) -> list[DeletionRequest]:
    """Deletion requests from a getDeletionRequests reply (any shape)."""
    response = decode_body(response)
    if isinstance(response, list):
        raw = response
    else:
        raw = first_match(response, REQUEST_PATHS, list)

    if raw is None:
        logger.debug("Unrecognised deletion request envelope; treating as empty")
        return []

    requests = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            requests.append(DeletionRequest.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed deletion request {item.get('request_id')!r}: {e}")
    return requests


def extract_projects(response: Any) -> list[Project]:
    """Project list from a get-projects reply (any shape)."""
    response = decode_body(response)
    if isinstance(response, list):
        raw = response
    else:
        raw = first_match(response, PROJECT_LIST_PATHS, list)

    if raw is None:
        logger.debug("Unrecognised project list envelope; treating as empty")
        return []

    projects = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            projects.append(Project.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed project {item.get('project_id')!r}: {e}")
    return projects


def extract_project(response: Any) -> Project | None:
    """Single project from a project-details reply, or None."""
    response = decode_body(response)
    raw = first_match(response, PROJECT_DETAIL_PATHS, dict)
    if raw is None:
        return None
    try:
        return Project.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Project details payload did not validate: {e}")
        return None


def extract_action_response(response: Any) -> ActionResponse:
    """Success flag and message from a mutating call's reply."""
    response = decode_body(response)
    for path in ACTION_RESPONSE_PATHS:
        candidate = dig(response, path) if path else response
        if isinstance(candidate, dict) and "success" in candidate:
            message = candidate.get("message") or candidate.get("error")
            return ActionResponse(
                success=bool(candidate["success"]),
                message=str(message) if message is not None else None,
            )
    return ActionResponse(success=False, message=None)
