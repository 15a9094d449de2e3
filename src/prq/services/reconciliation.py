"""
Deletion Request Reconciliation for the Project Review Queue.

Merges a list of projects with a list of deletion requests and returns
freshly cloned projects carrying:

- deletion annotations on the project, each stage and each task
- the per-project summary (has_deletion_requests, deletion_request_count,
  deletion_request_details)

Reconciliation is a pure function of its inputs. The caller's projects are
never mutated, and every annotation is cleared before it is re-applied, so
running it on already-annotated output gives the same result.

Every dedup step is first-occurrence-wins.
"""

import logging
from collections.abc import Iterable

from prq.models import (
    DeletionRequest,
    DeletionRequestDetail,
    EntityType,
    Project,
)

logger = logging.getLogger(__name__)


def task_key(stage_id: str | None, task_id: str | None) -> str:
    """Composite lookup key for a task inside its stage."""
    return f"{stage_id}:{task_id}"


def dedupe_requests(requests: Iterable[DeletionRequest]) -> list[DeletionRequest]:
    """Drop repeated request_ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique = []
    for request in requests:
        if request.request_id in seen:
            continue
        seen.add(request.request_id)
        unique.append(request)
    return unique


def group_by_project(requests: Iterable[DeletionRequest]) -> dict[str, list[DeletionRequest]]:
    """Map project_id to its requests in one pass, preserving input order."""
    grouped: dict[str, list[DeletionRequest]] = {}
    for request in requests:
        if not request.project_id:
            continue
        grouped.setdefault(request.project_id, []).append(request)
    return grouped


def clear_annotations(project: Project) -> None:
    """Strip every deletion annotation and summary from ``project`` in place."""
    project.clear_deletion_annotation()
    for stage in project.stages:
        stage.clear_deletion_annotation()
        for task in stage.tasks:
            task.clear_deletion_annotation()
    project.has_deletion_requests = False
    project.deletion_request_count = 0
    project.deletion_request_details = []


def reconcile(projects: Iterable[Project], requests: Iterable[DeletionRequest]) -> list[Project]:
    """
    Annotate every project with the pending deletion requests that target it.

    Args:
        projects: Project trees (left untouched)
        requests: Deletion requests; anything not pending or not aimed at a
            project/stage/task is ignored

    Returns:
        Deep-cloned, annotated projects in input order
    """
    reviewable = [r for r in requests if r.is_reviewable]

    if not reviewable:
        cleared = []
        for project in projects:
            clone = project.model_copy(deep=True)
            clear_annotations(clone)
            cleared.append(clone)
        return cleared

    by_project = group_by_project(reviewable)
    return [reconcile_project(p, by_project.get(p.project_id, [])) for p in projects]


def reconcile_project(project: Project, requests: Iterable[DeletionRequest]) -> Project:
    """
    Annotate a single project from the requests that belong to it.

    Args:
        project: Project tree (left untouched)
        requests: Requests already known to target this project

    Returns:
        Annotated deep clone of ``project``
    """
    annotated = project.model_copy(deep=True)
    project_requests = dedupe_requests(r for r in requests if r.is_reviewable)

    project_level = [r for r in project_requests if r.entity_type == EntityType.PROJECT.value]
    nested = [r for r in project_requests if r.entity_type != EntityType.PROJECT.value]

    if project_level:
        if len(project_level) > 1:
            logger.warning(
                f"Project {project.project_id} has {len(project_level)} pending project-level "
                f"deletion requests; using {project_level[0].request_id}"
            )
        annotated.annotate_deletion(project_level[0])
    else:
        annotated.clear_deletion_annotation()

    stage_requests: dict[str, DeletionRequest] = {}
    task_requests: dict[str, DeletionRequest] = {}
    for request in nested:
        if request.entity_type == EntityType.STAGE.value and request.stage_id:
            stage_requests.setdefault(request.stage_id, request)
        elif request.entity_type == EntityType.TASK.value and request.task_id:
            task_requests.setdefault(task_key(request.stage_id, request.task_id), request)

    stage_titles: dict[str, str] = {}
    task_titles: dict[str, str] = {}
    for stage in annotated.stages:
        stage.clear_deletion_annotation()
        if stage.stage_id:
            stage_titles[stage.stage_id] = stage.title
            match = stage_requests.get(stage.stage_id)
            if match:
                stage.annotate_deletion(match)

        for task in stage.tasks:
            task.clear_deletion_annotation()
            if not task.task_id:
                continue
            key = task_key(stage.stage_id, task.task_id)
            task_titles[key] = task.title
            match = task_requests.get(key)
            if match:
                task.annotate_deletion(match)

    annotated.has_deletion_requests = len(project_requests) > 0
    annotated.deletion_request_count = len(project_requests)
    annotated.deletion_request_details = build_details(
        annotated, project_requests, stage_titles, task_titles
    )

    if project_requests:
        logger.debug(
            f"Project {project.project_id}: {len(project_requests)} pending deletion requests"
        )

    return annotated


def build_details(
    project: Project,
    requests: Iterable[DeletionRequest],
    stage_titles: dict[str, str],
    task_titles: dict[str, str],
) -> list[DeletionRequestDetail]:
    """One detail row per unique request_id, titled from the walked tree."""
    details = []
    for request in dedupe_requests(requests):
        if request.entity_type == EntityType.PROJECT.value:
            title = project.title
        elif request.entity_type == EntityType.STAGE.value:
            title = stage_titles.get(request.stage_id or "")
        else:
            title = task_titles.get(task_key(request.stage_id, request.task_id))

        details.append(
            DeletionRequestDetail(
                request_id=request.request_id,
                entity_type=request.entity_type,
                project_id=request.project_id,
                stage_id=request.stage_id,
                task_id=request.task_id,
                entity_title=title or request.title or "",
                reason=request.reason,
                requester=request.requester,
                timestamp=request.timestamp,
            )
        )
    return details
