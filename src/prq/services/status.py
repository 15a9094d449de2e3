"""
Displayed status derivation.

Precedence for a project, highest first:
1. a pending project-level deletion request shows "Pending"
2. an Approved/Completed project with any task in "Revision" shows "Revision"
3. otherwise the stored status
"""

from collections.abc import Iterable

from prq.models import Project, ProjectStatus, Stage, Task, TaskStatus

SETTLED_PROJECT_STATUSES = {ProjectStatus.APPROVED.value, ProjectStatus.COMPLETED.value}


def has_revision_task(project: Project) -> bool:
    return any(task.status == TaskStatus.REVISION.value for task in project.iter_tasks())


def derive_project_status(project: Project) -> str:
    """Status to display for a (reconciled) project."""
    if project.has_pending_deletion:
        return ProjectStatus.PENDING.value
    if project.status in SETTLED_PROJECT_STATUSES and has_revision_task(project):
        return ProjectStatus.REVISION.value
    return project.status


def derive_stage_status(stage: Stage) -> str:
    if stage.has_pending_deletion:
        return TaskStatus.PENDING_DELETION.value
    if any(task.status == TaskStatus.REVISION.value for task in stage.tasks):
        return TaskStatus.REVISION.value
    if stage.tasks and all(task.status == TaskStatus.COMPLETED.value for task in stage.tasks):
        return TaskStatus.COMPLETED.value
    return TaskStatus.NONE.value


def derive_task_status(task: Task) -> str:
    if task.has_pending_deletion:
        return TaskStatus.PENDING_DELETION.value
    return task.status


def with_derived_status(projects: Iterable[Project]) -> list[Project]:
    """Clones of ``projects`` whose status field holds the displayed status."""
    return [p.model_copy(update={"status": derive_project_status(p)}, deep=True) for p in projects]


def summarize_statuses(projects: Iterable[Project]) -> dict[str, int]:
    """
    Queue header counters.

    Matches on lower-cased substrings, so "Pending Revision" counts as both
    pending and revision.
    """
    counts = {"total": 0, "approved": 0, "pending": 0, "revision": 0}
    for project in projects:
        status = derive_project_status(project).lower()
        counts["total"] += 1
        if "approve" in status:
            counts["approved"] += 1
        if "pending" in status:
            counts["pending"] += 1
        if "reject" in status or "revision" in status:
            counts["revision"] += 1
    return counts
