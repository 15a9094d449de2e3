"""
Review workflow for the Project Review Queue.

Drives the reviewer's actions against one ReviewSession:

- loading the project queue and its pending deletion requests
- opening a project for review (lazy detail fetch + edit buffer)
- approving/rejecting stage, task and project deletion requests
- approving a project or requesting revision (saves the edit buffer)

Every action has the same shape: refuse while another action is saving,
validate locally, call the backend, and only on success change local state.
A backend failure or a transport error leaves state exactly as it was.

Approvals remove the entity everywhere it is held (edit buffer, detail copy,
project list), drop the request from the store, then reload requests for the
project's subject domain in the background. Rejections never reload: the
rejected id is filtered out locally and the project is re-flagged from that
corrected set, so a slow backend cannot bring the request back.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from prq.backend.base import ReviewBackend
from prq.models import (
    ActionResponse,
    DeletionRequest,
    DeletionRequestDetail,
    EntityType,
    ErrorKind,
    Project,
    ProjectStatus,
    ReviewActionResult,
    Stage,
    Task,
)
from prq.services.edit_buffer import EditableProjectBuffer
from prq.services.messages import MessageBoard
from prq.services.reconciliation import reconcile
from prq.services.request_store import RequestStore
from prq.settings import get_settings

logger = logging.getLogger(__name__)


class ReviewValidationError(Exception):
    """Raised when an action fails local validation (no backend call is made)."""

    pass


def new_message_board() -> MessageBoard:
    return MessageBoard(ttl=get_settings().message_ttl_seconds)


@dataclass
class ReviewSession:
    """
    All state of one reviewer session.

    Replaces ambient "current subject" and "current stage" globals: every
    workflow action reads and writes this object only.
    """

    request_store: RequestStore
    messages: MessageBoard = field(default_factory=new_message_board)
    buffer: EditableProjectBuffer = field(default_factory=EditableProjectBuffer)

    subject_domain: str = ""
    projects: list[Project] = field(default_factory=list)
    load_error: str = ""

    # Review of a single project
    selected_project: Project | None = None
    project_details: Project | None = None
    details_error: str = ""
    current_stage_index: int = 0
    close_confirmation_pending: bool = False

    # Set while a mutating backend call is in flight
    saving: bool = False

    background_tasks: set[asyncio.Task] = field(default_factory=set)

    @property
    def review_open(self) -> bool:
        return self.selected_project is not None

    @property
    def editable_project(self) -> Project | None:
        return self.buffer.project

    def find_project(self, project_id: str) -> Project | None:
        return next((p for p in self.projects if p.project_id == project_id), None)

    async def wait_for_background(self) -> None:
        """Wait for pending background request reloads to finish."""
        while self.background_tasks:
            await asyncio.gather(*list(self.background_tasks), return_exceptions=True)


class ReviewWorkflow:
    """Approve/reject state machine bound to a backend and a session."""

    def __init__(self, backend: ReviewBackend, session: ReviewSession | None = None):
        self.backend = backend
        self.session = session or ReviewSession(request_store=RequestStore(backend))

    # =========================================================================
    # Queue loading
    # =========================================================================

    async def load_projects(self, subject_domain: str) -> ReviewActionResult:
        """
        Load the project queue for a subject domain.

        Projects are shown as soon as they arrive; deletion requests are
        loaded and reconciled in the background.
        """
        session = self.session
        if not subject_domain or not subject_domain.strip():
            session.load_error = "Please select a subject before fetching projects"
            return ReviewActionResult.failed(ErrorKind.VALIDATION, session.load_error)

        session.subject_domain = subject_domain
        session.load_error = ""

        try:
            projects = await self.backend.get_projects(subject_domain)
        except Exception as e:
            logger.error(f"Error loading projects for {subject_domain!r}: {e}")
            session.load_error = str(e) or "Failed to load projects"
            return ReviewActionResult.failed(ErrorKind.TRANSPORT, session.load_error)

        session.projects = [p.model_copy(deep=True) for p in projects]
        logger.info(f"Loaded {len(projects)} projects for subject {subject_domain!r}")

        domains = [p.subject_domain for p in session.projects if p.subject_domain]
        if domains:
            self._schedule_sync(domains)

        return ReviewActionResult.ok(f"Loaded {len(projects)} projects")

    async def refresh_requests(self, subject_domains: Iterable[str] | None = None) -> list[Project]:
        """Reload pending requests and re-flag everything the session holds."""
        if subject_domains is None:
            subject_domains = [p.subject_domain for p in self.session.projects]
        requests = await self.session.request_store.load(subject_domains)
        self._reflag_all(requests)
        return self.session.projects

    def deletion_request_details(self, project_id: str) -> list[DeletionRequestDetail]:
        """Rows for the reviewer's deletion request panel, unique by request_id."""
        project = self.session.find_project(project_id)
        if project is None:
            return []
        seen: set[str] = set()
        details = []
        for detail in project.deletion_request_details:
            if detail.request_id and detail.request_id not in seen:
                seen.add(detail.request_id)
                details.append(detail)
        return details

    # =========================================================================
    # Opening, editing and closing a review
    # =========================================================================

    async def open_review(self, project: Project) -> Project:
        """
        Start reviewing ``project`` and return its editable copy.

        Full details are fetched lazily; if that fails the list record is
        used and ``session.details_error`` explains why.
        """
        session = self.session
        session.selected_project = project.model_copy(deep=True)
        session.current_stage_index = 0
        session.close_confirmation_pending = False
        session.saving = False
        session.details_error = ""
        session.messages.clear()
        session.buffer.discard()

        try:
            fetched = await self.backend.get_project_details(project.project_id, project.user_id)
        except Exception as e:
            logger.error(f"Error fetching project details for {project.project_id}: {e}")
            session.details_error = "Failed to load project details"
            fetched = None

        merged = merge_project_details(project, fetched)
        annotated = reconcile([merged], session.request_store.requests)[0]

        session.project_details = annotated
        return session.buffer.open(annotated)

    def edit(self, path: str, value: Any) -> Project:
        """Change one field of the edit buffer; clears any stale banner."""
        project = self.session.buffer.update(path, value)
        self.session.messages.clear()
        return project

    def close_review(self, confirm: bool = False) -> bool:
        """
        Close the review.

        With unsaved edits and no ``confirm``, nothing is closed and
        ``close_confirmation_pending`` is raised instead.

        Returns:
            True if the review was closed
        """
        session = self.session
        if session.buffer.dirty and not confirm:
            session.close_confirmation_pending = True
            return False

        session.selected_project = None
        session.project_details = None
        session.buffer.discard()
        session.messages.clear()
        session.close_confirmation_pending = False
        session.current_stage_index = 0
        return True

    # =========================================================================
    # Task deletion requests
    # =========================================================================

    async def approve_task_deletion(self, stage_index: int, task_index: int) -> ReviewActionResult:
        if self.session.saving:
            return self._busy()
        try:
            project = self._require_buffer()
            stage, task = self._locate_task(project, stage_index, task_index)
            request_id = self._require_request_id(task)
        except ReviewValidationError as e:
            return self._fail(ErrorKind.VALIDATION, str(e))

        stage_id, task_id = stage.stage_id, task.task_id
        outcome = await self._call(
            "approving deletion request",
            "Failed to approve deletion request",
            lambda: self.backend.approve_deletion_request(request_id, EntityType.TASK.value),
        )
        if not outcome.success:
            return outcome

        def drop_task(p: Project) -> None:
            p.remove_task(stage_id, task_id)

        self._apply_everywhere(project.project_id, drop_task)
        self.session.request_store.remove(request_id)
        logger.info(f"Approved deletion of task {task_id} (request {request_id})")

        self._schedule_sync([project.subject_domain])
        return self._succeed(f'Task "{task.title or "task"}" deleted successfully!', request_id)

    async def reject_task_deletion(self, stage_index: int, task_index: int) -> ReviewActionResult:
        if self.session.saving:
            return self._busy()
        try:
            project = self._require_buffer()
            stage, task = self._locate_task(project, stage_index, task_index)
            request_id = self._require_request_id(task)
        except ReviewValidationError as e:
            return self._fail(ErrorKind.VALIDATION, str(e))

        stage_id, task_id = stage.stage_id, task.task_id
        outcome = await self._call(
            "rejecting deletion request",
            "Failed to reject deletion request",
            lambda: self.backend.reject_deletion_request(request_id),
        )
        if not outcome.success:
            return outcome

        def clear_task(p: Project) -> None:
            found = p.find_stage(stage_id)
            target = found.find_task(task_id) if found else None
            if target:
                target.clear_deletion_annotation()

        self._settle_rejection(project.project_id, request_id, clear_task)
        logger.info(f"Rejected deletion of task {task_id} (request {request_id})")
        return self._succeed(
            f'Deletion request for "{task.title or "task"}" rejected successfully!', request_id
        )

    # =========================================================================
    # Stage deletion requests
    # =========================================================================

    async def approve_stage_deletion(self, stage_index: int) -> ReviewActionResult:
        if self.session.saving:
            return self._busy()
        try:
            project = self._require_buffer()
            stage = self._locate_stage(project, stage_index)
            request_id = self._require_request_id(stage)
        except ReviewValidationError as e:
            return self._fail(ErrorKind.VALIDATION, str(e))

        stage_id = stage.stage_id
        outcome = await self._call(
            "approving deletion request",
            "Failed to approve deletion request",
            lambda: self.backend.approve_deletion_request(request_id, EntityType.STAGE.value),
        )
        if not outcome.success:
            return outcome

        def drop_stage(p: Project) -> None:
            p.remove_stage(stage_id)

        self._apply_everywhere(project.project_id, drop_stage)
        self._clamp_stage_index()
        self.session.request_store.remove(request_id)
        logger.info(f"Approved deletion of stage {stage_id} (request {request_id})")

        self._schedule_sync([project.subject_domain])
        return self._succeed(f'Stage "{stage.title or "stage"}" deleted successfully!', request_id)

    async def reject_stage_deletion(self, stage_index: int) -> ReviewActionResult:
        if self.session.saving:
            return self._busy()
        try:
            project = self._require_buffer()
            stage = self._locate_stage(project, stage_index)
            request_id = self._require_request_id(stage)
        except ReviewValidationError as e:
            return self._fail(ErrorKind.VALIDATION, str(e))

        stage_id = stage.stage_id
        outcome = await self._call(
            "rejecting deletion request",
            "Failed to reject deletion request",
            lambda: self.backend.reject_deletion_request(request_id),
        )
        if not outcome.success:
            return outcome

        def clear_stage(p: Project) -> None:
            target = p.find_stage(stage_id)
            if target:
                target.clear_deletion_annotation()

        self._settle_rejection(project.project_id, request_id, clear_stage)
        logger.info(f"Rejected deletion of stage {stage_id} (request {request_id})")
        return self._succeed(
            f'Deletion request for "{stage.title or "stage"}" rejected successfully!', request_id
        )

    # =========================================================================
    # Project deletion requests
    # =========================================================================

    async def approve_project_deletion(self, project: Project | None = None) -> ReviewActionResult:
        if self.session.saving:
            return self._busy()
        target = self.session.buffer.project or project
        if target is None or not target.deletion_request_id:
            return self._fail(ErrorKind.VALIDATION, "Deletion request ID not found")

        request_id = target.deletion_request_id
        project_id = target.project_id
        outcome = await self._call(
            "approving deletion request",
            "Failed to approve deletion request",
            lambda: self.backend.approve_deletion_request(request_id, EntityType.PROJECT.value),
        )
        if not outcome.success:
            return outcome

        session = self.session
        session.request_store.remove(request_id)

        if session.selected_project and session.selected_project.project_id == project_id:
            self.close_review(confirm=True)

        session.projects = [p for p in session.projects if p.project_id != project_id]
        logger.info(f"Approved deletion of project {project_id} (request {request_id})")

        remaining_domains = [p.subject_domain for p in session.projects if p.subject_domain]
        if remaining_domains:
            self._schedule_sync(remaining_domains)

        return self._succeed(
            f'Project "{target.title or "project"}" deleted successfully!', request_id
        )

    async def reject_project_deletion(self, project: Project | None = None) -> ReviewActionResult:
        if self.session.saving:
            return self._busy()
        target = self.session.buffer.project or project
        if target is None or not target.deletion_request_id:
            return self._fail(ErrorKind.VALIDATION, "Deletion request ID not found")

        request_id = target.deletion_request_id
        outcome = await self._call(
            "rejecting deletion request",
            "Failed to reject deletion request",
            lambda: self.backend.reject_deletion_request(request_id),
        )
        if not outcome.success:
            return outcome

        def clear_project(p: Project) -> None:
            p.clear_deletion_annotation()

        self._settle_rejection(target.project_id, request_id, clear_project)
        logger.info(f"Rejected deletion of project {target.project_id} (request {request_id})")
        return self._succeed(
            f'Deletion request for project "{target.title or "project"}" rejected successfully!',
            request_id,
        )

    # =========================================================================
    # Project approval / revision (saves full content)
    # =========================================================================

    async def approve_project(self, project: Project | None = None) -> ReviewActionResult:
        return await self._save_with_status(
            project,
            ProjectStatus.APPROVED.value,
            verb="approve project",
            describe="approving project",
            success_message="Project approved successfully!",
            default_failure="Failed to approve project",
        )

    async def request_revision(self, project: Project | None = None) -> ReviewActionResult:
        return await self._save_with_status(
            project,
            ProjectStatus.PENDING_REVISION.value,
            verb="request revision",
            describe="requesting revision",
            success_message="Revision requested successfully!",
            default_failure="Failed to request revision",
        )

    async def _save_with_status(
        self,
        project: Project | None,
        status: str,
        verb: str,
        describe: str,
        success_message: str,
        default_failure: str,
    ) -> ReviewActionResult:
        """Persist the edit buffer (or ``project``) together with ``status``."""
        if self.session.saving:
            return self._busy()

        source = self.session.buffer.project or project
        if source is None or not source.project_id or not source.user_id:
            return self._fail(
                ErrorKind.VALIDATION, f"Error: Missing project ID or user ID. Cannot {verb}."
            )

        to_save = source.model_copy(deep=True)
        to_save.status = status
        project_id = to_save.project_id

        outcome = await self._call(
            describe,
            default_failure,
            lambda: self.backend.save_project_update(to_save, status),
        )
        if not outcome.success:
            return outcome

        session = self.session
        session.projects = [
            p.model_copy(update={"status": status}) if p.project_id == project_id else p
            for p in session.projects
        ]
        if session.project_details and session.project_details.project_id == project_id:
            session.project_details = session.project_details.model_copy(update={"status": status})
        if session.buffer.project and session.buffer.project.project_id == project_id:
            session.buffer.apply(lambda p: setattr(p, "status", status))
            session.buffer.mark_clean()

        logger.info(f"Saved project {project_id} with status {status!r}")
        return self._succeed(success_message)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _call(
        self,
        describe: str,
        default_failure: str,
        call: Callable[[], Awaitable[ActionResponse]],
    ) -> ReviewActionResult:
        """Run one backend call under the saving flag and classify its outcome."""
        session = self.session
        session.saving = True
        session.messages.clear()
        try:
            response = await call()
        except Exception as e:
            logger.error(f"Error {describe}: {e}")
            return self._fail(ErrorKind.TRANSPORT, f"Error {describe}: {str(e) or 'Unknown error'}")
        finally:
            session.saving = False

        if not response.success:
            logger.warning(f"Backend refused {describe}: {response.message}")
            return self._fail(ErrorKind.BACKEND, response.message or default_failure)
        return ReviewActionResult.ok(describe)

    def _settle_rejection(
        self, project_id: str, request_id: str, clear: Callable[[Project], None]
    ) -> None:
        """Drop a rejected request locally and re-flag from the corrected set."""
        session = self.session
        remaining = session.request_store.without(request_id)
        session.request_store.remove(request_id)

        def clear_and_reflag(p: Project) -> Project:
            clone = p.model_copy(deep=True)
            clear(clone)
            return reconcile([clone], remaining)[0]

        if session.buffer.project and session.buffer.project.project_id == project_id:
            session.buffer.replace(clear_and_reflag(session.buffer.project))
        if session.project_details and session.project_details.project_id == project_id:
            session.project_details = clear_and_reflag(session.project_details)

        cleared = []
        for p in session.projects:
            if p.project_id == project_id:
                p = p.model_copy(deep=True)
                clear(p)
            cleared.append(p)
        session.projects = reconcile(cleared, remaining)

    def _apply_everywhere(self, project_id: str, change: Callable[[Project], None]) -> None:
        """Apply a structural change to the buffer, the detail copy and the list entry."""
        session = self.session

        def changed(p: Project) -> Project:
            clone = p.model_copy(deep=True)
            change(clone)
            return clone

        if session.buffer.project and session.buffer.project.project_id == project_id:
            session.buffer.apply(change)
        if session.project_details and session.project_details.project_id == project_id:
            session.project_details = changed(session.project_details)
        session.projects = [
            changed(p) if p.project_id == project_id else p for p in session.projects
        ]

    def _reflag_all(self, requests: list[DeletionRequest]) -> None:
        session = self.session
        session.projects = reconcile(session.projects, requests)
        if session.project_details:
            session.project_details = reconcile([session.project_details], requests)[0]
        if session.buffer.project:
            session.buffer.replace(reconcile([session.buffer.project], requests)[0])

    def _schedule_sync(self, subject_domains: Iterable[str]) -> asyncio.Task:
        """Reload requests for ``subject_domains`` without blocking the caller."""
        domains = [d for d in subject_domains if d]
        task = asyncio.create_task(self._sync_requests(domains))
        self.session.background_tasks.add(task)
        task.add_done_callback(self.session.background_tasks.discard)
        return task

    async def _sync_requests(self, subject_domains: list[str]) -> None:
        try:
            requests = await self.session.request_store.load(subject_domains)
            self._reflag_all(requests)
        except Exception as e:
            logger.warning(f"Background sync failed (non-critical): {e}")

    def _clamp_stage_index(self) -> None:
        session = self.session
        project = session.buffer.project
        remaining = len(project.review_stages()) if project else 0
        if remaining == 0:
            session.current_stage_index = 0
        elif session.current_stage_index >= remaining:
            session.current_stage_index = remaining - 1

    def _require_buffer(self) -> Project:
        project = self.session.buffer.project
        if project is None:
            raise ReviewValidationError("No project is open for review")
        return project

    @staticmethod
    def _locate_stage(project: Project, stage_index: int) -> Stage:
        stages = project.review_stages()
        if stage_index < 0 or stage_index >= len(stages):
            raise ReviewValidationError("Stage not found")
        return stages[stage_index]

    @staticmethod
    def _locate_task(project: Project, stage_index: int, task_index: int) -> tuple[Stage, Task]:
        stages = project.review_stages()
        if stage_index < 0 or stage_index >= len(stages):
            raise ReviewValidationError("Task not found")
        stage = stages[stage_index]
        if task_index < 0 or task_index >= len(stage.tasks):
            raise ReviewValidationError("Task not found")
        return stage, stage.tasks[task_index]

    @staticmethod
    def _require_request_id(entity: Stage | Task) -> str:
        if not entity.deletion_request_id:
            raise ReviewValidationError("Deletion request ID not found")
        return entity.deletion_request_id

    def _busy(self) -> ReviewActionResult:
        return ReviewActionResult.failed(ErrorKind.BUSY, "Another change is still being saved")

    def _fail(self, kind: ErrorKind, message: str) -> ReviewActionResult:
        self.session.messages.set_error(message)
        return ReviewActionResult.failed(kind, message)

    def _succeed(self, message: str, request_id: str | None = None) -> ReviewActionResult:
        self.session.messages.set_success(message)
        return ReviewActionResult.ok(message, request_id)


def merge_project_details(listed: Project, fetched: Project | None) -> Project:
    """Overlay fetched detail fields on the list record, keeping list values the fetch lacks."""
    if fetched is None:
        return listed.model_copy(deep=True)

    data = listed.model_dump()
    data.update(fetched.model_dump(exclude_unset=True))
    data["project_id"] = fetched.project_id or listed.project_id
    data["title"] = fetched.title or listed.title
    data["description"] = fetched.description or listed.description
    data["stages"] = data.get("stages") or []
    if not data.get("user_id"):
        data["user_id"] = listed.user_id
    return Project.model_validate(data)
