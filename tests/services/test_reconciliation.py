"""
Tests for deletion request reconciliation.
"""

from prq.models import Project
from prq.services.reconciliation import clear_annotations, dedupe_requests, reconcile


def _minimal_project() -> Project:
    return Project.model_validate(
        {"project_id": "P1", "stages": [{"stage_id": "S1", "tasks": [{"task_id": "T1"}]}]}
    )


def test_task_request_flags_task_and_project_summary(make_request):
    """A single pending task request annotates exactly that task."""
    result = reconcile([_minimal_project()], [make_request("R1", "task")])

    project = result[0]
    task = project.stages[0].tasks[0]
    assert task.deletion_requested is True
    assert task.deletion_request_status == "pending"
    assert task.deletion_request_id == "R1"
    assert project.has_deletion_requests is True
    assert project.deletion_request_count == 1
    assert project.stages[0].deletion_requested is None
    assert project.deletion_requested is None


def test_duplicate_request_ids_counted_once(make_request):
    """The same request delivered twice yields one count and one detail row."""
    requests = [make_request("R1", "task"), make_request("R1", "task")]

    project = reconcile([_minimal_project()], requests)[0]

    assert project.deletion_request_count == 1
    assert len(project.deletion_request_details) == 1
    assert project.deletion_request_details[0].request_id == "R1"


def test_details_never_repeat_request_ids(make_project, make_request):
    requests = [
        make_request("R1", "task"),
        make_request("R2", "stage", stage_id="S2"),
        make_request("R1", "task"),
        make_request("R3", "project"),
        make_request("R2", "stage", stage_id="S2"),
    ]

    project = reconcile([make_project()], requests)[0]

    ids = [d.request_id for d in project.deletion_request_details]
    assert ids == ["R1", "R2", "R3"]
    assert project.deletion_request_count == 3


def test_reconcile_is_idempotent(make_project, make_request):
    requests = [
        make_request("R1", "task"),
        make_request("R2", "stage", stage_id="S2"),
        make_request("R3", "project"),
    ]
    projects = [make_project(), make_project("P2", title="Other")]

    once = reconcile(projects, requests)
    twice = reconcile(once, requests)

    assert twice == once


def test_project_request_does_not_suppress_stage_flags(make_project, make_request):
    """Project-level and stage-level annotations coexist in the data."""
    requests = [make_request("RP", "project"), make_request("RS", "stage")]

    project = reconcile([make_project()], requests)[0]

    assert project.deletion_requested is True
    assert project.deletion_request_id == "RP"
    assert project.stages[0].deletion_requested is True
    assert project.stages[0].deletion_request_id == "RS"
    assert len(project.stages) == 2


def test_empty_request_set_clears_previous_annotations(make_project, make_request):
    annotated = reconcile(
        [make_project()], [make_request("R1", "task"), make_request("R2", "project")]
    )

    cleared = reconcile(annotated, [])[0]

    assert cleared.has_deletion_requests is False
    assert cleared.deletion_request_count == 0
    assert cleared.deletion_request_details == []
    assert cleared.deletion_requested is None
    assert cleared.deletion_request_id is None
    for stage in cleared.stages:
        assert stage.deletion_request_id is None
        for task in stage.tasks:
            assert task.deletion_requested is None
            assert task.deletion_request_status is None
            assert task.deletion_request_id is None


def test_stale_flags_in_raw_data_are_not_trusted(make_project, make_request):
    """Annotations arriving from the backend are recomputed, not kept."""
    raw = make_project()
    raw.stages[1].tasks[0].deletion_requested = True
    raw.stages[1].tasks[0].deletion_request_id = "OLD"

    project = reconcile([raw], [make_request("R1", "task")])[0]

    assert project.stages[1].tasks[0].deletion_request_id is None
    assert project.stages[0].tasks[0].deletion_request_id == "R1"


def test_input_projects_are_not_mutated(make_project, make_request):
    original = make_project()
    snapshot = original.model_copy(deep=True)

    reconcile([original], [make_request("R1", "task"), make_request("R2", "project")])
    reconcile([original], [])

    assert original == snapshot


def test_non_pending_and_unknown_requests_are_ignored(make_project, make_request):
    requests = [
        make_request("R1", "task", status="approved"),
        make_request("R2", "task", status="rejected"),
        make_request("R3", "resource"),
    ]

    project = reconcile([make_project()], requests)[0]

    assert project.has_deletion_requests is False
    assert project.stages[0].tasks[0].deletion_requested is None


def test_requests_only_apply_to_their_own_project(make_project, make_request):
    requests = [make_request("R1", "task", project_id="P2")]

    p1, p2 = reconcile([make_project("P1"), make_project("P2")], requests)

    assert p1.deletion_request_count == 0
    assert p1.stages[0].tasks[0].deletion_request_id is None
    assert p2.deletion_request_count == 1
    assert p2.stages[0].tasks[0].deletion_request_id == "R1"


def test_task_request_must_match_its_stage(make_project, make_request):
    """A task id under the wrong stage is not flagged."""
    requests = [make_request("R1", "task", stage_id="S2", task_id="T1")]

    project = reconcile([make_project()], requests)[0]

    assert project.stages[0].tasks[0].deletion_request_id is None
    assert project.deletion_request_count == 1


def test_first_request_wins_for_same_target(make_project, make_request):
    """Two different requests for the same task: the first one flags it."""
    requests = [make_request("R1", "task"), make_request("R2", "task")]

    project = reconcile([make_project()], requests)[0]

    assert project.stages[0].tasks[0].deletion_request_id == "R1"
    assert project.deletion_request_count == 2


def test_multiple_project_requests_use_first(make_project, make_request, caplog):
    requests = [make_request("RP1", "project"), make_request("RP2", "project")]

    project = reconcile([make_project()], requests)[0]

    assert project.deletion_request_id == "RP1"
    assert "pending project-level deletion requests" in caplog.text


def test_details_use_tree_titles_with_request_fallback(make_project, make_request):
    requests = [
        make_request("R1", "task"),
        make_request("R2", "stage", stage_id="S2"),
        make_request("R3", "project"),
        make_request("R4", "task", task_id="GONE", title="Deleted draft"),
    ]

    project = reconcile([make_project()], requests)[0]
    titles = {d.request_id: d.entity_title for d in project.deletion_request_details}

    assert titles == {
        "R1": "Collect samples",
        "R2": "Analysis",
        "R3": "Water Quality Study",
        "R4": "Deleted draft",
    }
    detail = project.deletion_request_details[0]
    assert detail.reason == "No longer needed"
    assert detail.requester == "student@example.org"
    assert detail.timestamp == "2025-01-10T09:00:00Z"


def test_gate_entries_are_walked_safely(make_request):
    project = Project.model_validate(
        {
            "project_id": "P1",
            "stages": [
                {"stage_id": "S1", "tasks": [{"task_id": "T1"}]},
                {"gate": {"checklist": ["peer review"]}},
            ],
        }
    )

    result = reconcile([project], [make_request("R1", "task")])[0]

    assert result.stages[1].gate == {"checklist": ["peer review"]}
    assert result.stages[1].deletion_requested is None


def test_dedupe_keeps_first_occurrence(make_request):
    first = make_request("R1", "task", reason="first")
    second = make_request("R1", "task", reason="second")

    assert [r.reason for r in dedupe_requests([first, second])] == ["first"]


def test_clear_annotations_resets_summary(make_project, make_request):
    project = reconcile([make_project()], [make_request("R1", "task")])[0]

    clear_annotations(project)

    assert project.has_deletion_requests is False
    assert project.stages[0].tasks[0].deletion_request_id is None
