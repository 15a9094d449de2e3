"""
Tests for response envelope normalisation.
"""

import json

import pytest

from prq.backend.envelopes import (
    extract_action_response,
    extract_project,
    extract_projects,
    extract_requests,
)

REQUEST = {
    "request_id": "R1",
    "entity_type": "Task",
    "project_id": 7,
    "stage_id": "S1",
    "task_id": "T1",
    "status": "PENDING",
    "student_email": "student@example.org",
    "created_at": "2025-01-10",
}


@pytest.mark.parametrize(
    "response",
    [
        {"action_response": {"requests": [REQUEST]}},
        {"body": {"action_response": {"requests": [REQUEST]}}},
        {"body": json.dumps({"action_response": {"requests": [REQUEST]}})},
        {"requests": [REQUEST]},
        [REQUEST],
    ],
    ids=["action_response", "body", "json_body", "top_level", "bare_list"],
)
def test_requests_found_in_every_known_shape(response):
    (request,) = extract_requests(response)

    assert request.request_id == "R1"
    assert request.entity_type == "task"
    assert request.status == "pending"
    assert request.project_id == "7"
    assert request.requester == "student@example.org"
    assert request.timestamp == "2025-01-10"


def test_requests_first_path_wins():
    response = {
        "action_response": {"requests": [REQUEST]},
        "requests": [{**REQUEST, "request_id": "R2"}],
    }

    assert [r.request_id for r in extract_requests(response)] == ["R1"]


@pytest.mark.parametrize(
    "response", [None, {}, {"body": "not json"}, {"requests": "nope"}, "garbage"]
)
def test_unrecognised_request_shapes_are_empty(response):
    assert extract_requests(response) == []


def test_malformed_requests_are_skipped(caplog):
    response = {"requests": [REQUEST, {"entity_type": "task"}, "junk"]}

    assert [r.request_id for r in extract_requests(response)] == ["R1"]
    assert "Skipping malformed deletion request" in caplog.text


def test_projects_use_field_fallbacks():
    listed = {"id": 12, "project_title": "Bridges", "Student_Name": "Ana"}
    response = {"body": {"projects": [listed]}}

    (project,) = extract_projects(response)

    assert project.project_id == "12"
    assert project.title == "Bridges"
    assert project.owner_name == "Ana"


def test_project_list_missing_is_empty():
    assert extract_projects({"body": {"message": "no projects"}}) == []


def test_project_details_nested_under_json():
    response = {"body": {"action_response": {"json": {"project": {"project_id": "P1"}}}}}

    assert extract_project(response).project_id == "P1"


def test_project_details_missing_is_none():
    assert extract_project({"body": {}}) is None


@pytest.mark.parametrize(
    "response,success,message",
    [
        ({"success": True}, True, None),
        ({"body": {"success": False, "message": "Already processed"}}, False, "Already processed"),
        ({"action_response": {"success": False, "error": "Not allowed"}}, False, "Not allowed"),
        ({"body": json.dumps({"action_response": {"success": True}})}, True, None),
        ({"unexpected": 1}, False, None),
    ],
)
def test_action_response_shapes(response, success, message):
    result = extract_action_response(response)

    assert result.success is success
    assert result.message == message


def test_null_text_fields_do_not_drop_projects():
    """Projects with null titles or descriptions at any level stay in the queue."""
    response = {
        "projects": [
            {"project_id": "P1", "description": None, "owner_email": None},
            {"project_id": "P2", "title": None, "subject_domain": None},
            {
                "project_id": "P3",
                "stages": [
                    {
                        "stage_id": "S1",
                        "title": None,
                        "order": None,
                        "tasks": [
                            {
                                "task_id": "T1",
                                "title": None,
                                "description": None,
                                "resource_links": None,
                            }
                        ],
                    }
                ],
            },
        ]
    }

    projects = extract_projects(response)

    assert [p.project_id for p in projects] == ["P1", "P2", "P3"]
    assert projects[0].description == ""
    assert projects[1].title == ""
    stage = projects[2].stages[0]
    assert stage.title == ""
    assert stage.order == 0
    assert stage.tasks[0].title == ""
    assert stage.tasks[0].resource_links == []


def test_null_title_falls_back_to_project_title():
    (project,) = extract_projects([{"project_id": "P1", "title": None, "project_title": "Bridges"}])

    assert project.title == "Bridges"


def test_numeric_request_ids_are_kept():
    (request,) = extract_requests({"requests": [{**REQUEST, "request_id": 42}]})

    assert request.request_id == "42"
