import os
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

import models
from services import task_mutation, task_query


def test_user_sees_only_assigned_tasks(client, register, create_task):
    alice_id, alice = register("alice")
    bob_id, bob = register("bob")
    create_task(alice_id, title="Alice 1")
    create_task(alice_id, title="Alice 2")
    create_task(bob_id, title="Bob 1")

    response = client.get("/api/tasks", headers=alice)
    assert response.status_code == 200
    tasks = response.json()["tasks"]
    assert sorted(t["title"] for t in tasks) == ["Alice 1", "Alice 2"]
    assert all(t["assignee_id"] == alice_id for t in tasks)
    assert all(t["assignee_name"] == "alice" for t in tasks)


def test_tasks_are_sorted_by_due_date_nulls_last(client, register, create_task):
    alice_id, alice = register("alice")
    create_task(alice_id, title="b", due_date="2024-01-05")
    create_task(alice_id, title="no date")
    create_task(alice_id, title="a", due_date="2024-01-01")

    tasks = client.get("/api/tasks", headers=alice).json()["tasks"]

    assert [t["due_date"] for t in tasks] == ["2024-01-01", "2024-01-05", None]


def test_pagination_over_twenty_five_tasks(client, register, create_task):
    alice_id, alice = register("alice")
    for i in range(25):
        create_task(alice_id, title=f"Task {i}")

    first = client.get("/api/tasks", params={"limit": 10}, headers=alice).json()
    assert first["pagination"] == {"totalItems": 25, "totalPages": 3, "currentPage": 1, "itemsPerPage": 10}

    last = client.get("/api/tasks", params={"page": 3, "limit": 10}, headers=alice).json()
    assert len(last["tasks"]) == 5
    assert last["pagination"]["currentPage"] == 3

    ids = set()
    for page in (1, 2, 3):
        ids.update(t["id"] for t in client.get("/api/tasks", params={"page": page, "limit": 10}, headers=alice).json()["tasks"])
    assert len(ids) == 25


def test_filters_by_status_and_case_insensitive_search(client, register, create_task):
    alice_id, alice = register("alice")
    create_task(alice_id, title="Write REPORT", status="Completed")
    create_task(alice_id, title="report review", status="Pending")
    create_task(alice_id, title="Other", status="Completed")

    by_search = client.get("/api/tasks", params={"search": "Report"}, headers=alice).json()
    assert by_search["pagination"]["totalItems"] == 2

    both = client.get("/api/tasks", params={"search": "report", "status": "Completed"}, headers=alice).json()
    assert [t["title"] for t in both["tasks"]] == ["Write REPORT"]
    assert both["pagination"]["totalItems"] == 1


def test_invalid_query_parameters_are_rejected(client, register):
    _, alice = register("alice")
    for params in ({"page": "0"}, {"page": "abc"}, {"limit": "-3"}, {"limit": "1000"}, {"status": "Done"}):
        response = client.get("/api/tasks", params=params, headers=alice)
        assert response.status_code == 400, params
        assert response.json()["detail"]


def test_due_date_round_trips_unchanged(client, admin_headers, register, create_task):
    alice_id, alice = register("alice")
    task = create_task(alice_id, title="Dated", due_date="2024-03-15")
    assert task["due_date"] == "2024-03-15"

    listed = client.get("/api/tasks", headers=alice).json()["tasks"][0]
    assert listed["due_date"] == "2024-03-15"

    updated = client.put(f"/api/tasks/{task['id']}", json={"due_date": "2024-12-31"}, headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json()["due_date"] == "2024-12-31"


def test_malformed_due_date_is_rejected(client, admin_headers, register):
    alice_id, _ = register("alice")
    response = client.post(
        "/api/tasks",
        data={"title": "Bad date", "assignee_id": str(alice_id), "due_date": "15/03/2024"},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_only_admins_create_tasks(client, register):
    alice_id, alice = register("alice")
    response = client.post("/api/tasks", data={"title": "Mine", "assignee_id": str(alice_id)}, headers=alice)
    assert response.status_code == 403


def test_assignee_must_be_an_existing_user(client, admin_headers):
    response = client.post("/api/tasks", data={"title": "Orphan", "assignee_id": "999"}, headers=admin_headers)
    assert response.status_code == 400


def test_assignee_must_have_the_user_role(client, admin_headers):
    me = client.get("/api/auth/me", headers=admin_headers).json()
    response = client.post("/api/tasks", data={"title": "For admin", "assignee_id": str(me["id"])}, headers=admin_headers)
    assert response.status_code == 400


def test_create_requires_a_title(client, admin_headers, register):
    alice_id, _ = register("alice")
    response = client.post("/api/tasks", data={"assignee_id": str(alice_id)}, headers=admin_headers)
    assert response.status_code == 400


def test_attachment_is_stored_and_served(client, settings, register, create_task):
    alice_id, alice = register("alice")
    task = create_task(alice_id, title="With file", files={"file": ("notes.txt", b"hello", "text/plain")})

    assert task["file_path"].startswith("uploads/")
    assert task["file_path"].endswith("-notes.txt")
    served = client.get(f"/{task['file_path']}")
    assert served.status_code == 200
    assert served.content == b"hello"

    # La pièce jointe ne peut pas être modifiée après la création
    response = client.put(f"/api/tasks/{task['id']}", json={"file_path": "uploads/other.txt"}, headers=alice)
    assert response.status_code == 403


def test_user_may_change_status_but_not_title(client, register, create_task):
    alice_id, alice = register("alice")
    task = create_task(alice_id, title="Original")

    forbidden = client.put(f"/api/tasks/{task['id']}", json={"title": "Hijacked"}, headers=alice)
    assert forbidden.status_code == 403

    allowed = client.put(f"/api/tasks/{task['id']}", json={"status": "In Progress"}, headers=alice)
    assert allowed.status_code == 200
    assert allowed.json()["status"] == "In Progress"
    assert allowed.json()["title"] == "Original"


def test_user_resending_unchanged_fields_is_accepted(client, register, create_task):
    alice_id, alice = register("alice")
    task = create_task(alice_id, title="Original", description="desc", due_date="2024-05-01")

    response = client.put(
        f"/api/tasks/{task['id']}",
        json={"title": "Original", "description": "desc", "due_date": "2024-05-01", "status": "Completed"},
        headers=alice,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "Completed"


def test_user_request_message_is_visible_to_admin(client, admin_headers, register, create_task):
    alice_id, alice = register("alice")
    task = create_task(alice_id, title="Deadline")

    response = client.put(
        f"/api/tasks/{task['id']}",
        json={"request_message": "Could I get one more week?"},
        headers=alice,
    )
    assert response.status_code == 200

    admin_view = client.get("/api/admin/tasks", headers=admin_headers).json()["tasks"]
    assert admin_view[0]["request_message"] == "Could I get one more week?"


def test_user_cannot_touch_someone_elses_task(client, register, create_task):
    bob_id, _ = register("bob")
    _, alice = register("alice")
    task = create_task(bob_id, title="Bob's")

    assert client.put(f"/api/tasks/{task['id']}", json={"status": "Completed"}, headers=alice).status_code == 404
    assert client.delete(f"/api/tasks/{task['id']}", headers=alice).status_code == 404


def test_unknown_task_is_not_found(client, admin_headers):
    assert client.put("/api/tasks/12345", json={"status": "Completed"}, headers=admin_headers).status_code == 404
    assert client.delete("/api/tasks/12345", headers=admin_headers).status_code == 404


def test_admin_can_update_every_mutable_field(client, admin_headers, register, create_task):
    alice_id, _ = register("alice")
    bob_id, bob = register("bob")
    task = create_task(alice_id, title="Draft")

    response = client.put(
        f"/api/tasks/{task['id']}",
        json={"title": "Final", "description": "done right", "assignee_id": bob_id, "status": "Completed"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Final"
    assert body["assignee_id"] == bob_id
    assert body["assignee_name"] == "bob"

    assert [t["id"] for t in client.get("/api/tasks", headers=bob).json()["tasks"]] == [task["id"]]


def test_admin_cannot_null_out_required_fields(client, admin_headers, register, create_task):
    alice_id, _ = register("alice")
    task = create_task(alice_id, title="Keep me")

    response = client.put(f"/api/tasks/{task['id']}", json={"title": None}, headers=admin_headers)
    assert response.status_code == 400


def test_user_deletes_only_completed_tasks(client, register, create_task):
    alice_id, alice = register("alice")
    task = create_task(alice_id, title="Pending one")

    response = client.delete(f"/api/tasks/{task['id']}", headers=alice)
    assert response.status_code == 403

    client.put(f"/api/tasks/{task['id']}", json={"status": "Completed"}, headers=alice)
    response = client.delete(f"/api/tasks/{task['id']}", headers=alice)
    assert response.status_code == 200
    assert response.json()["message"]

    assert client.delete(f"/api/tasks/{task['id']}", headers=alice).status_code == 404
    assert client.get("/api/tasks", headers=alice).json()["tasks"] == []


def test_admin_deletes_any_task_and_its_attachment(client, admin_headers, settings, register, create_task):
    alice_id, _ = register("alice")
    task = create_task(alice_id, title="Temp", files={"file": ("a.txt", b"x", "text/plain")})
    stored = os.path.join(settings.upload_dir, os.path.basename(task["file_path"]))
    assert os.path.exists(stored)

    response = client.delete(f"/api/tasks/{task['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert not os.path.exists(stored)


def test_back_to_back_updates_last_write_wins(client, admin_headers, register, create_task):
    alice_id, alice = register("alice")
    task = create_task(alice_id, title="Race")

    first = client.put(f"/api/tasks/{task['id']}", json={"status": "In Progress", "request_message": "first"}, headers=alice)
    second = client.put(f"/api/tasks/{task['id']}", json={"status": "Completed", "request_message": "second"}, headers=admin_headers)
    assert first.status_code == 200
    assert second.status_code == 200

    final = client.get("/api/tasks", headers=alice).json()["tasks"][0]
    assert final["status"] == "Completed"
    assert final["request_message"] == "second"
    assert final["title"] == "Race"


def test_store_failure_is_a_generic_server_error(client, register, monkeypatch):
    _, alice = register("alice")

    def broken(*args, **kwargs):
        raise SQLAlchemyError("connection refused to 10.0.0.5")

    monkeypatch.setattr(task_query, "list_tasks", broken)

    response = client.get("/api/tasks", headers=alice)
    assert response.status_code == 500
    assert response.json() == {"detail": "Erreur interne du serveur"}


def test_user_resending_form_with_empty_description_is_accepted(client, register, create_task):
    alice_id, alice = register("alice")
    task = create_task(alice_id, title="No desc")

    response = client.put(
        f"/api/tasks/{task['id']}",
        json={"title": "No desc", "description": "", "status": "Completed", "due_date": None},
        headers=alice,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "Completed"
    assert response.json()["description"] is None


def _stale_copy(task: dict, **overrides) -> models.Task:
    """Tâche détachée telle qu'elle était lue avant une écriture concurrente."""
    fields = dict(
        id=task["id"],
        title=task["title"],
        description=task["description"],
        status=models.TaskStatus(task["status"]),
        due_date=task["due_date"],
        assignee_id=task["assignee_id"],
        file_path=task["file_path"],
        request_message=task["request_message"],
        created_at=datetime(2024, 1, 1, 12, 0, 0),
    )
    fields.update(overrides)
    return models.Task(**fields)


def test_update_after_concurrent_reassignment_is_not_found(client, admin_headers, register, create_task, monkeypatch):
    alice_id, alice = register("alice")
    bob_id, bob = register("bob")
    task = create_task(alice_id, title="Moving")
    stale = _stale_copy(task)

    # L'administrateur réassigne la tâche entre la lecture et l'écriture d'alice
    client.put(f"/api/tasks/{task['id']}", json={"assignee_id": bob_id}, headers=admin_headers)
    monkeypatch.setattr(task_mutation, "get_task_or_404", lambda db, task_id: stale)

    response = client.put(f"/api/tasks/{task['id']}", json={"status": "Completed"}, headers=alice)
    assert response.status_code == 404

    monkeypatch.undo()
    row = client.get("/api/tasks", headers=bob).json()["tasks"][0]
    assert row["id"] == task["id"]
    assert row["status"] == "Pending"
    assert row["assignee_id"] == bob_id


def test_delete_after_concurrent_status_change_is_not_found(client, admin_headers, register, create_task, monkeypatch):
    alice_id, alice = register("alice")
    task = create_task(alice_id, title="Reopened", status="Completed")
    stale = _stale_copy(task)

    client.put(f"/api/tasks/{task['id']}", json={"status": "In Progress"}, headers=admin_headers)
    monkeypatch.setattr(task_mutation, "get_task_or_404", lambda db, task_id: stale)

    response = client.delete(f"/api/tasks/{task['id']}", headers=alice)
    assert response.status_code == 404

    monkeypatch.undo()
    rows = client.get("/api/tasks", headers=alice).json()["tasks"]
    assert [(t["id"], t["status"]) for t in rows] == [(task["id"], "In Progress")]


def test_writes_on_a_concurrently_deleted_task_are_not_found(client, admin_headers, register, create_task, monkeypatch):
    alice_id, _ = register("alice")
    task = create_task(alice_id, title="Gone")
    stale = _stale_copy(task)

    assert client.delete(f"/api/tasks/{task['id']}", headers=admin_headers).status_code == 200
    monkeypatch.setattr(task_mutation, "get_task_or_404", lambda db, task_id: stale)

    assert client.put(f"/api/tasks/{task['id']}", json={"title": "Back"}, headers=admin_headers).status_code == 404
    assert client.delete(f"/api/tasks/{task['id']}", headers=admin_headers).status_code == 404

    monkeypatch.undo()
    assert client.get("/api/admin/tasks", headers=admin_headers).json()["tasks"] == []


def test_delete_succeeds_when_attachment_cannot_be_removed(client, admin_headers, register, create_task, monkeypatch):
    alice_id, _ = register("alice")
    task = create_task(alice_id, title="Locked file", files={"file": ("lock.txt", b"x", "text/plain")})

    def locked(*args, **kwargs):
        raise PermissionError("file is locked")

    monkeypatch.setattr(task_mutation, "remove_upload", locked)

    response = client.delete(f"/api/tasks/{task['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert client.get("/api/admin/tasks", headers=admin_headers).json()["tasks"] == []
