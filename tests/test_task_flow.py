"""
작업(Task) 통합 테스트.
- 생성 / 조회 / 목록 / 수정 / 삭제, 상태 전이 API,
  배정 → 수락 핸드셰이크, 재배정 시 초기화, 그룹 밖 사용자 배정 차단,
  배정 알림 요청과 기능 플래그를 검증한다.
"""

import uuid

from sqlalchemy import func, select

from app.models.task import Task
from app.services.notifications import TASK_ASSIGNMENT
from tests.helpers import add_member, auth_header, create_group, register_and_verify


def _setup_group(client):
    owner = register_and_verify(client, name="Owner")
    member = register_and_verify(client, name="Member")
    group_id = create_group(client, owner["access_token"])
    r = add_member(client, owner["access_token"], group_id, member["user_id"])
    assert r.status_code == 201, r.text
    return owner, member, group_id


def _create_task(client, token, group_id, **extra):
    body = {"title": "Write report", "group_id": group_id, **extra}
    return client.post("/api/v1/tasks", json=body, headers=auth_header(token))


def _set_status(client, token, task_id, status):
    return client.patch(f"/api/v1/tasks/{task_id}/status", json={"status": status}, headers=auth_header(token))


def test_create_task_without_assignee_is_open(client):
    owner, _, group_id = _setup_group(client)

    r = _create_task(client, owner["access_token"], group_id, description="Q3")
    assert r.status_code == 201, r.text
    task = r.json()["data"]
    assert task["status"] == "OPEN"
    assert task["assignee_id"] is None
    assert task["created_by_id"] == owner["user_id"]


def test_status_transitions_via_api(client):
    owner, member, group_id = _setup_group(client)
    task_id = _create_task(client, owner["access_token"], group_id).json()["data"]["id"]

    # 그룹 멤버라면 생성자가 아니어도 상태 변경 가능
    r = _set_status(client, member["access_token"], task_id, "IN_PROGRESS")
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "IN_PROGRESS"

    r = _set_status(client, owner["access_token"], task_id, "COMPLETED")
    assert r.status_code == 200

    bad = _set_status(client, owner["access_token"], task_id, "OPEN")
    assert bad.status_code == 400
    assert bad.json()["code"] == "INVALID_TRANSITION"

    assert _set_status(client, owner["access_token"], task_id, "CLOSED").status_code == 200
    closed = _set_status(client, owner["access_token"], task_id, "OPEN")
    assert closed.status_code == 400


def test_pending_acceptance_is_not_a_settable_status(client):
    owner, _, group_id = _setup_group(client)
    task_id = _create_task(client, owner["access_token"], group_id).json()["data"]["id"]

    r = _set_status(client, owner["access_token"], task_id, "PENDING_ACCEPTANCE")
    assert r.status_code == 422


def test_assignment_handshake(client, notifier):
    owner, member, group_id = _setup_group(client)

    r = _create_task(client, owner["access_token"], group_id, assignee_id=member["user_id"])
    assert r.status_code == 201, r.text
    task = r.json()["data"]
    assert task["status"] == "PENDING_ACCEPTANCE"
    assert task["assignee_id"] == member["user_id"]
    assert task["accepted_at"] is None

    sent = notifier.of_kind(TASK_ASSIGNMENT, member["email"])
    assert sent and sent[-1]["task_id"] == task["id"]
    assert sent[-1]["assigner_name"] == "Owner"

    # 담당자가 아닌 사용자는 수락 불가
    foreign = client.post(f"/api/v1/tasks/{task['id']}/accept", headers=auth_header(owner["access_token"]))
    assert foreign.status_code == 403
    assert foreign.json()["code"] == "FORBIDDEN"

    accepted = client.post(f"/api/v1/tasks/{task['id']}/accept", headers=auth_header(member["access_token"]))
    assert accepted.status_code == 200, accepted.text
    assert accepted.json()["data"]["status"] == "OPEN"
    assert accepted.json()["data"]["accepted_at"] is not None

    # 이미 수락한 작업은 다시 수락 불가
    twice = client.post(f"/api/v1/tasks/{task['id']}/accept", headers=auth_header(member["access_token"]))
    assert twice.status_code == 400
    assert twice.json()["code"] == "INVALID_STATE"


def test_reassign_resets_acceptance(client):
    owner, member, group_id = _setup_group(client)
    task_id = _create_task(client, owner["access_token"], group_id, assignee_id=member["user_id"]).json()["data"]["id"]
    client.post(f"/api/v1/tasks/{task_id}/accept", headers=auth_header(member["access_token"]))
    _set_status(client, member["access_token"], task_id, "IN_PROGRESS")

    r = client.post(
        f"/api/v1/tasks/{task_id}/assign",
        json={"assignee_id": owner["user_id"]},
        headers=auth_header(owner["access_token"]),
    )
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["status"] == "PENDING_ACCEPTANCE"
    assert data["assignee_id"] == owner["user_id"]
    assert data["accepted_at"] is None


def test_only_creator_can_assign(client):
    owner, member, group_id = _setup_group(client)
    task_id = _create_task(client, owner["access_token"], group_id).json()["data"]["id"]

    r = client.post(
        f"/api/v1/tasks/{task_id}/assign",
        json={"assignee_id": member["user_id"]},
        headers=auth_header(member["access_token"]),
    )
    assert r.status_code == 403
    assert r.json()["code"] == "FORBIDDEN"


def test_assign_restarts_handshake_on_finished_tasks(client):
    owner, member, group_id = _setup_group(client)

    completed_id = _create_task(client, owner["access_token"], group_id).json()["data"]["id"]
    for status in ("IN_PROGRESS", "COMPLETED"):
        assert _set_status(client, owner["access_token"], completed_id, status).status_code == 200

    closed_id = _create_task(client, owner["access_token"], group_id).json()["data"]["id"]
    assert _set_status(client, owner["access_token"], closed_id, "CLOSED").status_code == 200

    for task_id in (completed_id, closed_id):
        r = client.post(
            f"/api/v1/tasks/{task_id}/assign",
            json={"assignee_id": member["user_id"]},
            headers=auth_header(owner["access_token"]),
        )
        assert r.status_code == 200, r.text
        data = r.json()["data"]
        assert data["status"] == "PENDING_ACCEPTANCE"
        assert data["assignee_id"] == member["user_id"]
        assert data["accepted_at"] is None


def test_assign_to_non_member_creates_nothing(client, db_session):
    owner = register_and_verify(client)
    outsider = register_and_verify(client)
    group_id = create_group(client, owner["access_token"])

    r = _create_task(client, owner["access_token"], group_id, assignee_id=outsider["user_id"])
    assert r.status_code == 403
    assert r.json()["code"] == "NOT_A_MEMBER"

    count = db_session.scalar(select(func.count()).select_from(Task))
    assert count == 0


def test_non_member_cannot_see_tasks(client):
    owner, _, group_id = _setup_group(client)
    outsider = register_and_verify(client)
    task_id = _create_task(client, owner["access_token"], group_id).json()["data"]["id"]

    r = client.get(f"/api/v1/tasks/{task_id}", headers=auth_header(outsider["access_token"]))
    assert r.status_code == 403
    assert r.json()["code"] == "NOT_A_MEMBER"

    r = client.get("/api/v1/tasks", params={"group_id": group_id}, headers=auth_header(outsider["access_token"]))
    assert r.status_code == 403


def test_list_tasks_paginates(client):
    owner, _, group_id = _setup_group(client)
    for i in range(5):
        _create_task(client, owner["access_token"], group_id, title=f"task {i}")

    r = client.get(
        "/api/v1/tasks",
        params={"group_id": group_id, "page": 2, "limit": 2},
        headers=auth_header(owner["access_token"]),
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert len(body["data"]) == 2
    assert body["meta"] == {"page": 2, "limit": 2, "total": 5}


def test_update_and_delete_are_creator_only(client):
    owner, member, group_id = _setup_group(client)
    task_id = _create_task(client, owner["access_token"], group_id).json()["data"]["id"]

    forbidden = client.patch(
        f"/api/v1/tasks/{task_id}", json={"title": "hijack"}, headers=auth_header(member["access_token"])
    )
    assert forbidden.status_code == 403

    ok = client.patch(
        f"/api/v1/tasks/{task_id}", json={"title": "Renamed"}, headers=auth_header(owner["access_token"])
    )
    assert ok.status_code == 200
    assert ok.json()["data"]["title"] == "Renamed"

    assert client.delete(f"/api/v1/tasks/{task_id}", headers=auth_header(member["access_token"])).status_code == 403
    assert client.delete(f"/api/v1/tasks/{task_id}", headers=auth_header(owner["access_token"])).status_code == 200

    gone = client.get(f"/api/v1/tasks/{task_id}", headers=auth_header(owner["access_token"]))
    assert gone.status_code == 404
    assert gone.json()["code"] == "TASK_NOT_FOUND"

    listed = client.get("/api/v1/tasks", params={"group_id": group_id}, headers=auth_header(owner["access_token"]))
    assert listed.json()["meta"]["total"] == 0


def test_unknown_task(client):
    owner = register_and_verify(client)
    r = client.get(f"/api/v1/tasks/{uuid.uuid4()}", headers=auth_header(owner["access_token"]))
    assert r.status_code == 404


def test_assignments_feature_flag(client_factory):
    c = client_factory(ENABLE_ASSIGNMENTS=False)
    owner, member, group_id = _setup_group(c)

    r = _create_task(c, owner["access_token"], group_id, assignee_id=member["user_id"])
    assert r.status_code == 400
    assert r.json()["code"] == "FEATURE_DISABLED"

    task_id = _create_task(c, owner["access_token"], group_id).json()["data"]["id"]
    r = c.post(
        f"/api/v1/tasks/{task_id}/assign",
        json={"assignee_id": member["user_id"]},
        headers=auth_header(owner["access_token"]),
    )
    assert r.status_code == 400
    assert r.json()["code"] == "FEATURE_DISABLED"


def test_assignment_notification_failure_does_not_affect_task(client, notifier):
    def broken(*args, **kwargs):
        raise RuntimeError("queue down")

    owner, member, group_id = _setup_group(client)
    notifier.enqueue = broken

    r = _create_task(client, owner["access_token"], group_id, assignee_id=member["user_id"])
    assert r.status_code == 201, r.text
    assert r.json()["data"]["status"] == "PENDING_ACCEPTANCE"
