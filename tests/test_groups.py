"""
그룹 / 멤버십 통합 테스트.
- 그룹 생성자 ADMIN 자동 등록, 조회 권한, ADMIN 전용 기능,
  중복 멤버, 마지막 ADMIN 제거 차단을 검증한다.
"""

import uuid

from sqlalchemy import func, select

from app.models.group import GroupMember, GroupRole
from tests.helpers import add_member, auth_header, create_group, register_and_verify


def test_creator_becomes_admin(client, db_session):
    owner = register_and_verify(client)
    group_id = create_group(client, owner["access_token"], name="Alpha")

    membership = db_session.scalar(select(GroupMember).where(GroupMember.group_id == uuid.UUID(group_id)))
    assert membership.role == GroupRole.ADMIN
    assert str(membership.user_id) == owner["user_id"]

    detail = client.get(f"/api/v1/groups/{group_id}", headers=auth_header(owner["access_token"]))
    assert detail.status_code == 200, detail.text
    data = detail.json()["data"]
    assert data["name"] == "Alpha"
    assert [m["role"] for m in data["members"]] == ["ADMIN"]


def test_list_groups_only_shows_memberships(client):
    owner = register_and_verify(client)
    other = register_and_verify(client)
    create_group(client, owner["access_token"], name="Mine")
    create_group(client, other["access_token"], name="Theirs")

    r = client.get("/api/v1/groups", headers=auth_header(owner["access_token"]))
    assert r.status_code == 200
    assert [g["name"] for g in r.json()["data"]] == ["Mine"]
    assert r.json()["meta"]["total"] == 1


def test_non_member_cannot_view_group(client):
    owner = register_and_verify(client)
    outsider = register_and_verify(client)
    group_id = create_group(client, owner["access_token"])

    r = client.get(f"/api/v1/groups/{group_id}", headers=auth_header(outsider["access_token"]))
    assert r.status_code == 403
    assert r.json()["code"] == "NOT_A_MEMBER"


def test_unknown_group(client):
    owner = register_and_verify(client)
    r = client.get(f"/api/v1/groups/{uuid.uuid4()}", headers=auth_header(owner["access_token"]))
    assert r.status_code == 404
    assert r.json()["code"] == "GROUP_NOT_FOUND"


def test_member_cannot_use_admin_functions(client):
    owner = register_and_verify(client)
    member = register_and_verify(client)
    third = register_and_verify(client)
    group_id = create_group(client, owner["access_token"])
    add_member(client, owner["access_token"], group_id, member["user_id"])

    r = add_member(client, member["access_token"], group_id, third["user_id"])
    assert r.status_code == 403
    assert r.json()["code"] == "NOT_ADMIN"

    r = client.patch(f"/api/v1/groups/{group_id}", json={"name": "x"}, headers=auth_header(member["access_token"]))
    assert r.status_code == 403

    ok = client.patch(f"/api/v1/groups/{group_id}", json={"name": "Renamed"}, headers=auth_header(owner["access_token"]))
    assert ok.status_code == 200
    assert ok.json()["data"]["name"] == "Renamed"


def test_add_member_duplicate_and_unknown_user(client):
    owner = register_and_verify(client)
    member = register_and_verify(client)
    group_id = create_group(client, owner["access_token"])

    assert add_member(client, owner["access_token"], group_id, member["user_id"]).status_code == 201

    dup = add_member(client, owner["access_token"], group_id, member["user_id"])
    assert dup.status_code == 409
    assert dup.json()["code"] == "ALREADY_MEMBER"

    unknown = add_member(client, owner["access_token"], group_id, str(uuid.uuid4()))
    assert unknown.status_code == 404
    assert unknown.json()["code"] == "USER_NOT_FOUND"


def test_last_admin_cannot_be_removed(client, db_session):
    owner = register_and_verify(client)
    group_id = create_group(client, owner["access_token"])

    r = client.delete(
        f"/api/v1/groups/{group_id}/members/{owner['user_id']}",
        headers=auth_header(owner["access_token"]),
    )
    assert r.status_code == 400
    assert r.json()["code"] == "LAST_ADMIN_REMOVAL"

    admins = db_session.scalar(
        select(func.count()).select_from(GroupMember).where(
            GroupMember.group_id == uuid.UUID(group_id), GroupMember.role == GroupRole.ADMIN
        )
    )
    assert admins == 1


def test_admin_can_be_removed_when_another_admin_exists(client):
    owner = register_and_verify(client)
    co_admin = register_and_verify(client)
    group_id = create_group(client, owner["access_token"])
    add_member(client, owner["access_token"], group_id, co_admin["user_id"], role="ADMIN")

    r = client.delete(
        f"/api/v1/groups/{group_id}/members/{owner['user_id']}",
        headers=auth_header(co_admin["access_token"]),
    )
    assert r.status_code == 200, r.text

    # 이제 co_admin 이 유일한 ADMIN
    r = client.delete(
        f"/api/v1/groups/{group_id}/members/{co_admin['user_id']}",
        headers=auth_header(co_admin["access_token"]),
    )
    assert r.status_code == 400
    assert r.json()["code"] == "LAST_ADMIN_REMOVAL"


def test_remove_member_and_missing_membership(client):
    owner = register_and_verify(client)
    member = register_and_verify(client)
    group_id = create_group(client, owner["access_token"])
    add_member(client, owner["access_token"], group_id, member["user_id"])

    r = client.delete(
        f"/api/v1/groups/{group_id}/members/{member['user_id']}",
        headers=auth_header(owner["access_token"]),
    )
    assert r.status_code == 200

    again = client.delete(
        f"/api/v1/groups/{group_id}/members/{member['user_id']}",
        headers=auth_header(owner["access_token"]),
    )
    assert again.status_code == 404
    assert again.json()["code"] == "MEMBERSHIP_NOT_FOUND"

    # 제거된 멤버는 더 이상 그룹에 접근 불가
    r = client.get(f"/api/v1/groups/{group_id}", headers=auth_header(member["access_token"]))
    assert r.status_code == 403
