"""
Tests for authorization boundaries — role guards, activation and ownership.

These tests verify three properties:

1. **Guard order**: anonymous callers get 401, authenticated but inactive
   callers get 403, active callers without the right role get 403.

2. **Ownership**: a Teacher can read and edit their own user record and
   teacher profile, and nobody else's. Staff roles (Admin, CEO, DEC, TSC)
   can reach everyone's.

3. **Failure is not denial**: when the caller's role cannot be looked up,
   the request fails with 500 instead of being quietly refused.
"""

import asyncio

import pytest
from sqlalchemy import update

from impart.models.role import ROLE_ADMIN, ROLE_CEO, ROLE_DEC, ROLE_SECRETARY, ROLE_TSC
from impart.models.teacher import Teacher
from impart.models.user import User
from impart.services.role_service import get_role_by_name

from conftest import TEST_PASSWORD


async def add_teacher_profile(session_factory, user_id=None):
    async with session_factory() as session:
        teacher = Teacher(user_id=user_id, first_name="Ada", last_name="Lovelace")
        session.add(teacher)
        await session.commit()
        return teacher.id


# ---------------------------------------------------------------------------
# Role guards
# ---------------------------------------------------------------------------

class TestUserListGuard:
    """GET /v1/users requires one of Admin, CEO, DEC, TSC."""

    async def test_anonymous(self, client):
        response = await client.get("/v1/users")
        assert response.status_code == 401

    async def test_teacher_is_refused(self, client, teacher_user):
        response = await client.get("/v1/users", headers=teacher_user.headers)
        assert response.status_code == 403
        assert response.json()["error_type"] == "not_permitted"

    async def test_secretary_is_refused(self, client, make_user):
        secretary = await make_user(role=ROLE_SECRETARY)
        response = await client.get("/v1/users", headers=secretary.headers)
        assert response.status_code == 403

    @pytest.mark.parametrize("role", [ROLE_ADMIN, ROLE_CEO, ROLE_DEC, ROLE_TSC])
    async def test_staff_roles_are_admitted(self, client, make_user, role):
        staff = await make_user(role=role)
        response = await client.get("/v1/users", headers=staff.headers)
        assert response.status_code == 200
        assert [u["id"] for u in response.json()["users"]] == [staff.id]

    async def test_inactive_staff_is_refused_before_role_check(self, client, make_user):
        staff = await make_user(role=ROLE_ADMIN, active=False)
        response = await client.get("/v1/users", headers=staff.headers)
        assert response.status_code == 403
        assert response.json()["error_type"] == "inactive_account"

    async def test_lookup_by_email(self, client, admin, teacher_user):
        response = await client.get(
            "/v1/users", params={"email": teacher_user.email}, headers=admin.headers
        )
        assert response.status_code == 200
        users = response.json()["users"]
        assert len(users) == 1
        assert users[0]["id"] == teacher_user.id

    async def test_lookup_by_unknown_email(self, client, admin):
        response = await client.get(
            "/v1/users", params={"email": "ghost@example.com"}, headers=admin.headers
        )
        assert response.status_code == 404

    async def test_role_change_takes_effect_on_next_request(
        self, client, teacher_user, session_factory
    ):
        """Roles are read per request, not baked into the token."""
        assert (await client.get("/v1/users", headers=teacher_user.headers)).status_code == 403

        async with session_factory() as session:
            ceo = await get_role_by_name(session, ROLE_CEO)
            await session.execute(
                update(User).where(User.id == teacher_user.id).values(role_id=ceo.id)
            )
            await session.commit()

        assert (await client.get("/v1/users", headers=teacher_user.headers)).status_code == 200


class TestRoleLookupFailure:
    async def test_missing_role_row_is_a_server_error(
        self, client, teacher_user, session_factory
    ):
        async with session_factory() as session:
            await session.execute(
                update(User).where(User.id == teacher_user.id).values(role_id=999)
            )
            await session.commit()

        response = await client.get("/v1/users", headers=teacher_user.headers)
        assert response.status_code == 500
        assert response.json()["error_type"] == "server_error"
        assert response.headers["Connection"] == "close"

    async def test_self_access_does_not_need_the_role(
        self, client, teacher_user, session_factory
    ):
        async with session_factory() as session:
            await session.execute(
                update(User).where(User.id == teacher_user.id).values(role_id=999)
            )
            await session.commit()

        response = await client.get(f"/v1/users/{teacher_user.id}", headers=teacher_user.headers)
        assert response.status_code == 200


# ---------------------------------------------------------------------------
# Self-or-role on user records
# ---------------------------------------------------------------------------

class TestUserRecordAccess:
    async def test_teacher_reads_self(self, client, teacher_user):
        response = await client.get(f"/v1/users/{teacher_user.id}", headers=teacher_user.headers)
        assert response.status_code == 200
        assert response.json()["user"]["email"] == teacher_user.email

    async def test_teacher_cannot_read_another_user(self, client, teacher_user, make_user):
        other = await make_user()
        response = await client.get(f"/v1/users/{other.id}", headers=teacher_user.headers)
        assert response.status_code == 403

    async def test_teacher_cannot_probe_missing_ids(self, client, teacher_user):
        response = await client.get("/v1/users/9999", headers=teacher_user.headers)
        assert response.status_code == 403

    @pytest.mark.parametrize("role", [ROLE_ADMIN, ROLE_CEO, ROLE_DEC, ROLE_TSC])
    async def test_staff_reads_anyone(self, client, make_user, teacher_user, role):
        staff = await make_user(role=role)
        response = await client.get(f"/v1/users/{teacher_user.id}", headers=staff.headers)
        assert response.status_code == 200

    async def test_staff_gets_404_for_missing_user(self, client, admin):
        response = await client.get("/v1/users/9999", headers=admin.headers)
        assert response.status_code == 404


class TestUserUpdate:
    """PATCH /v1/users/{id}."""

    async def test_teacher_updates_own_username(self, client, teacher_user):
        response = await client.patch(
            f"/v1/users/{teacher_user.id}",
            json={"username": "renamed"},
            headers=teacher_user.headers,
        )
        assert response.status_code == 200
        assert response.json()["user"]["username"] == "renamed"

    async def test_teacher_cannot_update_another_user(self, client, teacher_user, make_user):
        other = await make_user()
        response = await client.patch(
            f"/v1/users/{other.id}", json={"username": "hijacked"}, headers=teacher_user.headers
        )
        assert response.status_code == 403

    @pytest.mark.parametrize(
        "changes",
        [{"role_id": 1}, {"is_active": False}, {"is_activated": True}],
    )
    async def test_non_admin_cannot_touch_admin_only_fields(self, client, teacher_user, changes):
        response = await client.patch(
            f"/v1/users/{teacher_user.id}", json=changes, headers=teacher_user.headers
        )
        assert response.status_code == 422
        assert set(response.json()["errors"]) == set(changes)

    async def test_staff_who_is_not_admin_cannot_touch_admin_only_fields(
        self, client, make_user, teacher_user
    ):
        ceo = await make_user(role=ROLE_CEO)
        response = await client.patch(
            f"/v1/users/{teacher_user.id}",
            json={"is_activated": True, "username": "fine"},
            headers=ceo.headers,
        )
        assert response.status_code == 422
        assert set(response.json()["errors"]) == {"is_activated"}

    async def test_admin_changes_role_and_flags(self, client, admin, teacher_user):
        roles = (await client.get("/v1/roles")).json()["roles"]
        dec_id = next(r["id"] for r in roles if r["role_name"] == ROLE_DEC)

        response = await client.patch(
            f"/v1/users/{teacher_user.id}",
            json={"role_id": dec_id, "is_activated": True},
            headers=admin.headers,
        )
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["role_name"] == ROLE_DEC
        assert user["is_activated"] is True

    async def test_admin_suspends_user(self, client, admin, teacher_user):
        response = await client.patch(
            f"/v1/users/{teacher_user.id}", json={"is_active": False}, headers=admin.headers
        )
        assert response.status_code == 200

        blocked = await client.get(f"/v1/users/{teacher_user.id}", headers=teacher_user.headers)
        assert blocked.status_code == 403

    async def test_unknown_role_id(self, client, admin, teacher_user):
        response = await client.patch(
            f"/v1/users/{teacher_user.id}", json={"role_id": 999}, headers=admin.headers
        )
        assert response.status_code == 422
        assert "role_id" in response.json()["errors"]

    async def test_duplicate_email(self, client, admin, teacher_user):
        response = await client.patch(
            f"/v1/users/{teacher_user.id}", json={"email": admin.email}, headers=teacher_user.headers
        )
        assert response.status_code == 422
        assert "email" in response.json()["errors"]

    async def test_password_change(self, client, teacher_user):
        response = await client.patch(
            f"/v1/users/{teacher_user.id}",
            json={"password": "a-brand-new-password"},
            headers=teacher_user.headers,
        )
        assert response.status_code == 200

        old = await client.post(
            "/v1/tokens/authentication",
            json={"email": teacher_user.email, "password": TEST_PASSWORD},
        )
        new = await client.post(
            "/v1/tokens/authentication",
            json={"email": teacher_user.email, "password": "a-brand-new-password"},
        )
        assert old.status_code == 401
        assert new.status_code == 201

    async def test_missing_user_as_admin(self, client, admin):
        response = await client.patch(
            "/v1/users/9999", json={"username": "x"}, headers=admin.headers
        )
        assert response.status_code == 404


class TestUserDelete:
    """DELETE /v1/users/{id} is Admin only."""

    async def test_teacher_cannot_delete(self, client, teacher_user):
        response = await client.delete(f"/v1/users/{teacher_user.id}", headers=teacher_user.headers)
        assert response.status_code == 403

    async def test_ceo_cannot_delete(self, client, make_user, teacher_user):
        ceo = await make_user(role=ROLE_CEO)
        response = await client.delete(f"/v1/users/{teacher_user.id}", headers=ceo.headers)
        assert response.status_code == 403

    async def test_admin_deletes_user(self, client, admin, teacher_user, session_factory):
        profile_id = await add_teacher_profile(session_factory, user_id=teacher_user.id)

        response = await client.delete(f"/v1/users/{teacher_user.id}", headers=admin.headers)
        assert response.status_code == 200

        # The deleted user's tokens died with it
        gone = await client.get(f"/v1/users/{teacher_user.id}", headers=teacher_user.headers)
        assert gone.status_code == 401

        again = await client.delete(f"/v1/users/{teacher_user.id}", headers=admin.headers)
        assert again.status_code == 404

        # The profile survives, unlinked
        profile = await client.get(f"/v1/teachers/{profile_id}", headers=admin.headers)
        assert profile.status_code == 200
        assert profile.json()["teacher"]["user_id"] is None


# ---------------------------------------------------------------------------
# Token revocation by an administrator
# ---------------------------------------------------------------------------

class TestRevokeUserTokens:
    """DELETE /v1/tokens/user/{user_id}."""

    async def test_admin_revokes_authentication_tokens(self, client, admin, teacher_user):
        response = await client.delete(
            f"/v1/tokens/user/{teacher_user.id}", headers=admin.headers
        )
        assert response.status_code == 200

        after = await client.get(f"/v1/users/{teacher_user.id}", headers=teacher_user.headers)
        assert after.status_code == 401

    async def test_activation_scope_leaves_sessions_alone(self, client, admin, teacher_user):
        response = await client.delete(
            f"/v1/tokens/user/{teacher_user.id}",
            params={"scope": "activation"},
            headers=admin.headers,
        )
        assert response.status_code == 200

        after = await client.get(f"/v1/users/{teacher_user.id}", headers=teacher_user.headers)
        assert after.status_code == 200

    async def test_invalid_scope(self, client, admin, teacher_user):
        response = await client.delete(
            f"/v1/tokens/user/{teacher_user.id}",
            params={"scope": "everything"},
            headers=admin.headers,
        )
        assert response.status_code == 422
        assert "scope" in response.json()["errors"]

    async def test_revoking_for_user_without_tokens(self, client, admin):
        response = await client.delete("/v1/tokens/user/9999", headers=admin.headers)
        assert response.status_code == 200

    async def test_non_admin_cannot_revoke(self, client, make_user, teacher_user):
        tsc = await make_user(role=ROLE_TSC)
        response = await client.delete(f"/v1/tokens/user/{teacher_user.id}", headers=tsc.headers)
        assert response.status_code == 403


# ---------------------------------------------------------------------------
# Teacher profiles
# ---------------------------------------------------------------------------

class TestTeacherProfileAccess:
    """GET /v1/teachers/{id}."""

    async def test_owner_reads_own_profile(self, client, teacher_user, session_factory):
        profile_id = await add_teacher_profile(session_factory, user_id=teacher_user.id)
        response = await client.get(f"/v1/teachers/{profile_id}", headers=teacher_user.headers)
        assert response.status_code == 200
        assert response.json()["teacher"]["user_id"] == teacher_user.id

    async def test_other_teacher_is_refused(self, client, teacher_user, make_user, session_factory):
        other = await make_user()
        profile_id = await add_teacher_profile(session_factory, user_id=other.id)
        response = await client.get(f"/v1/teachers/{profile_id}", headers=teacher_user.headers)
        assert response.status_code == 403

    async def test_unlinked_profile_is_staff_only(self, client, teacher_user, session_factory):
        profile_id = await add_teacher_profile(session_factory)
        response = await client.get(f"/v1/teachers/{profile_id}", headers=teacher_user.headers)
        assert response.status_code == 403

    @pytest.mark.parametrize("role", [ROLE_ADMIN, ROLE_CEO, ROLE_DEC, ROLE_TSC])
    async def test_staff_reads_any_profile(self, client, make_user, teacher_user, session_factory, role):
        staff = await make_user(role=role)
        profile_id = await add_teacher_profile(session_factory, user_id=teacher_user.id)
        response = await client.get(f"/v1/teachers/{profile_id}", headers=staff.headers)
        assert response.status_code == 200

    async def test_missing_profile(self, client, admin):
        response = await client.get("/v1/teachers/9999", headers=admin.headers)
        assert response.status_code == 404

    async def test_inactive_owner_is_refused(self, client, make_user, session_factory):
        owner = await make_user(active=False)
        profile_id = await add_teacher_profile(session_factory, user_id=owner.id)
        response = await client.get(f"/v1/teachers/{profile_id}", headers=owner.headers)
        assert response.status_code == 403
        assert response.json()["error_type"] == "inactive_account"


# ---------------------------------------------------------------------------
# Role catalogue
# ---------------------------------------------------------------------------

class TestRoles:
    async def test_anyone_lists_roles(self, client):
        response = await client.get("/v1/roles")
        assert response.status_code == 200
        names = {r["role_name"] for r in response.json()["roles"]}
        assert names == {ROLE_ADMIN, ROLE_CEO, ROLE_DEC, ROLE_TSC, ROLE_SECRETARY, "Teacher"}

    async def test_reading_one_role_needs_an_active_user(self, client, make_user):
        roles = (await client.get("/v1/roles")).json()["roles"]
        role_id = roles[0]["id"]

        assert (await client.get(f"/v1/roles/{role_id}")).status_code == 401

        inactive = await make_user(active=False)
        assert (await client.get(f"/v1/roles/{role_id}", headers=inactive.headers)).status_code == 403

        active = await make_user()
        response = await client.get(f"/v1/roles/{role_id}", headers=active.headers)
        assert response.status_code == 200
        assert response.json()["role"]["id"] == role_id

    async def test_admin_creates_renames_and_deletes(self, client, admin):
        created = await client.post(
            "/v1/roles", json={"role_name": "Inspector"}, headers=admin.headers
        )
        assert created.status_code == 201
        role_id = created.json()["role"]["id"]
        assert created.headers["Location"] == f"/v1/roles/{role_id}"

        renamed = await client.patch(
            f"/v1/roles/{role_id}", json={"role_name": "Chief Inspector"}, headers=admin.headers
        )
        assert renamed.status_code == 200
        assert renamed.json()["role"]["role_name"] == "Chief Inspector"

        deleted = await client.delete(f"/v1/roles/{role_id}", headers=admin.headers)
        assert deleted.status_code == 200

        missing = await client.get(f"/v1/roles/{role_id}", headers=admin.headers)
        assert missing.status_code == 404

    async def test_duplicate_role_name(self, client, admin):
        response = await client.post("/v1/roles", json={"role_name": ROLE_CEO}, headers=admin.headers)
        assert response.status_code == 422
        assert "role_name" in response.json()["errors"]

    async def test_concurrent_duplicate_role_creation(self, client, admin):
        responses = await asyncio.gather(
            *(
                client.post("/v1/roles", json={"role_name": "Registrar"}, headers=admin.headers)
                for _ in range(4)
            )
        )
        assert sorted(r.status_code for r in responses) == [201, 422, 422, 422]

        roles = (await client.get("/v1/roles")).json()["roles"]
        assert [r["role_name"] for r in roles].count("Registrar") == 1

    async def test_role_in_use_cannot_be_deleted(self, client, admin):
        roles = (await client.get("/v1/roles")).json()["roles"]
        admin_role_id = next(r["id"] for r in roles if r["role_name"] == ROLE_ADMIN)
        response = await client.delete(f"/v1/roles/{admin_role_id}", headers=admin.headers)
        assert response.status_code == 422

    async def test_non_admin_cannot_manage_roles(self, client, make_user):
        ceo = await make_user(role=ROLE_CEO)
        response = await client.post("/v1/roles", json={"role_name": "Inspector"}, headers=ceo.headers)
        assert response.status_code == 403
