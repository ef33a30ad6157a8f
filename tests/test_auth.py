"""Auth module tests — registration, login, sessions, RBAC, user admin."""

from __future__ import annotations

from jose import jwt
from sqlalchemy import select

from hrportal.auth.models import RoleAssignment, UserSession
from hrportal.auth.service import create_access_token, get_user_roles, highest_role
from hrportal.common.audit import AuditTrail
from hrportal.common.constants import PERMISSIONS, UserRole
from hrportal.config import settings
from tests.conftest import TEST_PASSWORD, TestSessionFactory, login_headers, seed_person


# ── Registration ────────────────────────────────────────────────────


async def test_register_creates_employee_role(client, db):
    resp = await client.post(
        "/api/v1/auth/register",
        json={
            "username": "new.hire",
            "email": "New.Hire@Example.com",
            "password": "longenough",
            "full_name": "New Hire",
            "gender": "female",
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["email"] == "new.hire@example.com"
    assert body["roles"] == ["employee"]
    assert body["is_admin"] is False

    async with TestSessionFactory() as session:
        roles = (await session.execute(select(RoleAssignment.role))).scalars().all()
    assert roles == [UserRole.employee]


async def test_register_rejects_short_password(client):
    resp = await client.post(
        "/api/v1/auth/register",
        json={
            "username": "shorty",
            "email": "shorty@example.com",
            "password": "abc",
            "full_name": "Shorty",
        },
    )
    assert resp.status_code == 422
    assert "password" in resp.json()["errors"]


async def test_register_duplicate_username_conflicts(client, employee):
    resp = await client.post(
        "/api/v1/auth/register",
        json={
            "username": "ERIC.EMPLOYEE",
            "email": "other@example.com",
            "password": "longenough",
            "full_name": "Someone Else",
        },
    )
    assert resp.status_code == 409
    assert resp.json()["type"] == "/errors/conflict"


# ── Login / logout ──────────────────────────────────────────────────


async def test_login_with_username_returns_token(client, employee):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"identifier": "eric.employee", "password": TEST_PASSWORD},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == settings.JWT_EXPIRY_HOURS * 3600
    assert data["user"]["employee_id"] == str(employee[1].id)

    payload = jwt.decode(
        data["access_token"], settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
    )
    assert payload["sub"] == str(employee[0].id)
    assert payload["role"] == "employee"
    assert payload["type"] == "access"


async def test_login_with_email_uses_highest_role(client, admin):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"identifier": "ada.admin@example.com", "password": TEST_PASSWORD},
    )
    assert resp.status_code == 200
    assert resp.json()["user"]["is_admin"] is True


async def test_login_wrong_password(client, employee):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"identifier": "eric.employee", "password": "wrong-password"},
    )
    assert resp.status_code == 401
    assert resp.headers["content-type"].startswith("application/problem+json")


async def test_login_inactive_user_refused(client, db):
    await seed_person(db, username="gone.user", is_active=False)
    resp = await client.post(
        "/api/v1/auth/login",
        json={"identifier": "gone.user", "password": TEST_PASSWORD},
    )
    assert resp.status_code == 401
    assert "inactive" in resp.json()["detail"].lower()


async def test_logout_revokes_session(client, auth_headers):
    resp = await client.post("/api/v1/auth/logout", headers=auth_headers)
    assert resp.status_code == 200

    async with TestSessionFactory() as session:
        s = (await session.execute(select(UserSession))).scalars().first()
    assert s.is_revoked is True

    resp = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert resp.status_code == 401


async def test_login_writes_audit_entry(client, employee):
    await client.post(
        "/api/v1/auth/login",
        json={"identifier": "eric.employee", "password": TEST_PASSWORD},
    )
    async with TestSessionFactory() as session:
        actions = (await session.execute(select(AuditTrail.action))).scalars().all()
    assert "login" in actions


# ── Token validation ────────────────────────────────────────────────


async def test_missing_token(client):
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401


async def test_token_without_session_rejected(client, employee):
    token, _ = create_access_token(employee[0].id, UserRole.employee)
    resp = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert resp.status_code == 401
    assert "session" in resp.json()["detail"].lower()


async def test_expired_session_rejected(client, db, employee):
    headers = await login_headers(db, employee[0], expired=True)
    resp = await client.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 401


async def test_garbage_token_rejected(client):
    resp = await client.get(
        "/api/v1/auth/me", headers={"Authorization": "Bearer not.a.jwt"}
    )
    assert resp.status_code == 401


# ── /me ─────────────────────────────────────────────────────────────


async def test_me_includes_permissions_and_reports(client, manager_headers, employee):
    resp = await client.get("/api/v1/auth/me", headers=manager_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["role"] == "manager"
    assert data["permissions"] == PERMISSIONS[UserRole.manager]
    assert data["direct_reports_count"] == 1
    assert data["department"]["name"] == "Engineering"


async def test_update_profile(client, auth_headers):
    resp = await client.put(
        "/api/v1/auth/me",
        headers=auth_headers,
        json={"full_name": "Eric E.", "contact_number": "+91-99999"},
    )
    assert resp.status_code == 200
    assert resp.json()["full_name"] == "Eric E."
    assert resp.json()["contact_number"] == "+91-99999"


async def test_change_password_requires_current(client, auth_headers):
    resp = await client.post(
        "/api/v1/auth/change-password",
        headers=auth_headers,
        json={"current_password": "nope", "new_password": "brand-new-pass"},
    )
    assert resp.status_code == 422

    resp = await client.post(
        "/api/v1/auth/change-password",
        headers=auth_headers,
        json={"current_password": TEST_PASSWORD, "new_password": "brand-new-pass"},
    )
    assert resp.status_code == 200

    resp = await client.post(
        "/api/v1/auth/login",
        json={"identifier": "eric.employee", "password": "brand-new-pass"},
    )
    assert resp.status_code == 200


# ── Roles ───────────────────────────────────────────────────────────


async def test_highest_role_ordering():
    assert highest_role([UserRole.employee]) == UserRole.employee
    assert highest_role([UserRole.manager, UserRole.employee]) == UserRole.manager
    assert highest_role([UserRole.employee, UserRole.admin, UserRole.manager]) == UserRole.admin


async def test_user_without_assignments_defaults_to_employee(db):
    user, _ = await seed_person(db, username="plain.user", with_employee=False)
    for assignment in (await db.execute(select(RoleAssignment))).scalars().all():
        await db.delete(assignment)
    await db.commit()
    assert await get_user_roles(db, user.id) == [UserRole.employee]


async def test_employee_cannot_list_users(client, auth_headers):
    resp = await client.get("/api/v1/users", headers=auth_headers)
    assert resp.status_code == 403


async def test_admin_creates_user_with_roles(client, admin_headers):
    resp = await client.post(
        "/api/v1/users",
        headers=admin_headers,
        json={
            "username": "lead.person",
            "email": "lead@example.com",
            "password": "longenough",
            "full_name": "Lead Person",
            "roles": ["manager"],
        },
    )
    assert resp.status_code == 201
    assert sorted(resp.json()["roles"]) == ["employee", "manager"]
    assert resp.json()["is_manager"] is True


async def test_admin_sets_roles_keeps_employee(client, admin_headers, employee):
    resp = await client.put(
        f"/api/v1/users/{employee[0].id}/roles",
        headers=admin_headers,
        json={"roles": ["manager"]},
    )
    assert resp.status_code == 200
    assert sorted(resp.json()["roles"]) == ["employee", "manager"]


async def test_deactivating_user_revokes_sessions(client, admin_headers, auth_headers, employee):
    resp = await client.patch(
        f"/api/v1/users/{employee[0].id}/status",
        headers=admin_headers,
        json={"is_active": False},
    )
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    resp = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert resp.status_code == 401


async def test_admin_lists_users_with_search(client, admin_headers, employee):
    resp = await client.get(
        "/api/v1/users", headers=admin_headers, params={"search": "eric"}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["meta"]["total"] == 1
    assert body["data"][0]["username"] == "eric.employee"


async def test_health_check(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
