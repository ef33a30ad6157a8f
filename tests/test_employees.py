"""Employee module test suite — CRUD, team scoping, manager assignment,
visibility rules and soft delete.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select

from hrportal.common.audit import AuditTrail
from hrportal.core_hr.models import Employee
from hrportal.core_hr.service import manages, team_member_ids
from tests.conftest import TestSessionFactory, seed_department, seed_person


# ═════════════════════════════════════════════════════════════════════
# 1. TEAM SCOPING
# ═════════════════════════════════════════════════════════════════════


class TestTeamScope:
    async def test_team_includes_reports_and_department(self, db, department, manager, employee):
        other_dept = await seed_department(db, "Sales")
        _, remote_report = await seed_person(
            db,
            username="remote.report",
            department_id=other_dept.id,
            reporting_manager_id=manager[1].id,
        )
        _, colleague = await seed_person(db, username="desk.mate", department_id=department.id)
        _, stranger = await seed_person(db, username="far.away", department_id=other_dept.id)

        ids = set(await team_member_ids(db, manager[1]))
        assert ids == {employee[1].id, remote_report.id, colleague.id}
        assert await manages(db, manager[1], stranger.id) is False

    async def test_manager_is_not_own_team_member(self, db, manager):
        assert await manages(db, manager[1], manager[1].id) is False


# ═════════════════════════════════════════════════════════════════════
# 2. CRUD
# ═════════════════════════════════════════════════════════════════════


class TestEmployeeCRUD:
    async def test_admin_creates_employee_for_user(self, client, db, admin_headers, department):
        user, _ = await seed_person(db, username="fresh.face", with_employee=False)
        resp = await client.post(
            "/api/v1/employees",
            headers=admin_headers,
            json={
                "user_id": str(user.id),
                "employee_code": " emp-900 ",
                "department_id": str(department.id),
                "designation": "Analyst",
                "hire_date": "2025-03-01",
            },
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["employee_code"] == "EMP-900"
        assert data["full_name"] == "Fresh Face"
        assert data["department"]["name"] == "Engineering"

        async with TestSessionFactory() as session:
            audit = (await session.execute(
                select(AuditTrail).where(AuditTrail.entity_type == "employee")
            )).scalars().first()
        assert audit.action == "create"

    async def test_second_record_for_user_conflicts(self, client, admin_headers, employee):
        resp = await client.post(
            "/api/v1/employees",
            headers=admin_headers,
            json={
                "user_id": str(employee[0].id),
                "employee_code": "EMP-901",
                "hire_date": "2025-03-01",
            },
        )
        assert resp.status_code == 409

    async def test_unknown_user(self, client, admin_headers):
        resp = await client.post(
            "/api/v1/employees",
            headers=admin_headers,
            json={"user_id": str(uuid.uuid4()), "employee_code": "X1", "hire_date": "2025-01-01"},
        )
        assert resp.status_code == 404

    async def test_update_designation(self, client, admin_headers, employee):
        resp = await client.put(
            f"/api/v1/employees/{employee[1].id}",
            headers=admin_headers,
            json={"designation": "Senior Engineer"},
        )
        assert resp.status_code == 200
        assert resp.json()["designation"] == "Senior Engineer"

    async def test_cannot_report_to_self(self, client, admin_headers, employee):
        resp = await client.put(
            f"/api/v1/employees/{employee[1].id}/manager",
            headers=admin_headers,
            json={"reporting_manager_id": str(employee[1].id)},
        )
        assert resp.status_code == 400

    async def test_soft_delete(self, client, admin_headers, employee):
        resp = await client.delete(f"/api/v1/employees/{employee[1].id}", headers=admin_headers)
        assert resp.status_code == 204

        async with TestSessionFactory() as session:
            emp = await session.get(Employee, employee[1].id)
        assert emp is not None
        assert emp.is_active is False


# ═════════════════════════════════════════════════════════════════════
# 3. VISIBILITY
# ═════════════════════════════════════════════════════════════════════


class TestEmployeeVisibility:
    async def test_me(self, client, auth_headers, employee, manager):
        resp = await client.get("/api/v1/employees/me", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["id"] == str(employee[1].id)
        assert data["reporting_manager"]["id"] == str(manager[1].id)
        assert data["gender"] == "male"

    async def test_manager_sees_team_member(self, client, manager_headers, employee):
        resp = await client.get(f"/api/v1/employees/{employee[1].id}", headers=manager_headers)
        assert resp.status_code == 200

    async def test_employee_cannot_see_manager(self, client, auth_headers, manager):
        resp = await client.get(f"/api/v1/employees/{manager[1].id}", headers=auth_headers)
        assert resp.status_code == 403

    async def test_manager_list_is_team_only(self, client, db, manager_headers, employee):
        other = await seed_department(db, "Support")
        await seed_person(db, username="not.mine", department_id=other.id)

        resp = await client.get("/api/v1/employees", headers=manager_headers)
        assert resp.status_code == 200
        ids = [e["id"] for e in resp.json()["data"]]
        assert ids == [str(employee[1].id)]

    async def test_admin_list_search(self, client, admin_headers, employee, manager):
        resp = await client.get(
            "/api/v1/employees", headers=admin_headers, params={"search": "mona"},
        )
        assert resp.status_code == 200
        assert resp.json()["meta"]["total"] == 1
        assert resp.json()["data"][0]["full_name"] == "Mona Manager"

    async def test_employee_cannot_list(self, client, auth_headers):
        resp = await client.get("/api/v1/employees", headers=auth_headers)
        assert resp.status_code == 403

    async def test_direct_reports(self, client, manager_headers, manager, employee):
        resp = await client.get(
            f"/api/v1/employees/{manager[1].id}/direct-reports", headers=manager_headers,
        )
        assert [e["id"] for e in resp.json()] == [str(employee[1].id)]
