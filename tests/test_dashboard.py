"""Dashboard tests — admin, manager and employee views, attendance trend,
recent activity feed and role enforcement.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

from hrportal.attendance.models import AttendanceRecord, Holiday
from hrportal.common.audit import AuditTrail
from hrportal.common.constants import AttendanceStatus, LeaveStatus
from hrportal.dashboard.service import describe_activity
from hrportal.leave.models import LeaveBalance, LeaveRequest, LeaveType
from tests.conftest import seed_department, seed_person

TODAY = date(2026, 3, 4)


@contextmanager
def frozen_today(day: date = TODAY):
    with patch("hrportal.dashboard.service.local_today", return_value=day), \
            patch("hrportal.attendance.service.local_today", return_value=day):
        yield day


# ── Helpers ─────────────────────────────────────────────────────────


async def _attend(db, employee_id, day, status=AttendanceStatus.present, check_in=None):
    db.add(AttendanceRecord(
        employee_id=employee_id,
        attendance_date=day,
        status=status,
        check_in=check_in,
        is_leave=status == AttendanceStatus.leave,
    ))
    await db.commit()


async def _leave_type(db, code, quota) -> LeaveType:
    leave_type = LeaveType(code=code, name=f"{code} leave", default_annual_quota=Decimal(quota))
    db.add(leave_type)
    await db.commit()
    return leave_type


async def _pending_request(db, employee_id, leave_type) -> LeaveRequest:
    request = LeaveRequest(
        employee_id=employee_id,
        leave_type_id=leave_type.id,
        start_date=TODAY + timedelta(days=7),
        end_date=TODAY + timedelta(days=7),
        duration=Decimal("1"),
        reason="Family event",
        status=LeaveStatus.pending,
        applied_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )
    db.add(request)
    await db.commit()
    return request


# ═════════════════════════════════════════════════════════════════════
# 1. ADMIN
# ═════════════════════════════════════════════════════════════════════


class TestAdminDashboard:
    async def test_counts(self, client, db, admin_headers, employee, manager):
        await seed_person(db, username="gone.user", is_active=False, with_employee=False)
        al = await _leave_type(db, "AL", 20)
        await _pending_request(db, employee[1].id, al)
        await _attend(db, employee[1].id, TODAY)
        await _attend(db, manager[1].id, TODAY, AttendanceStatus.leave)

        with frozen_today():
            resp = await client.get("/api/v1/dashboard/admin", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_users"] == 4
        assert data["active_users"] == 3
        # admin, manager and employee all carry employee records
        assert data["total_employees"] == 3
        assert data["total_departments"] == 1
        assert data["pending_leave_requests"] == 1
        assert data["today"] == {"total": 3, "present": 1, "absent": 1, "on_leave": 1}

    async def test_role_counts(self, client, admin_headers, employee):
        resp = await client.get("/api/v1/dashboard/admin", headers=admin_headers)
        roles = resp.json()["role_counts"]
        assert roles == {"admin": 1, "manager": 1, "employee": 3}

    async def test_department_headcount(self, client, db, admin_headers, department, employee, manager):
        await seed_department(db, name="Finance")
        await _attend(db, employee[1].id, TODAY, AttendanceStatus.half_day)

        with frozen_today():
            resp = await client.get("/api/v1/dashboard/admin", headers=admin_headers)
        departments = resp.json()["departments"]
        assert [d["department_name"] for d in departments] == ["Engineering", "Finance"]
        engineering, finance = departments
        assert engineering["headcount"] == 2
        assert engineering["present_today"] == 1
        assert engineering["on_leave_today"] == 0
        assert finance["headcount"] == 0
        assert finance["present_today"] == 0

    async def test_manager_forbidden(self, client, manager_headers):
        resp = await client.get("/api/v1/dashboard/admin", headers=manager_headers)
        assert resp.status_code == 403

    async def test_requires_auth(self, client):
        resp = await client.get("/api/v1/dashboard/admin")
        assert resp.status_code == 401


# ═════════════════════════════════════════════════════════════════════
# 2. MANAGER
# ═════════════════════════════════════════════════════════════════════


class TestManagerDashboard:
    async def test_team_snapshot(self, client, db, manager_headers, department, manager, employee):
        _, peer = await seed_person(db, username="paul.peer", department_id=department.id)
        check_in = datetime(2026, 3, 4, 3, 45, tzinfo=timezone.utc)
        await _attend(db, employee[1].id, TODAY, check_in=check_in)
        al = await _leave_type(db, "AL", 20)
        await _pending_request(db, peer.id, al)

        with frozen_today():
            resp = await client.get("/api/v1/dashboard/manager", headers=manager_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["department_name"] == "Engineering"
        assert data["team_size"] == 2
        assert data["pending_approvals"] == 1
        assert data["today"] == {"total": 2, "present": 1, "absent": 1, "on_leave": 0}

        members = {m["employee_id"]: m for m in data["members"]}
        assert str(manager[1].id) not in members
        eric = members[str(employee[1].id)]
        assert eric["full_name"] == "Eric Employee"
        assert eric["status_today"] == "present"
        assert eric["check_in"].startswith("2026-03-04T03:45")
        assert members[str(peer.id)]["status_today"] is None

    async def test_other_department_excluded(self, client, db, manager_headers, employee):
        other = await seed_department(db, name="Sales")
        await seed_person(db, username="sam.sales", department_id=other.id)
        resp = await client.get("/api/v1/dashboard/manager", headers=manager_headers)
        assert resp.json()["team_size"] == 1

    async def test_employee_forbidden(self, client, auth_headers):
        resp = await client.get("/api/v1/dashboard/manager", headers=auth_headers)
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# 3. EMPLOYEE SUMMARY
# ═════════════════════════════════════════════════════════════════════


class TestEmployeeSummary:
    async def test_attendance_stats(self, client, db, auth_headers, employee):
        emp_id = employee[1].id
        # 03:30 UTC is 09:00 local, 05:00 UTC is 10:30 local
        await _attend(db, emp_id, date(2026, 3, 2), check_in=datetime(2026, 3, 2, 3, 30, tzinfo=timezone.utc))
        await _attend(db, emp_id, date(2026, 3, 3), check_in=datetime(2026, 3, 3, 5, 0, tzinfo=timezone.utc))
        await _attend(db, emp_id, TODAY, AttendanceStatus.half_day,
                      check_in=datetime(2026, 3, 4, 3, 0, tzinfo=timezone.utc))
        await _attend(db, emp_id, date(2026, 2, 27), AttendanceStatus.absent)
        await _attend(db, emp_id, date(2026, 2, 26), AttendanceStatus.leave)
        await _attend(db, emp_id, date(2025, 12, 31))

        with frozen_today():
            resp = await client.get("/api/v1/dashboard/me", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["year"] == 2026
        assert data["attendance"] == {"present": 3, "absent": 1, "late": 1, "leaves": 1}
        assert data["last_check_in"].startswith("2026-03-04T03:00")
        assert data["checked_in_today"] is True
        assert data["checked_out_today"] is False

    async def test_leave_remaining(self, client, db, auth_headers, employee):
        await _leave_type(db, "AL", 20)
        sick = await _leave_type(db, "SL", 10)
        db.add(LeaveBalance(
            employee_id=employee[1].id,
            leave_type_id=sick.id,
            year=2026,
            allocated_leaves=Decimal("10"),
            carried_forward=Decimal("0"),
            used_leaves=Decimal("12"),
            pending_leaves=Decimal("0"),
        ))
        await db.commit()

        with frozen_today():
            resp = await client.get("/api/v1/dashboard/me", headers=auth_headers)
        balance = resp.json()["leave_balance"]
        assert balance["annual"] == 20.0
        # overdrawn balances are clamped, missing types report zero
        assert balance["sick"] == 0.0
        assert balance["casual"] == 0.0

    async def test_explicit_year(self, client, db, auth_headers, employee):
        await _attend(db, employee[1].id, date(2025, 6, 2))
        with frozen_today():
            resp = await client.get("/api/v1/dashboard/me?year=2025", headers=auth_headers)
        data = resp.json()
        assert data["year"] == 2025
        assert data["attendance"]["present"] == 1
        assert data["checked_in_today"] is False

    async def test_pending_and_holidays(self, client, db, auth_headers, employee, department):
        cl = await _leave_type(db, "CL", 12)
        await _pending_request(db, employee[1].id, cl)
        db.add_all([
            Holiday(name="Founders Day", holiday_date=date(2026, 3, 20)),
            Holiday(name="Sales Offsite", holiday_date=date(2026, 3, 10),
                    applicable_departments=[str(uuid.uuid4())]),
            Holiday(name="New Year", holiday_date=date(2026, 1, 1)),
        ])
        await db.commit()

        with frozen_today():
            resp = await client.get("/api/v1/dashboard/me", headers=auth_headers)
        data = resp.json()
        assert data["pending_leave_requests"] == 1
        assert [h["name"] for h in data["upcoming_holidays"]] == ["Founders Day"]

    async def test_invalid_year(self, client, auth_headers):
        resp = await client.get("/api/v1/dashboard/me?year=1999", headers=auth_headers)
        assert resp.status_code == 422


# ═════════════════════════════════════════════════════════════════════
# 4. ATTENDANCE TREND
# ═════════════════════════════════════════════════════════════════════


class TestAttendanceTrend:
    async def test_admin_sees_everyone(self, client, db, admin_headers, admin, employee, manager):
        await _attend(db, employee[1].id, TODAY)
        await _attend(db, manager[1].id, TODAY, AttendanceStatus.half_day)
        await _attend(db, admin[1].id, TODAY - timedelta(days=1), AttendanceStatus.absent)
        await _attend(db, admin[1].id, TODAY - timedelta(days=2), AttendanceStatus.leave)
        await _attend(db, admin[1].id, TODAY - timedelta(days=10))

        with frozen_today():
            resp = await client.get("/api/v1/dashboard/attendance-trend?days=3", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["start_date"] == "2026-03-02"
        assert data["end_date"] == "2026-03-04"
        points = {p["day"]: p for p in data["data"]}
        assert list(points) == ["2026-03-02", "2026-03-03", "2026-03-04"]
        assert points["2026-03-04"]["present"] == 1
        assert points["2026-03-04"]["half_day"] == 1
        assert points["2026-03-03"]["absent"] == 1
        assert points["2026-03-02"]["on_leave"] == 1

    async def test_manager_sees_team_only(self, client, db, manager_headers, admin, employee):
        await _attend(db, employee[1].id, TODAY)
        await _attend(db, admin[1].id, TODAY)

        with frozen_today():
            resp = await client.get("/api/v1/dashboard/attendance-trend?days=1", headers=manager_headers)
        points = resp.json()["data"]
        assert len(points) == 1
        assert points[0]["present"] == 1

    async def test_days_bounds(self, client, admin_headers):
        resp = await client.get("/api/v1/dashboard/attendance-trend?days=91", headers=admin_headers)
        assert resp.status_code == 422

    async def test_employee_forbidden(self, client, auth_headers):
        resp = await client.get("/api/v1/dashboard/attendance-trend", headers=auth_headers)
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# 5. RECENT ACTIVITIES
# ═════════════════════════════════════════════════════════════════════


class TestRecentActivities:
    async def test_latest_first_with_descriptions(self, client, db, admin_headers, admin, employee):
        base = datetime(2026, 3, 4, 6, 0, tzinfo=timezone.utc)
        db.add_all([
            AuditTrail(action="check_in", entity_type="attendance_record", entity_id=uuid.uuid4(),
                       actor_id=employee[0].id, created_at=base),
            AuditTrail(action="approve", entity_type="leave_request", entity_id=uuid.uuid4(),
                       actor_id=admin[0].id, created_at=base + timedelta(minutes=5)),
            AuditTrail(action="purge", entity_type="notification", entity_id=uuid.uuid4(),
                       created_at=base + timedelta(minutes=10)),
        ])
        await db.commit()

        resp = await client.get("/api/v1/dashboard/recent-activities?limit=3", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["limit"] == 3
        assert [a["description"] for a in data["data"]] == [
            "System performed 'purge' on notification",
            "Ada Admin approved a leave request",
            "Eric Employee checked in",
        ]
        assert data["data"][1]["actor_name"] == "Ada Admin"

    async def test_manager_forbidden(self, client, manager_headers):
        resp = await client.get("/api/v1/dashboard/recent-activities", headers=manager_headers)
        assert resp.status_code == 403


class TestDescribeActivity:
    def test_known_action(self):
        assert describe_activity("apply", "leave_request", "Eric") == "Eric applied for leave"

    def test_unknown_action_without_actor(self):
        assert describe_activity("archive", "schedule_item") == "System performed 'archive' on schedule item"
