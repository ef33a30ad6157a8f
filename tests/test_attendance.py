"""Attendance module test suite — check-in/out, status derivation, late
detection, summaries, admin CRUD, bulk import and holidays.

Tests exercise both the service layer (direct DB) and the HTTP API.
The clock is pinned with ``unittest.mock.patch`` so day-dependent
statuses are deterministic.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy import select

from hrportal.attendance.models import AttendanceRecord, Holiday
from hrportal.attendance.service import AttendanceService, HolidayService, compute_work_status
from hrportal.common.constants import AttendanceStatus, LeaveStatus
from hrportal.common.timeutils import is_late, working_days
from hrportal.leave.models import LeaveRequest, LeaveType
from tests.conftest import TestSessionFactory, login_headers, seed_department, seed_person

# Wednesday; 03:30 UTC is 09:00 at the default +05:30 offset
WEDNESDAY = date(2026, 3, 4)
SATURDAY = date(2026, 3, 7)


@contextmanager
def frozen_clock(day: date, hour: int = 3, minute: int = 30):
    moment = datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)
    with patch("hrportal.attendance.service.local_today", return_value=day), \
            patch("hrportal.attendance.service.utc_now", return_value=moment):
        yield moment


# ── Helpers ─────────────────────────────────────────────────────────


async def _record(db, employee_id, day, status=AttendanceStatus.present, **kwargs) -> AttendanceRecord:
    record = AttendanceRecord(employee_id=employee_id, attendance_date=day, status=status, **kwargs)
    db.add(record)
    await db.commit()
    return record


# ═════════════════════════════════════════════════════════════════════
# 1. PURE HELPERS
# ═════════════════════════════════════════════════════════════════════


class TestWorkStatus:
    def test_full_day_is_present(self):
        start = datetime(2026, 3, 4, 4, 0, tzinfo=timezone.utc)
        hours, status = compute_work_status(start, start + timedelta(hours=8, minutes=30), AttendanceStatus.present)
        assert hours == Decimal("8.5")
        assert status == AttendanceStatus.present

    def test_short_day_is_half_day(self):
        start = datetime(2026, 3, 4, 4, 0, tzinfo=timezone.utc)
        hours, status = compute_work_status(start, start + timedelta(hours=5), AttendanceStatus.present)
        assert hours == Decimal("5.0")
        assert status == AttendanceStatus.half_day

    def test_very_short_day_keeps_status(self):
        start = datetime(2026, 3, 4, 4, 0, tzinfo=timezone.utc)
        _, status = compute_work_status(start, start + timedelta(hours=1), AttendanceStatus.weekend)
        assert status == AttendanceStatus.weekend

    def test_missing_times(self):
        assert compute_work_status(None, None, AttendanceStatus.absent) == (
            Decimal("0"), AttendanceStatus.absent,
        )

    def test_naive_times_are_treated_as_utc(self):
        hours, _ = compute_work_status(
            datetime(2026, 3, 4, 4, 0),
            datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc),
            AttendanceStatus.present,
        )
        assert hours == Decimal("8.0")

    def test_late_cutoff_uses_local_time(self):
        # 04:00 UTC = 09:30 IST, exactly on time
        assert is_late(datetime(2026, 3, 4, 4, 0, tzinfo=timezone.utc)) is False
        assert is_late(datetime(2026, 3, 4, 4, 1, tzinfo=timezone.utc)) is True

    def test_working_days_skip_weekends(self):
        assert working_days(date(2026, 3, 2), date(2026, 3, 8)) == 5


# ═════════════════════════════════════════════════════════════════════
# 2. CHECK-IN / CHECK-OUT
# ═════════════════════════════════════════════════════════════════════


class TestCheckInOut:
    async def test_check_in_on_workday(self, client, auth_headers):
        with frozen_clock(WEDNESDAY):
            resp = await client.post("/api/v1/attendance/check-in", headers=auth_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "present"
        assert data["attendance_date"] == "2026-03-04"
        assert data["check_out"] is None

    async def test_second_check_in_conflicts(self, client, auth_headers):
        with frozen_clock(WEDNESDAY):
            await client.post("/api/v1/attendance/check-in", headers=auth_headers)
            resp = await client.post("/api/v1/attendance/check-in", headers=auth_headers)
        assert resp.status_code == 409

    async def test_check_in_on_weekend(self, client, auth_headers):
        with frozen_clock(SATURDAY):
            resp = await client.post("/api/v1/attendance/check-in", headers=auth_headers)
        assert resp.json()["status"] == "weekend"

    async def test_check_in_on_holiday(self, client, db, auth_headers):
        db.add(Holiday(name="Founders Day", holiday_date=WEDNESDAY))
        await db.commit()
        with frozen_clock(WEDNESDAY):
            resp = await client.post("/api/v1/attendance/check-in", headers=auth_headers)
        assert resp.json()["status"] == "holiday"

    async def test_optional_holiday_counts_as_holiday(self, client, db, auth_headers):
        db.add(Holiday(name="Optional Fest", holiday_date=WEDNESDAY, is_optional=True))
        await db.commit()
        with frozen_clock(WEDNESDAY):
            resp = await client.post("/api/v1/attendance/check-in", headers=auth_headers)
        assert resp.json()["status"] == "holiday"

    async def test_check_in_during_approved_leave(self, client, db, auth_headers, employee):
        lt = LeaveType(name="Annual Leave", code="AL", default_annual_quota=Decimal("20"))
        db.add(lt)
        await db.flush()
        req = LeaveRequest(
            employee_id=employee[1].id,
            leave_type_id=lt.id,
            start_date=WEDNESDAY,
            end_date=WEDNESDAY,
            duration=Decimal("1"),
            reason="Trip",
            status=LeaveStatus.approved,
            applied_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )
        db.add(req)
        await db.commit()

        with frozen_clock(WEDNESDAY):
            resp = await client.post("/api/v1/attendance/check-in", headers=auth_headers)
        data = resp.json()
        assert data["status"] == "leave"
        assert data["is_leave"] is True
        assert data["leave_request_id"] == str(req.id)

    async def test_check_in_clears_stale_leave_link(self, client, db, auth_headers, employee):
        lt = LeaveType(name="Annual Leave", code="AL", default_annual_quota=Decimal("20"))
        db.add(lt)
        await db.flush()
        req = LeaveRequest(
            employee_id=employee[1].id,
            leave_type_id=lt.id,
            start_date=WEDNESDAY,
            end_date=WEDNESDAY,
            duration=Decimal("1"),
            reason="Trip",
            status=LeaveStatus.cancelled,
            applied_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )
        db.add(req)
        await db.flush()
        await _record(
            db, employee[1].id, WEDNESDAY,
            status=AttendanceStatus.absent, leave_request_id=req.id,
        )

        with frozen_clock(WEDNESDAY):
            resp = await client.post("/api/v1/attendance/check-in", headers=auth_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "present"
        assert data["is_leave"] is False
        assert data["leave_request_id"] is None

    async def test_check_in_and_out_store_remarks(self, client, auth_headers):
        with frozen_clock(WEDNESDAY, hour=3, minute=30):
            resp = await client.post(
                "/api/v1/attendance/check-in",
                headers=auth_headers,
                json={"remarks": "Client site"},
            )
        assert resp.status_code == 201
        assert resp.json()["remarks"] == "Client site"

        with frozen_clock(WEDNESDAY, hour=12):
            resp = await client.post("/api/v1/attendance/check-out", headers=auth_headers)
        assert resp.json()["remarks"] == "Client site"

        async with TestSessionFactory() as session:
            record = (await session.execute(select(AttendanceRecord))).scalars().one()
        assert record.remarks == "Client site"

    async def test_check_out_remarks_replace_check_in_remarks(self, client, auth_headers):
        with frozen_clock(WEDNESDAY, hour=3, minute=30):
            await client.post(
                "/api/v1/attendance/check-in", headers=auth_headers, json={"remarks": "Morning"},
            )
        with frozen_clock(WEDNESDAY, hour=12):
            resp = await client.post(
                "/api/v1/attendance/check-out", headers=auth_headers, json={"remarks": "Left early"},
            )
        assert resp.status_code == 200
        assert resp.json()["remarks"] == "Left early"

    async def test_remarks_too_long(self, client, auth_headers):
        with frozen_clock(WEDNESDAY):
            resp = await client.post(
                "/api/v1/attendance/check-in", headers=auth_headers, json={"remarks": "x" * 501},
            )
        assert resp.status_code == 422

    async def test_check_out_without_check_in(self, client, auth_headers):
        with frozen_clock(WEDNESDAY):
            resp = await client.post("/api/v1/attendance/check-out", headers=auth_headers)
        assert resp.status_code == 422

    async def test_check_out_computes_hours(self, client, auth_headers):
        with frozen_clock(WEDNESDAY, hour=3, minute=30):
            await client.post("/api/v1/attendance/check-in", headers=auth_headers)
        with frozen_clock(WEDNESDAY, hour=8, minute=0):
            resp = await client.post("/api/v1/attendance/check-out", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["work_hours"] == 4.5
        assert data["status"] == "half_day"

        with frozen_clock(WEDNESDAY, hour=9):
            again = await client.post("/api/v1/attendance/check-out", headers=auth_headers)
        assert again.status_code == 409

    async def test_today_endpoint(self, client, auth_headers):
        with frozen_clock(WEDNESDAY):
            empty = await client.get("/api/v1/attendance/today", headers=auth_headers)
            await client.post("/api/v1/attendance/check-in", headers=auth_headers)
            resp = await client.get("/api/v1/attendance/today", headers=auth_headers)
        assert empty.json() is None
        assert resp.json()["attendance_date"] == "2026-03-04"

    async def test_user_without_employee_record(self, client, db):

        user, _ = await seed_person(db, username="no.record", with_employee=False)
        headers = await login_headers(db, user)
        resp = await client.post("/api/v1/attendance/check-in", headers=headers)
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# 3. SUMMARIES AND LISTS
# ═════════════════════════════════════════════════════════════════════


class TestAttendanceReads:
    async def test_summary_counts(self, db, employee):
        emp_id = employee[1].id
        late = datetime(2026, 3, 2, 5, 0, tzinfo=timezone.utc)
        await _record(db, emp_id, date(2026, 3, 2), check_in=late, work_hours=Decimal("8"))
        await _record(db, emp_id, date(2026, 3, 3), status=AttendanceStatus.absent)
        await _record(db, emp_id, date(2026, 3, 4), status=AttendanceStatus.leave, is_leave=True)
        await _record(db, emp_id, date(2026, 3, 5), status=AttendanceStatus.half_day, work_hours=Decimal("4.5"))

        summary = await AttendanceService.get_summary(db, emp_id, 2026)
        assert summary.present == 1
        assert summary.absent == 1
        assert summary.leaves == 1
        assert summary.half_day == 1
        assert summary.late == 1
        assert summary.total_work_hours == 12.5

    async def test_my_history_is_newest_first(self, client, db, auth_headers, employee):
        await _record(db, employee[1].id, date(2026, 3, 2))
        await _record(db, employee[1].id, date(2026, 3, 3))
        resp = await client.get("/api/v1/attendance/me", headers=auth_headers)
        dates = [r["attendance_date"] for r in resp.json()["data"]]
        assert dates == ["2026-03-03", "2026-03-02"]

    async def test_inverted_range_rejected(self, client, auth_headers):
        resp = await client.get(
            "/api/v1/attendance/me",
            headers=auth_headers,
            params={"start_date": "2026-03-10", "end_date": "2026-03-01"},
        )
        assert resp.status_code == 422

    async def test_manager_sees_only_team(self, client, db, manager_headers, employee):
        other = await seed_department(db, "Ops")

        _, outsider = await seed_person(db, username="out.sider", department_id=other.id)
        await _record(db, employee[1].id, WEDNESDAY)
        await _record(db, outsider.id, WEDNESDAY)

        resp = await client.get("/api/v1/attendance", headers=manager_headers)
        assert resp.status_code == 200
        ids = {r["employee_id"] for r in resp.json()["data"]}
        assert ids == {str(employee[1].id)}

    async def test_employee_cannot_list_all(self, client, auth_headers):
        resp = await client.get("/api/v1/attendance", headers=auth_headers)
        assert resp.status_code == 403

    async def test_by_date_counts(self, client, db, admin_headers, employee, manager):
        await _record(db, employee[1].id, WEDNESDAY)
        await _record(db, manager[1].id, WEDNESDAY, status=AttendanceStatus.leave)
        resp = await client.get(
            "/api/v1/attendance/by-date", headers=admin_headers, params={"day": "2026-03-04"},
        )
        data = resp.json()
        assert data["total"] == 2
        assert data["present"] == 1
        assert data["on_leave"] == 1

    async def test_manager_summary_outside_team_forbidden(self, client, db, manager_headers):

        _, outsider = await seed_person(db, username="lone.wolf")
        resp = await client.get(
            f"/api/v1/attendance/summary/{outsider.id}", headers=manager_headers,
        )
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# 4. ADMIN CRUD
# ═════════════════════════════════════════════════════════════════════


class TestAdminAttendance:
    async def test_create_derives_status_from_times(self, client, admin_headers, employee):
        resp = await client.post(
            "/api/v1/attendance",
            headers=admin_headers,
            json={
                "employee_id": str(employee[1].id),
                "attendance_date": "2026-03-04",
                "check_in": "2026-03-04T03:30:00Z",
                "check_out": "2026-03-04T12:00:00Z",
            },
        )
        assert resp.status_code == 201
        assert resp.json()["status"] == "present"
        assert resp.json()["work_hours"] == 8.5

    async def test_create_duplicate_conflicts(self, client, db, admin_headers, employee):
        await _record(db, employee[1].id, WEDNESDAY)
        resp = await client.post(
            "/api/v1/attendance",
            headers=admin_headers,
            json={"employee_id": str(employee[1].id), "attendance_date": "2026-03-04"},
        )
        assert resp.status_code == 409

    async def test_check_out_before_check_in_rejected(self, client, admin_headers, employee):
        resp = await client.post(
            "/api/v1/attendance",
            headers=admin_headers,
            json={
                "employee_id": str(employee[1].id),
                "attendance_date": "2026-03-04",
                "check_in": "2026-03-04T10:00:00Z",
                "check_out": "2026-03-04T09:00:00Z",
            },
        )
        assert resp.status_code == 422

    async def test_bulk_reports_row_errors(self, client, db, admin_headers, employee):
        await _record(db, employee[1].id, date(2026, 3, 2))
        row = {"employee_id": str(employee[1].id), "status": "present"}
        resp = await client.post(
            "/api/v1/attendance/bulk",
            headers=admin_headers,
            json={"records": [
                {**row, "attendance_date": "2026-03-02"},
                {**row, "attendance_date": "2026-03-03"},
                {**row, "attendance_date": "2026-03-03"},
            ]},
        )
        assert resp.status_code == 201
        data = resp.json()
        assert len(data["created"]) == 1
        assert [e["index"] for e in data["errors"]] == [0, 2]

    async def test_update_and_delete(self, client, db, admin_headers, employee):
        record = await _record(db, employee[1].id, WEDNESDAY, status=AttendanceStatus.absent)
        resp = await client.put(
            f"/api/v1/attendance/{record.id}",
            headers=admin_headers,
            json={"status": "leave", "remarks": "Retroactive"},
        )
        assert resp.status_code == 200
        assert resp.json()["is_leave"] is True

        resp = await client.delete(f"/api/v1/attendance/{record.id}", headers=admin_headers)
        assert resp.status_code == 204
        async with TestSessionFactory() as session:
            rows = (await session.execute(select(AttendanceRecord))).scalars().all()
        assert rows == []

    async def test_manager_cannot_create(self, client, manager_headers, employee):
        resp = await client.post(
            "/api/v1/attendance",
            headers=manager_headers,
            json={"employee_id": str(employee[1].id), "attendance_date": "2026-03-04"},
        )
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# 5. HOLIDAYS
# ═════════════════════════════════════════════════════════════════════


class TestHolidays:
    async def test_department_scoped_holiday(self, db, department):
        other = await seed_department(db, "Design")
        db.add(Holiday(
            name="Engineering Offsite",
            holiday_date=WEDNESDAY,
            applicable_departments=[str(department.id)],
        ))
        await db.commit()

        assert await HolidayService.holiday_for(db, WEDNESDAY, department.id) is not None
        assert await HolidayService.holiday_for(db, WEDNESDAY, other.id) is None
        assert await HolidayService.holiday_for(db, WEDNESDAY, None) is None

    async def test_admin_crud(self, client, admin_headers):
        resp = await client.post(
            "/api/v1/holidays",
            headers=admin_headers,
            json={"name": "New Year", "holiday_date": "2026-01-01"},
        )
        assert resp.status_code == 201
        holiday_id = resp.json()["id"]

        dup = await client.post(
            "/api/v1/holidays",
            headers=admin_headers,
            json={"name": "New Year", "holiday_date": "2026-01-01"},
        )
        assert dup.status_code == 409

        resp = await client.put(
            f"/api/v1/holidays/{holiday_id}",
            headers=admin_headers,
            json={"is_optional": True},
        )
        assert resp.json()["is_optional"] is True

        resp = await client.get("/api/v1/holidays", headers=admin_headers, params={"year": 2026})
        assert [h["name"] for h in resp.json()] == ["New Year"]

        resp = await client.delete(f"/api/v1/holidays/{holiday_id}", headers=admin_headers)
        assert resp.status_code == 204

    async def test_employee_cannot_create_holiday(self, client, auth_headers):
        resp = await client.post(
            "/api/v1/holidays",
            headers=auth_headers,
            json={"name": "My Day", "holiday_date": "2026-05-05"},
        )
        assert resp.status_code == 403
