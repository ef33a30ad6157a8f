"""Schedule tests — shift creation, team scoping, updates, deletes and
the weekly listing windows.
"""

from __future__ import annotations

import uuid
from datetime import date
from unittest.mock import patch

import pytest

from hrportal.common.constants import ShiftType
from hrportal.schedules.models import ScheduleItem
from hrportal.schedules.service import shift_label
from tests.conftest import seed_department, seed_person

MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)
NEXT_MONDAY = date(2026, 3, 9)


async def _shift(db, employee_id, day, shift=ShiftType.morning) -> ScheduleItem:
    item = ScheduleItem(employee_id=employee_id, schedule_date=day, shift=shift)
    db.add(item)
    await db.commit()
    return item


@pytest.mark.parametrize(
    "shift, label",
    [
        (ShiftType.morning, "08:00-16:00"),
        (ShiftType.evening, "16:00-00:00"),
        (ShiftType.night, "00:00-08:00"),
    ],
)
def test_shift_label(shift, label):
    assert shift_label(shift) == label


class TestCreateSchedule:
    async def test_manager_schedules_team_member(self, client, manager_headers, employee):
        resp = await client.post(
            "/api/v1/schedules",
            headers=manager_headers,
            json={"employee_id": str(employee[1].id), "schedule_date": "2026-03-02", "notes": "Release day"},
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["shift"] == "morning"
        assert data["shift_hours"] == "08:00-16:00"
        assert data["status"] == "scheduled"
        assert data["employee_name"] == "Eric Employee"
        assert data["department"] == "Engineering"

    async def test_same_day_conflicts(self, client, db, manager_headers, employee):
        await _shift(db, employee[1].id, MONDAY)
        resp = await client.post(
            "/api/v1/schedules",
            headers=manager_headers,
            json={"employee_id": str(employee[1].id), "schedule_date": "2026-03-02", "shift": "night"},
        )
        assert resp.status_code == 409

    async def test_manager_outside_team_forbidden(self, client, db, manager_headers, employee):
        other = await seed_department(db, name="Sales")
        _, outsider = await seed_person(db, username="sam.sales", department_id=other.id)
        resp = await client.post(
            "/api/v1/schedules",
            headers=manager_headers,
            json={"employee_id": str(outsider.id), "schedule_date": "2026-03-02"},
        )
        assert resp.status_code == 403

    async def test_admin_schedules_anyone(self, client, db, admin_headers):
        other = await seed_department(db, name="Sales")
        _, outsider = await seed_person(db, username="sam.sales", department_id=other.id)
        resp = await client.post(
            "/api/v1/schedules",
            headers=admin_headers,
            json={"employee_id": str(outsider.id), "schedule_date": "2026-03-02", "shift": "evening"},
        )
        assert resp.status_code == 201
        assert resp.json()["shift_hours"] == "16:00-00:00"

    async def test_unknown_employee(self, client, admin_headers):
        resp = await client.post(
            "/api/v1/schedules",
            headers=admin_headers,
            json={"employee_id": str(uuid.uuid4()), "schedule_date": "2026-03-02"},
        )
        assert resp.status_code == 404

    async def test_employee_forbidden(self, client, auth_headers, employee):
        resp = await client.post(
            "/api/v1/schedules",
            headers=auth_headers,
            json={"employee_id": str(employee[1].id), "schedule_date": "2026-03-02"},
        )
        assert resp.status_code == 403


class TestUpdateDelete:
    async def test_update_shift_and_status(self, client, db, manager_headers, employee):
        item = await _shift(db, employee[1].id, MONDAY)
        resp = await client.put(
            f"/api/v1/schedules/{item.id}",
            headers=manager_headers,
            json={"shift": "night", "status": "completed"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["shift"] == "night"
        assert data["shift_hours"] == "00:00-08:00"
        assert data["status"] == "completed"

    async def test_move_onto_taken_day(self, client, db, manager_headers, employee):
        item = await _shift(db, employee[1].id, MONDAY)
        await _shift(db, employee[1].id, TUESDAY)
        resp = await client.put(
            f"/api/v1/schedules/{item.id}",
            headers=manager_headers,
            json={"schedule_date": "2026-03-03"},
        )
        assert resp.status_code == 409

    async def test_empty_update_rejected(self, client, db, manager_headers, employee):
        item = await _shift(db, employee[1].id, MONDAY)
        resp = await client.put(f"/api/v1/schedules/{item.id}", headers=manager_headers, json={})
        assert resp.status_code == 422

    async def test_update_missing(self, client, manager_headers):
        resp = await client.put(
            f"/api/v1/schedules/{uuid.uuid4()}", headers=manager_headers, json={"shift": "night"}
        )
        assert resp.status_code == 404

    async def test_delete(self, client, db, manager_headers, employee):
        item = await _shift(db, employee[1].id, MONDAY)
        resp = await client.delete(f"/api/v1/schedules/{item.id}", headers=manager_headers)
        assert resp.status_code == 204

        resp = await client.get(
            "/api/v1/schedules?start_date=2026-03-02&end_date=2026-03-08", headers=manager_headers
        )
        assert resp.json() == []


class TestListSchedules:
    async def test_my_schedule(self, client, db, auth_headers, employee, manager):
        await _shift(db, employee[1].id, MONDAY)
        await _shift(db, employee[1].id, NEXT_MONDAY)
        await _shift(db, manager[1].id, MONDAY)

        resp = await client.get(
            "/api/v1/schedules/me?start_date=2026-03-02&end_date=2026-03-08", headers=auth_headers
        )
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 1
        assert data[0]["employee_id"] == str(employee[1].id)

    async def test_default_window_is_current_week(self, client, db, auth_headers, employee):
        await _shift(db, employee[1].id, MONDAY)
        await _shift(db, employee[1].id, NEXT_MONDAY)

        with patch("hrportal.schedules.router.local_today", return_value=date(2026, 3, 5)):
            resp = await client.get("/api/v1/schedules/me", headers=auth_headers)
        assert [s["schedule_date"] for s in resp.json()] == ["2026-03-02"]

    async def test_manager_sees_department(self, client, db, manager_headers, employee):
        other = await seed_department(db, name="Sales")
        _, outsider = await seed_person(db, username="sam.sales", department_id=other.id)
        await _shift(db, employee[1].id, MONDAY)
        await _shift(db, outsider.id, MONDAY)

        resp = await client.get(
            "/api/v1/schedules?start_date=2026-03-02&end_date=2026-03-08", headers=manager_headers
        )
        assert [s["employee_id"] for s in resp.json()] == [str(employee[1].id)]

    async def test_manager_other_department_forbidden(self, client, db, manager_headers):
        other = await seed_department(db, name="Sales")
        resp = await client.get(
            f"/api/v1/schedules?department_id={other.id}", headers=manager_headers
        )
        assert resp.status_code == 403

    async def test_admin_filters_department(self, client, db, admin_headers, employee):
        other = await seed_department(db, name="Sales")
        _, outsider = await seed_person(db, username="sam.sales", department_id=other.id)
        await _shift(db, employee[1].id, MONDAY)
        await _shift(db, outsider.id, TUESDAY)

        resp = await client.get(
            f"/api/v1/schedules?department_id={other.id}&start_date=2026-03-02&end_date=2026-03-08",
            headers=admin_headers,
        )
        assert [s["department"] for s in resp.json()] == ["Sales"]

    async def test_inverted_window(self, client, admin_headers):
        resp = await client.get(
            "/api/v1/schedules?start_date=2026-03-08&end_date=2026-03-02", headers=admin_headers
        )
        assert resp.status_code == 422
