"""Report tests — PDF layout maths, CSV / XLSX / PDF rendering, performance
scoring, report content and department scoping over the API.
"""

from __future__ import annotations

import io
import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from hrportal.attendance.models import AttendanceRecord
from hrportal.common.constants import AttendanceStatus, LeaveStatus, ReportType
from hrportal.common.exceptions import ValidationException
from hrportal.leave.models import LeaveRequest, LeaveType
from hrportal.reports.renderers import (
    MIN_COLUMN_WIDTH,
    column_widths,
    layout_pages,
    render_csv,
    render_pdf,
    render_xlsx,
)
from hrportal.reports.schemas import ReportData, ReportMeta
from hrportal.reports.service import performance_grade, performance_score, resolve_period
from tests.conftest import seed_department, seed_person

MONDAY = date(2026, 3, 2)
FRIDAY = date(2026, 3, 6)
GENERATED = datetime(2026, 3, 6, 12, 0, tzinfo=timezone.utc)


def _report(rows=None, *, report_type=ReportType.employees, department_name="Engineering") -> ReportData:
    return ReportData(
        title=f"{department_name} Employee Report",
        headers=["Employee Code", "Name", "Status"],
        columns=["employee_code", "name", "status"],
        rows=rows if rows is not None else [
            {"employee_code": "EMP-001", "name": "Eric, Jr.", "status": "Active"},
            {"employee_code": "EMP-002", "name": "Mona", "status": None},
        ],
        meta=ReportMeta(
            report_type=report_type,
            generated_at=GENERATED,
            department_name=department_name,
            start_date=MONDAY,
            end_date=FRIDAY,
        ),
    )


# ═════════════════════════════════════════════════════════════════════
# 1. LAYOUT
# ═════════════════════════════════════════════════════════════════════


class TestColumnWidths:
    def test_proportional_to_header_length(self):
        assert column_widths(["Date", "Name"], 100) == [50, 50]

    def test_minimum_width(self):
        widths = column_widths(["A", "Employee Names"], 150)
        assert widths[0] == MIN_COLUMN_WIDTH
        assert widths[1] == pytest.approx(140)

    def test_blank_headers(self):
        assert column_widths(["", ""], 100) == [MIN_COLUMN_WIDTH, MIN_COLUMN_WIDTH]


class TestLayoutPages:
    def test_rows_fit_on_one_page(self):
        pages = layout_pages(34, 67, 297)
        assert len(pages) == 1
        assert pages[0].header_y == 67
        assert pages[0].rows[0] == (0, 75)
        assert pages[0].rows[-1] == (33, 273)

    def test_breaks_with_repeated_header(self):
        pages = layout_pages(35, 67, 297)
        assert len(pages) == 2
        assert pages[1].header_y == 20
        assert pages[1].rows == [(34, 28)]

    def test_no_rows(self):
        pages = layout_pages(0, 67, 297)
        assert len(pages) == 1
        assert pages[0].rows == []


# ═════════════════════════════════════════════════════════════════════
# 2. RENDERERS
# ═════════════════════════════════════════════════════════════════════


class TestRenderers:
    def test_csv(self):
        lines = render_csv(_report()).decode("utf-8").split("\r\n")
        assert lines[0] == "# Engineering Employee Report"
        # 12:00 UTC is 17:30 local
        assert lines[1] == "# Generated: 2026-03-06 17:30:00"
        assert lines[2] == "# Department: Engineering"
        assert lines[3] == "# Period: 2026-03-02 to 2026-03-06"
        assert lines[4] == ""
        assert lines[5] == "Employee Code,Name,Status"
        assert lines[6] == 'EMP-001,"Eric, Jr.",Active'
        assert lines[7] == "EMP-002,Mona,"

    def test_csv_without_department(self):
        text = render_csv(_report(department_name=None)).decode("utf-8")
        assert "# Department: All\r\n" in text

    def test_xlsx(self):
        wb = load_workbook(io.BytesIO(render_xlsx(_report())))
        assert wb.sheetnames == ["Report Data", "Report Info"]

        data = wb["Report Data"]
        assert [c.value for c in data[1]] == ["Employee Code", "Name", "Status"]
        assert data["A1"].font.bold
        assert data["B2"].value == "Eric, Jr."
        assert data.max_row == 3
        assert data.column_dimensions["A"].width >= 12

        info = wb["Report Info"]
        assert info["A1"].value == "Report Title"
        assert info["B1"].value == "Engineering Employee Report"
        assert info["B3"].value == "Engineering"
        assert info["B4"].value == "2026-03-02"

    def test_pdf(self):
        pdf = render_pdf(_report())
        assert pdf.startswith(b"%PDF")
        assert len(re.findall(rb"/Type /Page\b", pdf)) == 1

    def test_pdf_spills_onto_more_pages(self):
        rows = [
            {"employee_code": f"EMP-{i:03d}", "name": f"Person {i}", "status": "Active"}
            for i in range(60)
        ]
        pdf = render_pdf(_report(rows))
        assert len(re.findall(rb"/Type /Page\b", pdf)) == 2

    def test_filename(self):
        report = _report(department_name="Customer Success")
        assert report.filename("pdf") == "Customer_Success_Employee_Report_2026-03-06.pdf"
        assert _report(department_name=None).filename("csv") == "Employee_Report_2026-03-06.csv"

    def test_landscape_for_wide_reports(self):
        assert _report(report_type=ReportType.attendance).landscape
        assert not _report().landscape


# ═════════════════════════════════════════════════════════════════════
# 3. SCORING AND PERIOD
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    "score, grade",
    [(95, "A"), (90, "A"), (89.99, "B"), (80, "B"), (70, "C"), (60, "D"), (59.9, "F"), (0, "F")],
)
def test_performance_grade(score, grade):
    assert performance_grade(score) == grade


def test_performance_score_weights():
    assert performance_score(100, 0) == pytest.approx(70)
    assert performance_score(80, 50) == pytest.approx(71)


class TestResolvePeriod:
    def test_explicit(self):
        assert resolve_period(MONDAY, FRIDAY) == (MONDAY, FRIDAY)

    def test_inverted(self):
        with pytest.raises(ValidationException):
            resolve_period(FRIDAY, MONDAY)

    def test_too_long(self):
        with pytest.raises(ValidationException):
            resolve_period(MONDAY, MONDAY + timedelta(days=400))


# ═════════════════════════════════════════════════════════════════════
# 4. API
# ═════════════════════════════════════════════════════════════════════


async def _attend(db, employee_id, day, check_in_hour, check_in_minute=0, status=AttendanceStatus.present):
    check_in = datetime(day.year, day.month, day.day, check_in_hour, check_in_minute, tzinfo=timezone.utc)
    db.add(AttendanceRecord(
        employee_id=employee_id,
        attendance_date=day,
        status=status,
        check_in=check_in,
        check_out=check_in + timedelta(hours=8),
        work_hours=Decimal("8"),
    ))
    await db.commit()


async def _approved_leave(db, employee_id, day) -> LeaveRequest:
    leave_type = LeaveType(code="CL", name="Casual Leave", default_annual_quota=Decimal("12"))
    db.add(leave_type)
    await db.flush()
    request = LeaveRequest(
        employee_id=employee_id,
        leave_type_id=leave_type.id,
        start_date=day,
        end_date=day,
        duration=Decimal("1"),
        reason="Errand",
        status=LeaveStatus.approved,
        applied_at=datetime(2026, 2, 20, 6, 0, tzinfo=timezone.utc),
    )
    db.add(request)
    await db.commit()
    return request


PERIOD = "start_date=2026-03-02&end_date=2026-03-06"


class TestReportAPI:
    async def test_performance_report(self, client, db, admin_headers, department, employee, manager):
        emp_id = employee[1].id
        # 03:30 UTC is 09:00 local (on time), 05:00 UTC is 10:30 local (late)
        await _attend(db, emp_id, date(2026, 3, 2), 3, 30)
        await _attend(db, emp_id, date(2026, 3, 3), 3, 0)
        await _attend(db, emp_id, date(2026, 3, 4), 5, 0)
        db.add(AttendanceRecord(employee_id=emp_id, attendance_date=date(2026, 3, 5),
                                status=AttendanceStatus.absent))
        await db.commit()
        await _approved_leave(db, emp_id, FRIDAY)

        resp = await client.get(
            f"/api/v1/reports/performance?{PERIOD}&department_id={department.id}",
            headers=admin_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["title"] == "Engineering Performance Report"
        rows = {r["employee_code"]: r for r in data["rows"]}

        eric = rows[employee[1].employee_code]
        assert eric["days_present"] == 3
        assert eric["days_absent"] == 1
        assert eric["days_on_leave"] == 1.0
        assert eric["attendance_percentage"] == "80.00%"
        assert eric["on_time_percentage"] == "66.67%"
        assert eric["avg_work_hours"] == "8.00"
        # 0.7 * 80 + 0.3 * 66.67 = 76
        assert eric["performance_score"] == "C"

        mona = rows[manager[1].employee_code]
        assert mona["attendance_percentage"] == "0.00%"
        assert mona["avg_work_hours"] == "0.00"
        assert mona["performance_score"] == "F"

    async def test_attendance_report_rows(self, client, db, admin_headers, employee):
        await _attend(db, employee[1].id, MONDAY, 3, 30)
        resp = await client.get(f"/api/v1/reports/attendance?{PERIOD}", headers=admin_headers)
        data = resp.json()
        assert data["title"] == "Attendance Report"
        assert data["meta"]["department_name"] is None
        row = data["rows"][0]
        assert row["date"] == "2026-03-02"
        assert row["employee_name"] == "Eric Employee"
        assert row["email"] == "eric.employee@example.com"
        assert row["check_in"] == "09:00:00"
        assert row["check_out"] == "17:00:00"
        assert row["status"] == "PRESENT"
        assert row["work_hours"] == 8.0

    async def test_leave_report_rows(self, client, db, admin_headers, employee):
        await _approved_leave(db, employee[1].id, FRIDAY)
        resp = await client.get(f"/api/v1/reports/leaves?{PERIOD}", headers=admin_headers)
        row = resp.json()["rows"][0]
        assert row["leave_type"] == "Casual Leave"
        assert row["status"] == "APPROVED"
        assert row["duration"] == 1.0
        assert row["applied_date"] == "2026-02-20"

    async def test_employee_report_includes_inactive(self, client, db, admin_headers, admin, employee):
        _, former = await seed_person(db, username="fred.former")
        former.is_active = False
        await db.commit()

        resp = await client.get(f"/api/v1/reports/employees?{PERIOD}", headers=admin_headers)
        rows = {r["employee_code"]: r for r in resp.json()["rows"]}
        assert rows[former.employee_code]["status"] == "Inactive"
        assert rows[admin[1].employee_code]["department"] == "No Department"
        assert rows[employee[1].employee_code]["position"] == "Engineer"

    async def test_csv_download(self, client, admin_headers, department, employee):
        resp = await client.get(
            f"/api/v1/reports/employees?format=csv&{PERIOD}&department_id={department.id}",
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        disposition = resp.headers["content-disposition"]
        assert re.fullmatch(
            r'attachment; filename="Engineering_Employee_Report_\d{4}-\d{2}-\d{2}\.csv"', disposition
        )
        assert resp.text.startswith("# Engineering Employee Report\r\n")

    async def test_xlsx_and_pdf_downloads(self, client, admin_headers, employee):
        xlsx = await client.get(f"/api/v1/reports/attendance?format=xlsx&{PERIOD}", headers=admin_headers)
        assert xlsx.status_code == 200
        assert load_workbook(io.BytesIO(xlsx.content)).sheetnames == ["Report Data", "Report Info"]

        pdf = await client.get(f"/api/v1/reports/leaves?format=pdf&{PERIOD}", headers=admin_headers)
        assert pdf.headers["content-type"] == "application/pdf"
        assert pdf.content.startswith(b"%PDF")

    async def test_manager_forced_to_own_department(self, client, db, manager_headers, employee):
        other = await seed_department(db, name="Sales")
        await seed_person(db, username="sam.sales", department_id=other.id)

        resp = await client.get(f"/api/v1/reports/employees?{PERIOD}", headers=manager_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["title"] == "Engineering Employee Report"
        assert {r["department"] for r in data["rows"]} == {"Engineering"}

        resp = await client.get(
            f"/api/v1/reports/employees?{PERIOD}&department_id={other.id}", headers=manager_headers
        )
        assert resp.status_code == 403

    async def test_employee_forbidden(self, client, auth_headers):
        resp = await client.get(f"/api/v1/reports/employees?{PERIOD}", headers=auth_headers)
        assert resp.status_code == 403

    async def test_unknown_report_type(self, client, admin_headers):
        resp = await client.get(f"/api/v1/reports/payroll?{PERIOD}", headers=admin_headers)
        assert resp.status_code == 422

    async def test_bad_period(self, client, admin_headers):
        resp = await client.get(
            "/api/v1/reports/attendance?start_date=2026-03-06&end_date=2026-03-02", headers=admin_headers
        )
        assert resp.status_code == 422
