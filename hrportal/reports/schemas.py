"""Report Pydantic schemas."""

import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from hrportal.common.constants import ReportType


class ReportMeta(BaseModel):
    report_type: ReportType
    generated_at: datetime
    department_id: Optional[uuid.UUID] = None
    department_name: Optional[str] = None
    start_date: date
    end_date: date


class ReportData(BaseModel):
    """A rendered-agnostic table: ``headers[i]`` labels ``columns[i]``."""

    title: str
    headers: list[str]
    columns: list[str]
    rows: list[dict[str, Any]] = Field(default_factory=list)
    meta: ReportMeta

    @property
    def landscape(self) -> bool:
        return self.meta.report_type in (ReportType.attendance, ReportType.leaves)

    @property
    def department_label(self) -> str:
        return self.meta.department_name or "All"

    def cells(self, row: dict[str, Any]) -> list[Any]:
        """Row values in column order; missing values become empty strings."""
        return ["" if row.get(col) is None else row.get(col) for col in self.columns]

    def filename(self, extension: str) -> str:
        base = {
            ReportType.attendance: "Attendance_Report",
            ReportType.employees: "Employee_Report",
            ReportType.leaves: "Leave_Report",
            ReportType.performance: "Performance_Report",
        }[self.meta.report_type]
        if self.meta.department_name:
            base = f"{self.meta.department_name.replace(' ', '_')}_{base}"
        return f"{base}_{self.meta.generated_at:%Y-%m-%d}.{extension}"
