"""Attendance module — check-in/out, attendance records, holidays."""
