"""Shift schedules per employee and day."""
