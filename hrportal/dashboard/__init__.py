"""Dashboard: role-specific aggregate views."""
