"""Notifications module — targeted announcements and system notices."""
