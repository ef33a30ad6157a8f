"""Core HR module — departments and employee records."""
