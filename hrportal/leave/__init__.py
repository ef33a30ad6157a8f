"""Leave module — leave types, balances, requests and approvals."""
