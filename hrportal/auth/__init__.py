"""Auth module — password login, JWT sessions, role-based access."""
