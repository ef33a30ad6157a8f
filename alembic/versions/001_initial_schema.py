"""001 – Initial schema: users, org structure, attendance, leave,
notifications, schedules and the audit trail.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-03-02 10:00:00.000000+05:30
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("gender_type", ["male", "female", "other"]),
    ("user_role", ["employee", "manager", "admin"]),
    ("leave_status", ["pending", "approved", "denied", "cancelled"]),
    (
        "attendance_status",
        ["present", "absent", "leave", "holiday", "half_day", "weekend"],
    ),
    ("shift_type", ["morning", "evening", "night"]),
    ("schedule_status", ["scheduled", "completed", "missed"]),
    ("notification_priority", ["low", "medium", "high"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. users ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            username        VARCHAR(50)  NOT NULL UNIQUE,
            email           VARCHAR(255) NOT NULL UNIQUE,
            password_hash   VARCHAR(255) NOT NULL,
            full_name       VARCHAR(150) NOT NULL,
            gender          gender_type,
            contact_number  VARCHAR(20),
            join_date       DATE,
            is_active       BOOLEAN DEFAULT TRUE,
            last_login      TIMESTAMPTZ,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_users_email_lower ON users(LOWER(email))")

    # ── 2. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id     UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            token_hash  VARCHAR(128) NOT NULL,
            ip_address  VARCHAR(45),
            user_agent  TEXT,
            expires_at  TIMESTAMPTZ NOT NULL,
            is_revoked  BOOLEAN DEFAULT FALSE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_user_sessions_token_hash ON user_sessions(token_hash)")
    op.execute("CREATE INDEX idx_user_sessions_user ON user_sessions(user_id)")

    # ── 3. role_assignments ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE role_assignments (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id     UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            role        user_role NOT NULL,
            assigned_by UUID REFERENCES users(id),
            assigned_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_role_assignment UNIQUE (user_id, role)
        )
    """)

    # ── 4. departments ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name          VARCHAR(150) NOT NULL UNIQUE,
            description   TEXT,
            head_user_id  UUID,
            is_active     BOOLEAN DEFAULT TRUE,
            created_at    TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at    TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT fk_dept_head FOREIGN KEY (head_user_id)
                REFERENCES users(id) ON DELETE SET NULL
        )
    """)

    # ── 5. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id              UUID NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
            employee_code        VARCHAR(20) NOT NULL UNIQUE,
            department_id        UUID REFERENCES departments(id),
            designation          VARCHAR(150),
            hire_date            DATE NOT NULL,
            reporting_manager_id UUID,
            is_active            BOOLEAN DEFAULT TRUE,
            created_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT fk_employee_manager FOREIGN KEY (reporting_manager_id)
                REFERENCES employees(id) ON DELETE SET NULL
        )
    """)
    op.execute("CREATE INDEX idx_employees_department ON employees(department_id)")
    op.execute("CREATE INDEX idx_employees_manager ON employees(reporting_manager_id)")

    # ── 6. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code                  VARCHAR(20)  NOT NULL UNIQUE,
            name                  VARCHAR(100) NOT NULL,
            description           TEXT,
            default_annual_quota  NUMERIC(5,1) DEFAULT 0,
            is_carry_forward      BOOLEAN DEFAULT FALSE,
            requires_approval     BOOLEAN DEFAULT TRUE,
            max_consecutive_days  INTEGER DEFAULT 0,
            is_active             BOOLEAN DEFAULT TRUE,
            created_at            TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at            TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # ── 7. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id       UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type_id     UUID NOT NULL REFERENCES leave_types(id),
            year              INTEGER NOT NULL,
            allocated_leaves  NUMERIC(5,1) DEFAULT 0,
            carried_forward   NUMERIC(5,1) DEFAULT 0,
            used_leaves       NUMERIC(5,1) DEFAULT 0,
            pending_leaves    NUMERIC(5,1) DEFAULT 0,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_leave_balance UNIQUE (employee_id, leave_type_id, year)
        )
    """)

    # ── 8. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id           UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type_id         UUID NOT NULL REFERENCES leave_types(id),
            start_date            DATE NOT NULL,
            end_date              DATE NOT NULL,
            duration              NUMERIC(4,1) NOT NULL,
            is_half_day           BOOLEAN DEFAULT FALSE,
            reason                VARCHAR(500) NOT NULL,
            contact_during_leave  VARCHAR(100),
            status                leave_status NOT NULL DEFAULT 'pending',
            applied_at            TIMESTAMPTZ NOT NULL,
            reviewed_by           UUID REFERENCES users(id) ON DELETE SET NULL,
            reviewed_at           TIMESTAMPTZ,
            rejection_reason      TEXT,
            cancelled_at          TIMESTAMPTZ,
            created_at            TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at            TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (end_date >= start_date)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_requests_employee_status
            ON leave_requests(employee_id, status)
    """)
    op.execute("""
        CREATE INDEX idx_leave_req_dates
            ON leave_requests(start_date, end_date)
    """)

    # ── 9. attendance_records ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE attendance_records (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id       UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            attendance_date   DATE NOT NULL,
            check_in          TIMESTAMPTZ,
            check_out         TIMESTAMPTZ,
            status            attendance_status NOT NULL DEFAULT 'absent',
            work_hours        NUMERIC(5,2) DEFAULT 0,
            is_leave          BOOLEAN DEFAULT FALSE,
            leave_request_id  UUID REFERENCES leave_requests(id) ON DELETE SET NULL,
            remarks           TEXT,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_attendance_emp_date UNIQUE (employee_id, attendance_date)
        )
    """)
    op.execute("CREATE INDEX ix_attendance_date ON attendance_records(attendance_date)")

    # ── 10. holidays ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE holidays (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name                    VARCHAR(100) NOT NULL,
            holiday_date            DATE NOT NULL,
            description             TEXT,
            is_optional             BOOLEAN DEFAULT FALSE,
            applicable_departments  JSONB,
            created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_holiday_name_date UNIQUE (name, holiday_date)
        )
    """)
    op.execute("CREATE INDEX ix_holidays_holiday_date ON holidays(holiday_date)")

    # ── 11. notifications ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            title          VARCHAR(100) NOT NULL,
            message        VARCHAR(500) NOT NULL,
            sender_id      UUID REFERENCES users(id) ON DELETE SET NULL,
            priority       notification_priority NOT NULL DEFAULT 'medium',
            department_id  UUID REFERENCES departments(id) ON DELETE SET NULL,
            all_employees  BOOLEAN DEFAULT FALSE,
            entity_type    VARCHAR(50),
            entity_id      UUID,
            expires_at     TIMESTAMPTZ NOT NULL,
            created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_notifications_expires_at ON notifications(expires_at)")

    # ── 12. notification_recipients ───────────────────────────────────────
    op.execute("""
        CREATE TABLE notification_recipients (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            notification_id  UUID NOT NULL REFERENCES notifications(id) ON DELETE CASCADE,
            user_id          UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            is_read          BOOLEAN DEFAULT FALSE,
            read_at          TIMESTAMPTZ,
            CONSTRAINT uq_notification_recipient UNIQUE (notification_id, user_id)
        )
    """)
    op.execute("""
        CREATE INDEX ix_notification_recipients_user
            ON notification_recipients(user_id, is_read)
    """)

    # ── 13. schedule_items ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE schedule_items (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id    UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            schedule_date  DATE NOT NULL,
            shift          shift_type NOT NULL DEFAULT 'morning',
            status         schedule_status NOT NULL DEFAULT 'scheduled',
            notes          VARCHAR(500),
            created_by     UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_schedule_emp_date UNIQUE (employee_id, schedule_date)
        )
    """)
    op.execute("CREATE INDEX ix_schedule_items_date ON schedule_items(schedule_date)")

    # ── 14. audit_trail ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id     UUID REFERENCES users(id) ON DELETE SET NULL,
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    UUID NOT NULL,
            old_values   JSONB,
            new_values   JSONB,
            ip_address   VARCHAR(45),
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX idx_audit_trail_created ON audit_trail(created_at DESC)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    tables = [
        "audit_trail",
        "schedule_items",
        "notification_recipients",
        "notifications",
        "holidays",
        "attendance_records",
        "leave_requests",
        "leave_balances",
        "leave_types",
        "employees",
        "departments",
        "role_assignments",
        "user_sessions",
        "users",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
