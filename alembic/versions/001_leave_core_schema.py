"""001 – Leave core schema: directory, ledger buckets, requests, routing, audit.

Revision ID: 001_leave_core_schema
Revises:
Create Date: 2026-03-02 09:00:00.000000+02:00
"""

from alembic import op

# Revision identifiers
revision = "001_leave_core_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    (
        "user_role",
        ["employee", "director", "department_head", "hr_admin", "system_admin"],
    ),
    (
        "leave_status",
        ["pending_director", "pending_department_head", "approved", "rejected"],
    ),
    ("notification_type", ["info", "action_required", "approval", "alert"]),
]

# Drop order: dependants first
TABLES: list[str] = [
    "audit_trail",
    "notifications",
    "leave_approval_delegates",
    "leave_department_approvers",
    "leave_approvers",
    "leave_requests",
    "leave_bonus_grants",
    "leave_carryover_grants",
    "employee_leave_accounts",
    "custom_holidays",
    "role_assignments",
    "employees",
    "departments",
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

    # ── Directory ─────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(150) NOT NULL UNIQUE,
            code        VARCHAR(20) UNIQUE,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE employees (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code  VARCHAR(20)  NOT NULL UNIQUE,
            first_name     VARCHAR(100) NOT NULL,
            last_name      VARCHAR(100) NOT NULL,
            email          VARCHAR(255) NOT NULL UNIQUE,
            department_id  UUID REFERENCES departments(id),
            position       VARCHAR(150),
            is_active      BOOLEAN DEFAULT TRUE,
            created_at     TIMESTAMPTZ DEFAULT NOW(),
            updated_at     TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_employees_department_id ON employees(department_id)")

    op.execute("""
        CREATE TABLE role_assignments (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            role         user_role NOT NULL,
            assigned_at  TIMESTAMPTZ DEFAULT NOW(),
            revoked_at   TIMESTAMPTZ,
            is_active    BOOLEAN DEFAULT TRUE,
            CONSTRAINT uq_role_assignment UNIQUE (employee_id, role)
        )
    """)

    # ── Holidays ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE custom_holidays (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            holiday_date  DATE NOT NULL UNIQUE,
            name          VARCHAR(200) NOT NULL DEFAULT '',
            created_by    UUID REFERENCES employees(id) ON DELETE SET NULL,
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── Ledger buckets ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employee_leave_accounts (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id           UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            year                  INTEGER NOT NULL,
            base_allocation_days  INTEGER NOT NULL DEFAULT 21,
            used_days             INTEGER NOT NULL DEFAULT 0,
            version               INTEGER NOT NULL DEFAULT 1,
            created_at            TIMESTAMPTZ DEFAULT NOW(),
            updated_at            TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_account_employee_year UNIQUE (employee_id, year),
            CONSTRAINT ck_leave_account_used_non_negative CHECK (used_days >= 0)
        )
    """)

    op.execute("""
        CREATE TABLE leave_carryover_grants (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id     UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            from_year       INTEGER NOT NULL,
            to_year         INTEGER NOT NULL,
            initial_days    INTEGER NOT NULL DEFAULT 0,
            used_days       INTEGER NOT NULL DEFAULT 0,
            remaining_days  INTEGER NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_carryover UNIQUE (employee_id, from_year, to_year),
            CONSTRAINT ck_carryover_used_non_negative CHECK (used_days >= 0),
            CONSTRAINT ck_carryover_remaining_non_negative CHECK (remaining_days >= 0)
        )
    """)

    op.execute("""
        CREATE TABLE leave_bonus_grants (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            year         INTEGER NOT NULL,
            bonus_days   INTEGER NOT NULL,
            reason       VARCHAR(300) NOT NULL,
            legal_basis  VARCHAR(300),
            created_by   UUID REFERENCES employees(id) ON DELETE SET NULL,
            created_at   TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_bonus_days_positive CHECK (bonus_days > 0)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_bonus_employee_year ON leave_bonus_grants(employee_id, year)"
    )

    # ── Requests ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                         UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            request_number             VARCHAR(30) NOT NULL UNIQUE,
            sequence                   INTEGER NOT NULL,
            year                       INTEGER NOT NULL,
            employee_id                UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            account_id                 UUID REFERENCES employee_leave_accounts(id) ON DELETE SET NULL,
            start_date                 DATE NOT NULL,
            end_date                   DATE NOT NULL,
            working_days               INTEGER NOT NULL,
            replacement_id             UUID REFERENCES employees(id) ON DELETE SET NULL,
            status                     leave_status NOT NULL DEFAULT 'pending_director',
            approver_id                UUID REFERENCES employees(id) ON DELETE SET NULL,
            notes                      TEXT,
            employee_signed_at         TIMESTAMPTZ DEFAULT NOW(),
            director_id                UUID REFERENCES employees(id) ON DELETE SET NULL,
            director_signed_at         TIMESTAMPTZ,
            department_head_id         UUID REFERENCES employees(id) ON DELETE SET NULL,
            department_head_signed_at  TIMESTAMPTZ,
            rejected_by                UUID REFERENCES employees(id) ON DELETE SET NULL,
            rejected_at                TIMESTAMPTZ,
            rejection_reason           TEXT,
            last_edited_by             UUID REFERENCES employees(id) ON DELETE SET NULL,
            last_edited_at             TIMESTAMPTZ,
            created_at                 TIMESTAMPTZ DEFAULT NOW(),
            updated_at                 TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_request_sequence UNIQUE (year, sequence),
            CONSTRAINT ck_leave_request_days_positive CHECK (working_days > 0)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_requests_employee_status ON leave_requests(employee_id, status)"
    )
    op.execute(
        "CREATE INDEX ix_leave_requests_dates ON leave_requests(start_date, end_date)"
    )

    # ── Approver routing ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_approvers (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id  UUID NOT NULL UNIQUE REFERENCES employees(id) ON DELETE CASCADE,
            approver_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            notes        TEXT,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE leave_department_approvers (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            department_id  UUID NOT NULL UNIQUE REFERENCES departments(id) ON DELETE CASCADE,
            approver_id    UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            created_at     TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE leave_approval_delegates (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            delegator_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            delegate_id   UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            start_date    DATE NOT NULL,
            end_date      DATE NOT NULL,
            reason        TEXT,
            is_active     BOOLEAN DEFAULT TRUE,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_delegate_window CHECK (end_date >= start_date)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_delegates_delegate ON leave_approval_delegates(delegate_id, is_active)"
    )

    # ── Notifications / audit ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            type          notification_type NOT NULL DEFAULT 'info',
            title         VARCHAR(200) NOT NULL,
            message       TEXT NOT NULL,
            action_url    VARCHAR(500),
            entity_type   VARCHAR(50),
            entity_id     UUID,
            is_read       BOOLEAN DEFAULT FALSE,
            read_at       TIMESTAMPTZ,
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_notifications_recipient_read ON notifications(recipient_id, is_read)"
    )

    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id     UUID REFERENCES employees(id) ON DELETE SET NULL,
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    UUID,
            old_values   JSONB,
            new_values   JSONB,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")
    op.execute("CREATE INDEX ix_audit_trail_action ON audit_trail(action)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for t in TABLES:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
