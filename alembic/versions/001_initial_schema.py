"""001 – Initial schema: leave balances, requests, idempotency logs, accounts.

personnel_employee, personnel_company and att_payloadtimecard belong to the
attendance system and are not created here.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000+05:00
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

# Balance column prefixes, one pair (<prefix>_available, <prefix>_approved) each
BALANCE_BUCKETS: list[str] = [
    "casual",
    "rest_recreation",
    "leave_not_due",
    "study",
    "ex_pakistan",
    "extra_ordinary",
    "disability",
    "lpr",
    "medical",
    "maternity",
    "paternity",
    "iddat",
    "hajj",
    "fatal_medical_emergency",
    "earned_encashable",
    "earned_non_encashable",
]


def _balance_columns() -> str:
    cols = []
    for prefix in BALANCE_BUCKETS:
        cols.append(f"{prefix}_available INTEGER NOT NULL DEFAULT 0")
        cols.append(f"{prefix}_approved  INTEGER NOT NULL DEFAULT 0")
    return ",\n            ".join(cols)


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. employee_leave_balances ────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE employee_leave_balances (
            emp_id      INTEGER PRIMARY KEY,
            {_balance_columns()},
            updated_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. employee_leave_requests ────────────────────────────────────────
    op.execute("""
        CREATE TABLE employee_leave_requests (
            id                      SERIAL PRIMARY KEY,
            emp_id                  INTEGER NOT NULL,
            leave_type              VARCHAR(100) NOT NULL,
            start_date              DATE NOT NULL,
            end_date                DATE NOT NULL,
            total_days              INTEGER,
            status                  VARCHAR(16) NOT NULL DEFAULT 'pending',
            contact_number          VARCHAR(30),
            alternate_officer       VARCHAR(150),
            reason                  TEXT,
            attachment              BYTEA,
            attachment_content_type VARCHAR(100),
            hr_remarks              TEXT,
            decided_by              INTEGER,
            decided_at              TIMESTAMPTZ,
            created_at              TIMESTAMPTZ DEFAULT NOW(),
            updated_at              TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_req_dates  CHECK (end_date >= start_date),
            CONSTRAINT ck_leave_req_status CHECK (status IN ('pending', 'approved', 'rejected'))
        )
    """)
    op.execute("CREATE INDEX idx_leave_req_emp    ON employee_leave_requests(emp_id)")
    op.execute("CREATE INDEX idx_leave_req_status ON employee_leave_requests(status)")

    # ── 3. employee_leave_accrual_log ─────────────────────────────────────
    op.execute("""
        CREATE TABLE employee_leave_accrual_log (
            id          SERIAL PRIMARY KEY,
            emp_id      INTEGER NOT NULL,
            year        INTEGER NOT NULL,
            month       INTEGER NOT NULL CHECK (month BETWEEN 1 AND 12),
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_accrual_emp_year_month UNIQUE (emp_id, year, month)
        )
    """)

    # ── 4. employee_leave_carry_log ───────────────────────────────────────
    op.execute("""
        CREATE TABLE employee_leave_carry_log (
            id          SERIAL PRIMARY KEY,
            emp_id      INTEGER NOT NULL,
            year        INTEGER NOT NULL,
            carried     INTEGER NOT NULL DEFAULT 0,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_carry_emp_year UNIQUE (emp_id, year)
        )
    """)

    # ── 5. user_accounts ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_accounts (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            emp_id          INTEGER NOT NULL UNIQUE,
            email           VARCHAR(255) NOT NULL UNIQUE,
            password_hash   VARCHAR(255) NOT NULL,
            role            VARCHAR(16) NOT NULL CHECK (role IN ('employee', 'hr')),
            first_name      VARCHAR(100) NOT NULL,
            middle_name     VARCHAR(100),
            last_name       VARCHAR(100) NOT NULL,
            is_active       BOOLEAN NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 6. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id     UUID NOT NULL REFERENCES user_accounts(id) ON DELETE CASCADE,
            token_hash  VARCHAR(512) NOT NULL,
            ip_address  INET,
            user_agent  TEXT,
            expires_at  TIMESTAMPTZ NOT NULL,
            is_revoked  BOOLEAN NOT NULL DEFAULT FALSE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_user_sessions_user    ON user_sessions(user_id)")
    op.execute("CREATE INDEX idx_user_sessions_token   ON user_sessions(token_hash)")
    op.execute("CREATE INDEX idx_user_sessions_expires ON user_sessions(expires_at)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "user_sessions",
        "user_accounts",
        "employee_leave_carry_log",
        "employee_leave_accrual_log",
        "employee_leave_requests",
        "employee_leave_balances",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
