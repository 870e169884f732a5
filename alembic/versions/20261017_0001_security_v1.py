"""Create security v1 tables for verification requests, storefront lock and sessions."""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Apply security v1 storage schema.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        `users` may already exist from the account module; only missing columns are added.
    Raises:
        Exception: Postgres execution errors from Alembic runtime.
    Side Effects:
        Creates security tables, constraints, and indexes.
    """
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            role TEXT NOT NULL DEFAULT 'customer',
            email TEXT NULL,
            email_verified_at TIMESTAMPTZ NULL,
            phone TEXT NULL,
            current_session_id TEXT NULL,
            CONSTRAINT users_role_chk
                CHECK (role IN ('admin', 'staff', 'customer', 'member', 'logistic'))
        )
        """
    )
    op.execute("ALTER TABLE users ADD COLUMN IF NOT EXISTS email_verified_at TIMESTAMPTZ NULL")
    op.execute("ALTER TABLE users ADD COLUMN IF NOT EXISTS current_session_id TEXT NULL")
    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_users_email_lower
            ON users (lower(email))
            WHERE email IS NOT NULL
        """
    )
    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_users_phone
            ON users (phone)
            WHERE phone IS NOT NULL
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS verification_requests (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
            verification_type TEXT NOT NULL,
            target_value TEXT NOT NULL,
            code TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL,
            expires_at TIMESTAMPTZ NOT NULL,
            state TEXT NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL,
            failed_attempts INTEGER NOT NULL DEFAULT 0,
            locked_until TIMESTAMPTZ NULL,
            CONSTRAINT verification_requests_type_chk
                CHECK (verification_type IN ('email', 'phone')),
            CONSTRAINT verification_requests_state_chk
                CHECK (state IN ('pending', 'consumed', 'cancelled')),
            CONSTRAINT verification_requests_code_chk
                CHECK (code ~ '^[0-9]{6}$'),
            CONSTRAINT verification_requests_expiry_chk
                CHECK (expires_at > created_at),
            CONSTRAINT verification_requests_attempts_chk
                CHECK (failed_attempts >= 0)
        )
        """
    )
    # At most one pending request per (user, type).
    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_verification_requests_owner_pending
            ON verification_requests (user_id, verification_type)
            WHERE state = 'pending'
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS system_locks (
            lock_key TEXT PRIMARY KEY,
            status TEXT NOT NULL,
            lock_time TIMESTAMPTZ NULL,
            updated_by BIGINT NULL REFERENCES users (id) ON DELETE SET NULL,
            updated_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT system_locks_status_chk
                CHECK (status IN ('open', 'pending_lock', 'locked')),
            CONSTRAINT system_locks_pending_time_chk
                CHECK ((status = 'pending_lock') = (lock_time IS NOT NULL))
        )
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS sessions (
            session_id TEXT PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
            last_activity TIMESTAMPTZ NULL
        )
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_sessions_user
            ON sessions (user_id, session_id)
        """
    )


def downgrade() -> None:
    """
    Revert security v1 storage schema.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        `users` belongs to the account module and is kept; only security columns are dropped.
    Raises:
        Exception: Postgres execution errors from Alembic runtime.
    Side Effects:
        Drops sessions, system locks, and verification requests tables.
    """
    op.execute("DROP TABLE IF EXISTS sessions")
    op.execute("DROP TABLE IF EXISTS system_locks")
    op.execute("DROP TABLE IF EXISTS verification_requests")
    op.execute("ALTER TABLE users DROP COLUMN IF EXISTS current_session_id")
