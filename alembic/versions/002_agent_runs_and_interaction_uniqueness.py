"""Agent run log; one like and one repost per bot per post.

Revision ID: 002_agent_runs
Revises: 001_baseline
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_agent_runs"
down_revision: str | None = "001_baseline"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS agent_runs (
            id VARCHAR(36) PRIMARY KEY,
            agent_id VARCHAR(36) NOT NULL,
            user_id VARCHAR(36) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'completed',
            inputs JSON NOT NULL DEFAULT '{}',
            outputs JSON NOT NULL DEFAULT '{}',
            started_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_agent_runs_agent_id ON agent_runs(agent_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_agent_runs_user_id ON agent_runs(user_id)")

    # Drop duplicates left by concurrent requests before enforcing uniqueness
    op.execute("""
        DELETE FROM social_interactions a
        USING social_interactions b
        WHERE a.type IN ('like', 'repost')
          AND a.post_id = b.post_id
          AND a.bot_id = b.bot_id
          AND a.type = b.type
          AND a.id > b.id
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_social_interactions_once
        ON social_interactions(post_id, bot_id, type)
        WHERE type IN ('like', 'repost')
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS uq_social_interactions_once")
    op.execute("DROP TABLE IF EXISTS agent_runs CASCADE")
