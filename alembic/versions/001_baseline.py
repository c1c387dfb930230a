"""Baseline: profiles, social graph, agents, ledgers, back-office tables.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_TABLES = (
    "builds",
    "platform_settings",
    "reports",
    "credit_transactions",
    "wallet_transactions",
    "wallets",
    "agent_nfts",
    "agent_trials",
    "agent_purchases",
    "agent_manifests",
    "agents",
    "social_follows",
    "social_interactions",
    "social_posts",
    "social_bots",
    "user_roles",
    "profiles",
)


def upgrade() -> None:
    # --- Users & roles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id VARCHAR(36) PRIMARY KEY,
            display_name VARCHAR(64),
            avatar_url TEXT,
            credits INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_roles (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            role VARCHAR(16) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_roles_user_id ON user_roles(user_id)")

    # --- Social ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS social_bots (
            id VARCHAR(36) PRIMARY KEY,
            owner_id VARCHAR(36),
            name VARCHAR(64) NOT NULL,
            handle VARCHAR(64) NOT NULL UNIQUE,
            avatar TEXT NOT NULL DEFAULT '🤖',
            bio TEXT,
            badge VARCHAR(32) NOT NULL DEFAULT 'Bot',
            badge_color VARCHAR(32) NOT NULL DEFAULT 'cyan',
            verified BOOLEAN NOT NULL DEFAULT false,
            followers INTEGER NOT NULL DEFAULT 0,
            following INTEGER NOT NULL DEFAULT 0,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            api_key_prefix VARCHAR(16),
            api_key_hash VARCHAR(256),
            api_endpoint TEXT,
            voice_enabled BOOLEAN NOT NULL DEFAULT false,
            voice_id VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_social_bots_owner_id ON social_bots(owner_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_social_bots_api_key_prefix ON social_bots(api_key_prefix)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS social_posts (
            id VARCHAR(36) PRIMARY KEY,
            bot_id VARCHAR(36) NOT NULL REFERENCES social_bots(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            likes INTEGER NOT NULL DEFAULT 0,
            reposts INTEGER NOT NULL DEFAULT 0,
            replies INTEGER NOT NULL DEFAULT 0,
            parent_post_id VARCHAR(36),
            audio_url TEXT,
            image_url TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_social_posts_bot_id ON social_posts(bot_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_social_posts_parent_post_id ON social_posts(parent_post_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_social_posts_created_at ON social_posts(created_at DESC)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS social_interactions (
            id VARCHAR(36) PRIMARY KEY,
            post_id VARCHAR(36) NOT NULL,
            bot_id VARCHAR(36) NOT NULL,
            type VARCHAR(16) NOT NULL,
            reply_post_id VARCHAR(36),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_social_interactions_post_id ON social_interactions(post_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_social_interactions_bot_id ON social_interactions(bot_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS social_follows (
            id VARCHAR(36) PRIMARY KEY,
            follower_id VARCHAR(36) NOT NULL,
            following_id VARCHAR(36) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            UNIQUE(follower_id, following_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_social_follows_follower_id ON social_follows(follower_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_social_follows_following_id ON social_follows(following_id)")

    # --- Agents & marketplace ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS agents (
            id VARCHAR(36) PRIMARY KEY,
            creator_id VARCHAR(36) NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            short_description TEXT,
            avatar TEXT NOT NULL DEFAULT '🤖',
            category VARCHAR(64),
            template_id VARCHAR(64),
            price DOUBLE PRECISION NOT NULL DEFAULT 0,
            status VARCHAR(16) NOT NULL DEFAULT 'draft',
            is_trial BOOLEAN NOT NULL DEFAULT false,
            trial_earnings_locked DOUBLE PRECISION NOT NULL DEFAULT 0,
            total_runs INTEGER NOT NULL DEFAULT 0,
            total_earnings DOUBLE PRECISION NOT NULL DEFAULT 0,
            monthly_return_min DOUBLE PRECISION NOT NULL DEFAULT 0,
            monthly_return_max DOUBLE PRECISION NOT NULL DEFAULT 0,
            purchased_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_agents_creator_id ON agents(creator_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS agent_manifests (
            id VARCHAR(36) PRIMARY KEY,
            agent_id VARCHAR(36) NOT NULL,
            triggers JSON NOT NULL DEFAULT '[]',
            tool_permissions JSON NOT NULL DEFAULT '[]'
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_agent_manifests_agent_id ON agent_manifests(agent_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS agent_purchases (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            agent_id VARCHAR(36) NOT NULL,
            price_paid DOUBLE PRECISION NOT NULL DEFAULT 0,
            subscription_status VARCHAR(16) NOT NULL DEFAULT 'one_time',
            expires_at TIMESTAMPTZ,
            purchased_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_agent_purchases_user_id ON agent_purchases(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_agent_purchases_agent_id ON agent_purchases(agent_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS agent_trials (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            template_id VARCHAR(64) NOT NULL,
            agent_id VARCHAR(36),
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            expires_at TIMESTAMPTZ NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_agent_trials_user_id ON agent_trials(user_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS agent_nfts (
            id VARCHAR(36) PRIMARY KEY,
            agent_id VARCHAR(36) NOT NULL,
            user_id VARCHAR(36) NOT NULL,
            token_name VARCHAR(160) NOT NULL,
            token_symbol VARCHAR(16) NOT NULL,
            serial_number INTEGER NOT NULL,
            image_url TEXT,
            metadata_uri TEXT,
            mint_address VARCHAR(128),
            mint_tx_hash VARCHAR(128),
            status VARCHAR(24) NOT NULL DEFAULT 'metadata_ready',
            error TEXT,
            minted_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_agent_nfts_agent_id ON agent_nfts(agent_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_agent_nfts_user_id ON agent_nfts(user_id)")

    # --- Wallets & credits ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS wallets (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            address VARCHAR(128) NOT NULL UNIQUE,
            network VARCHAR(32) NOT NULL DEFAULT 'solana',
            currency VARCHAR(16) NOT NULL DEFAULT 'USDC',
            balance DOUBLE PRECISION NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_wallets_user_id ON wallets(user_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS wallet_transactions (
            id VARCHAR(36) PRIMARY KEY,
            wallet_id VARCHAR(36) NOT NULL,
            type VARCHAR(16) NOT NULL,
            amount DOUBLE PRECISION NOT NULL,
            balance_after DOUBLE PRECISION NOT NULL,
            chain VARCHAR(32),
            tx_hash VARCHAR(128),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_wallet_transactions_wallet_id ON wallet_transactions(wallet_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS credit_transactions (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            amount INTEGER NOT NULL,
            balance_after INTEGER NOT NULL,
            type VARCHAR(32) NOT NULL,
            description TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_credit_transactions_user_id ON credit_transactions(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_credit_transactions_created_at ON credit_transactions(created_at)")

    # --- Back-office ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reports (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            category VARCHAR(32) NOT NULL,
            details TEXT,
            screenshot_url TEXT,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            admin_notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_reports_user_id ON reports(user_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS platform_settings (
            key VARCHAR(64) PRIMARY KEY,
            value JSON,
            description TEXT,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_by VARCHAR(36)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS builds (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            platform VARCHAR(16) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            github_run_id BIGINT,
            artifact_url TEXT,
            error_message TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_builds_user_id ON builds(user_id)")


def downgrade() -> None:
    for table in _TABLES:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
