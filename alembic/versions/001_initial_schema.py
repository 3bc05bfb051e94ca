"""initial schema: users, user_refresh_tokens, revoked_tokens

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    is_sqlite = bind.dialect.name == 'sqlite'

    timestamp_default = sa.text("(datetime('now'))") if is_sqlite else sa.text('now()')

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1' if is_sqlite else 'true'),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=timestamp_default),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=timestamp_default),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_user_id', 'users', ['user_id'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Create user_refresh_tokens table
    op.create_table(
        'user_refresh_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=50), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('token_id', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=timestamp_default),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_refresh_tokens_id', 'user_refresh_tokens', ['id'])
    op.create_index('ix_user_refresh_tokens_user_id', 'user_refresh_tokens', ['user_id'])
    op.create_index('ix_user_refresh_tokens_token_hash', 'user_refresh_tokens', ['token_hash'])

    # Create revoked_tokens table (the revocation ledger)
    op.create_table(
        'revoked_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('token_type', sa.String(length=16), nullable=False),
        sa.Column('user_id', sa.String(length=50), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(), nullable=False, server_default=timestamp_default),
        sa.Column('reason', sa.String(length=32), nullable=False, server_default='logout'),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_revoked_tokens_id', 'revoked_tokens', ['id'])
    # Hot path: point lookup on every authenticated request
    op.create_index('ix_revoked_tokens_token_hash', 'revoked_tokens', ['token_hash'], unique=True)
    op.create_index('ix_revoked_tokens_token_type', 'revoked_tokens', ['token_type'])
    op.create_index('ix_revoked_tokens_user_id', 'revoked_tokens', ['user_id'])
    op.create_index('ix_revoked_tokens_user_type', 'revoked_tokens', ['user_id', 'token_type'])
    # Reaper path: DELETE WHERE expires_at <= now
    op.create_index('ix_revoked_tokens_expires_type', 'revoked_tokens', ['expires_at', 'token_type'])


def downgrade() -> None:
    op.drop_index('ix_revoked_tokens_expires_type', table_name='revoked_tokens')
    op.drop_index('ix_revoked_tokens_user_type', table_name='revoked_tokens')
    op.drop_index('ix_revoked_tokens_user_id', table_name='revoked_tokens')
    op.drop_index('ix_revoked_tokens_token_type', table_name='revoked_tokens')
    op.drop_index('ix_revoked_tokens_token_hash', table_name='revoked_tokens')
    op.drop_index('ix_revoked_tokens_id', table_name='revoked_tokens')
    op.drop_table('revoked_tokens')

    op.drop_index('ix_user_refresh_tokens_token_hash', table_name='user_refresh_tokens')
    op.drop_index('ix_user_refresh_tokens_user_id', table_name='user_refresh_tokens')
    op.drop_index('ix_user_refresh_tokens_id', table_name='user_refresh_tokens')
    op.drop_table('user_refresh_tokens')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_user_id', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
