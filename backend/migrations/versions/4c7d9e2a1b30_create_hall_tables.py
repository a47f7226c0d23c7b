"""create user_info, balance_update_record and announcement_record

Revision ID: 4c7d9e2a1b30
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c7d9e2a1b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user_info' not in existing_tables:
        op.create_table(
            'user_info',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('account_token', sa.String(length=64), nullable=False),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('account_balance', sa.BigInteger(), nullable=False, server_default='0'),
        )
        op.create_index('ix_user_info_account_token', 'user_info', ['account_token'], unique=True)

    if 'balance_update_record' not in existing_tables:
        op.create_table(
            'balance_update_record',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user', sa.String(length=64), nullable=False),
            sa.Column('type', sa.Integer(), nullable=False),
            sa.Column('amount', sa.BigInteger(), nullable=False),
            sa.Column('created_at', sa.Float(), nullable=False),
        )
        op.create_index('ix_balance_update_record_user', 'balance_update_record', ['user'])
        op.create_index('ix_balance_update_record_type', 'balance_update_record', ['type'])

    if 'announcement_record' not in existing_tables:
        op.create_table(
            'announcement_record',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('announcement', sa.Text(), nullable=False),
            sa.Column('from', sa.String(length=64), nullable=False, server_default='service'),
            sa.Column('created_at', sa.Float(), nullable=False),
        )
        op.create_index('ix_announcement_record_created_at', 'announcement_record', ['created_at'])


def downgrade():
    op.drop_table('announcement_record')
    op.drop_table('balance_update_record')
    op.drop_table('user_info')
