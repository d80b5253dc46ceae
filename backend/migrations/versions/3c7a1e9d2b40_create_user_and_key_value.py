"""create user and key_value tables

Revision ID: 3c7a1e9d2b40
Revises:
Create Date: 2026-10-18 00:00:00

The remote_game_record table lives on the 'remote' bind and is provisioned
with that database, not by this migration.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c7a1e9d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('uid', sa.String(length=128), nullable=False),
            sa.Column('email', sa.String(length=256), nullable=True),
        )
        op.create_index('ix_user_uid', 'user', ['uid'], unique=True)

    if 'key_value' not in existing_tables:
        op.create_table(
            'key_value',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('scope', sa.String(length=128), nullable=False),
            sa.Column('key', sa.String(length=128), nullable=False),
            sa.Column('value', sa.Text(), nullable=False),
            sa.UniqueConstraint('scope', 'key', name='uq_key_value_scope_key'),
        )
        op.create_index('ix_key_value_scope', 'key_value', ['scope'])


def downgrade():
    op.drop_index('ix_key_value_scope', table_name='key_value')
    op.drop_table('key_value')
    op.drop_index('ix_user_uid', table_name='user')
    op.drop_table('user')
