"""create invites table

Revision ID: 3f1a9c2e7b41
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3f1a9c2e7b41'
down_revision = None
branch_labels = None
depends_on = None

invite_status = sa.Enum('none', 'pending', 'used', name='invite_status')


def upgrade():
    op.create_table(
        'invites',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('secret', sa.String(length=132), nullable=False),
        sa.Column('signer', sa.String(length=66), nullable=False),
        sa.Column('status', invite_status, nullable=False),
        sa.Column('update_date', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('secret'),
    )
    with op.batch_alter_table('invites', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_invites_status'), ['status'], unique=False)


def downgrade():
    with op.batch_alter_table('invites', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_invites_status'))

    op.drop_table('invites')
    invite_status.drop(op.get_bind(), checkfirst=True)
