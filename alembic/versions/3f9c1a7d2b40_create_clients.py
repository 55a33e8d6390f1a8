"""create_clients

Revision ID: 3f9c1a7d2b40
Revises: 
Create Date: 2026-01-26 10:12:44.381902

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c1a7d2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


client_status = sa.Enum('lead', 'active', 'inactive', 'churned', name='client_status')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('workspace_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('company', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('website', sa.Text(), nullable=True),
        sa.Column('status', client_status, server_default='lead', nullable=False),
        sa.Column('source', sa.Text(), nullable=True),
        sa.Column('value', sa.Numeric(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_clients_workspace_id'), 'clients', ['workspace_id'], unique=False)
    op.create_index('ix_clients_workspace_email', 'clients', ['workspace_id', 'email'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_clients_workspace_email', table_name='clients')
    op.drop_index(op.f('ix_clients_workspace_id'), table_name='clients')
    op.drop_table('clients')
    client_status.drop(op.get_bind(), checkfirst=True)
