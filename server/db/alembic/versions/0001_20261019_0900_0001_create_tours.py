"""Create tours table

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

document_json = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    """Upgrade database schema."""
    # Stops are embedded in the tour row as an ordered JSON array
    op.create_table('tours',
        sa.Column('seq', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'), autoincrement=True, nullable=False),
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('activities', document_json, nullable=False),
        sa.Column('launch_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('stops', document_json, nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('version >= 0', name='ck_tour_version_non_negative'),
        sa.PrimaryKeyConstraint('seq'),
        sa.UniqueConstraint('id')
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('tours')
