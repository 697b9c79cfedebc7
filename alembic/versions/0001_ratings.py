"""ratings table

Revision ID: 0001_ratings
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_ratings"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "ratings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_name", sa.String(length=255), nullable=False),
        sa.Column("assessment_date", sa.String(length=10), nullable=False),
        sa.Column("pillar_title", sa.String(length=100), nullable=False),
        sa.Column("practice_name", sa.String(length=255), nullable=False),
        sa.Column("rating", sa.String(length=50), nullable=True),
        sa.Column("findings", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "project_name",
            "assessment_date",
            "pillar_title",
            "practice_name",
            name="uq_ratings_natural_key",
        ),
    )


def downgrade() -> None:
    op.drop_table("ratings")
