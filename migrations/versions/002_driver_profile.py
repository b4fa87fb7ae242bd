"""Driver profile: avatar and vehicle columns on users.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None

VEHICLE_COLUMNS = (
    ("car_make", sa.String(50)),
    ("car_model", sa.String(50)),
    ("car_year", sa.Integer),
    ("car_color", sa.String(30)),
    ("car_plate", sa.String(20)),
    ("car_photo_url", sa.String(500)),
)


def upgrade() -> None:
    op.add_column("users", sa.Column("avatar_url", sa.String(500), nullable=True))
    op.add_column(
        "users",
        sa.Column("is_driver", sa.Boolean, server_default=sa.false(), nullable=False),
    )
    op.add_column(
        "users",
        sa.Column(
            "driver_verified", sa.Boolean, server_default=sa.false(), nullable=False
        ),
    )
    for name, type_ in VEHICLE_COLUMNS:
        op.add_column("users", sa.Column(name, type_, nullable=True))


def downgrade() -> None:
    for name, _ in reversed(VEHICLE_COLUMNS):
        op.drop_column("users", name)
    op.drop_column("users", "driver_verified")
    op.drop_column("users", "is_driver")
    op.drop_column("users", "avatar_url")
