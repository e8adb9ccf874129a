"""Create the departments tree and employees tables.

Revision adds:
- public.departments - self-referencing tree, ids assigned by the application
- public.employees - members attached to a department
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001_departments"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ids are allocated by DepartmentIdAllocator, never by a sequence; the primary
    # key is what rejects the loser of a concurrent allocation.
    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.VARCHAR(100), nullable=False),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(
            ["parent_id"],
            ["departments.id"],
            ondelete="RESTRICT",
            name="fk_departments_parent",
        ),
        sa.CheckConstraint("id > 0", name="ck_departments_id_positive"),
        sa.CheckConstraint(
            "parent_id IS NULL OR parent_id <> id", name="ck_departments_not_self_parent"
        ),
    )
    op.create_index("ix_departments_parent_id", "departments", ["parent_id"])

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.VARCHAR(100), nullable=False),
        sa.Column("department_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.VARCHAR(100), nullable=False, server_default=""),
        sa.Column("hire_date", sa.Date(), nullable=True),
        sa.Column("employee_number", sa.VARCHAR(32), nullable=False),
        sa.ForeignKeyConstraint(
            ["department_id"],
            ["departments.id"],
            ondelete="RESTRICT",
            name="fk_employees_department",
        ),
        sa.UniqueConstraint("employee_number", name="uq_employees_employee_number"),
    )
    op.create_index("ix_employees_department_id_name", "employees", ["department_id", "name"])


def downgrade() -> None:
    op.drop_index("ix_employees_department_id_name", table_name="employees")
    op.drop_table("employees")
    op.drop_index("ix_departments_parent_id", table_name="departments")
    op.drop_table("departments")
