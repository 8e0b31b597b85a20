"""create teachers, timetable, leave and substitution tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "teachers" not in existing_tables:
        op.create_table(
            "teachers",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("role", sa.Enum("admin", "teacher", name="teacher_role"), nullable=False),
            sa.Column("subject", sa.String(length=200), nullable=True),
            sa.Column("department", sa.String(length=200), nullable=True),
            sa.Column("workload", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("status", sa.Enum("active", "inactive", name="teacher_status"), nullable=False),
            sa.Column("attendance_percentage", sa.Float(), nullable=True),
            sa.Column("leave_balances", sa.JSON(), nullable=False),
            *_timestamps(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_teachers_email", "teachers", ["email"], unique=True)
        op.create_index("ix_teachers_status", "teachers", ["status"], unique=False)

    if "timetable_periods" not in existing_tables:
        op.create_table(
            "timetable_periods",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("teacher_id", sa.String(length=36), nullable=False),
            sa.Column("day", sa.String(length=10), nullable=False),
            sa.Column("period_number", sa.Integer(), nullable=False),
            sa.Column("subject", sa.String(length=200), nullable=False),
            sa.Column("class_name", sa.String(length=100), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("teacher_id", "day", "period_number", name="uq_timetable_period_slot"),
        )
        op.create_index("ix_timetable_periods_teacher_id", "timetable_periods", ["teacher_id"], unique=False)

    if "attendance_records" not in existing_tables:
        op.create_table(
            "attendance_records",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("teacher_id", sa.String(length=36), nullable=False),
            sa.Column("attendance_date", sa.Date(), nullable=False),
            sa.Column(
                "status",
                sa.Enum("present", "absent", "half-day", "leave", name="attendance_status"),
                nullable=False,
            ),
            sa.Column("leave_request_id", sa.String(length=36), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_attendance_records_teacher_id", "attendance_records", ["teacher_id"], unique=False)
        op.create_index(
            "ix_attendance_records_attendance_date", "attendance_records", ["attendance_date"], unique=False
        )

    if "leave_requests" not in existing_tables:
        op.create_table(
            "leave_requests",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("teacher_id", sa.String(length=36), nullable=False),
            sa.Column("leave_date", sa.Date(), nullable=False),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column(
                "duration",
                sa.Enum("half-day", "full-day", "multiple-days", name="leave_duration"),
                nullable=False,
            ),
            sa.Column(
                "leave_type",
                sa.Enum("sick", "personal", "medical", "other", name="leave_type"),
                nullable=False,
            ),
            sa.Column("reason", sa.Text(), nullable=False),
            sa.Column(
                "status",
                sa.Enum("pending", "approved", "rejected", "cancelled", name="leave_status"),
                nullable=False,
            ),
            sa.Column("admin_comment", sa.Text(), nullable=True),
            sa.Column("reviewed_by_id", sa.String(length=36), nullable=True),
            sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("final_substitute_id", sa.String(length=36), nullable=True),
            *_timestamps(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_leave_requests_teacher_id", "leave_requests", ["teacher_id"], unique=False)
        op.create_index("ix_leave_requests_status", "leave_requests", ["status"], unique=False)

    if "substitution_vacancies" not in existing_tables:
        op.create_table(
            "substitution_vacancies",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("leave_request_id", sa.String(length=36), nullable=False),
            sa.Column("original_teacher_id", sa.String(length=36), nullable=False),
            sa.Column("vacancy_date", sa.Date(), nullable=False),
            sa.Column("day", sa.String(length=10), nullable=False),
            sa.Column("period_number", sa.Integer(), nullable=False),
            sa.Column("subject", sa.String(length=200), nullable=False),
            sa.Column("class_name", sa.String(length=100), nullable=False),
            sa.Column("winner_offer_id", sa.String(length=36), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "leave_request_id",
                "vacancy_date",
                "period_number",
                name="uq_substitution_vacancy_slot",
            ),
        )
        op.create_index(
            "ix_substitution_vacancies_leave_request_id", "substitution_vacancies", ["leave_request_id"], unique=False
        )
        op.create_index(
            "ix_substitution_vacancies_original_teacher_id",
            "substitution_vacancies",
            ["original_teacher_id"],
            unique=False,
        )

    if "substitution_offers" not in existing_tables:
        op.create_table(
            "substitution_offers",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("vacancy_id", sa.String(length=36), nullable=False),
            sa.Column("leave_request_id", sa.String(length=36), nullable=False),
            sa.Column("substitute_teacher_id", sa.String(length=36), nullable=False),
            sa.Column("assigned_by_id", sa.String(length=36), nullable=False),
            sa.Column(
                "status",
                sa.Enum(
                    "requested",
                    "accepted",
                    "rejected",
                    "completed",
                    "cancelled",
                    name="substitution_offer_status",
                ),
                nullable=False,
            ),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("cancelled_by_id", sa.String(length=36), nullable=True),
            *_timestamps(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("vacancy_id", "substitute_teacher_id", name="uq_substitution_offer_identity"),
        )
        for column in ("vacancy_id", "leave_request_id", "substitute_teacher_id", "status"):
            op.create_index(f"ix_substitution_offers_{column}", "substitution_offers", [column], unique=False)

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("teacher_id", sa.String(length=36), nullable=False),
            sa.Column("event_type", sa.String(length=100), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("payload", sa.JSON(), nullable=False),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_teacher_id", "notifications", ["teacher_id"], unique=False)

    if "activity_logs" not in existing_tables:
        op.create_table(
            "activity_logs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("actor_id", sa.String(length=36), nullable=True),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("entity_type", sa.String(length=50), nullable=True),
            sa.Column("entity_id", sa.String(length=36), nullable=True),
            sa.Column("details", sa.JSON(), nullable=False),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_activity_logs_actor_id", "activity_logs", ["actor_id"], unique=False)
        op.create_index("ix_activity_logs_entity", "activity_logs", ["entity_type", "entity_id"], unique=False)


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing_tables = set(inspector.get_table_names())
    for table_name in (
        "activity_logs",
        "notifications",
        "substitution_offers",
        "substitution_vacancies",
        "leave_requests",
        "attendance_records",
        "timetable_periods",
        "teachers",
    ):
        if table_name in existing_tables:
            op.drop_table(table_name)

    if bind.dialect.name == "postgresql":
        for enum_name in (
            "substitution_offer_status",
            "leave_status",
            "leave_type",
            "leave_duration",
            "attendance_status",
            "teacher_status",
            "teacher_role",
        ):
            op.execute(f"DROP TYPE IF EXISTS {enum_name}")
