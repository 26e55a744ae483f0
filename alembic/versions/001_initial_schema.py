"""Initial schema - practices, evaluations, final records, policy, alerts, accounts, audit.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "practices",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("supervisor_id", sa.Integer(), nullable=True),
        sa.Column("program_id", sa.Integer(), nullable=False),
        sa.Column("campus_id", sa.Integer(), nullable=False),
        sa.Column("host_organization_id", sa.Integer(), nullable=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("state", sa.String(40), nullable=False, server_default="PENDIENTE"),
        sa.Column("report_document_ref", sa.Text(), nullable=True),
        sa.Column("report_submitted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("computed_grade", sa.Float(), nullable=True),
        sa.Column("policy_version", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint("end_date >= start_date", name="ck_practices_dates"),
    )
    for column in ("student_id", "supervisor_id", "program_id", "campus_id", "state"):
        op.create_index(f"ix_practices_{column}", "practices", [column])

    op.create_table(
        "employer_evaluations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("practice_id", sa.Integer(), sa.ForeignKey("practices.id"), unique=True, nullable=False),
        sa.Column("criteria_json", JSON_TYPE, nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("final_score", sa.Float(), nullable=False),
        sa.Column("evaluator_user_id", sa.Integer(), nullable=False),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "report_evaluations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("practice_id", sa.Integer(), sa.ForeignKey("practices.id"), unique=True, nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("rubric_json", JSON_TYPE, nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("evaluator_user_id", sa.Integer(), nullable=False),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "final_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("practice_id", sa.Integer(), sa.ForeignKey("practices.id"), unique=True, nullable=False),
        sa.Column("final_grade", sa.Float(), nullable=False),
        sa.Column("employer_score", sa.Float(), nullable=False),
        sa.Column("report_score", sa.Float(), nullable=False),
        sa.Column("employer_weight_pct", sa.Integer(), nullable=False),
        sa.Column("report_weight_pct", sa.Integer(), nullable=False),
        sa.Column("policy_version", sa.Integer(), nullable=False),
        sa.Column("record_hash", sa.String(64), nullable=False),
        sa.Column("closed_by", sa.Integer(), nullable=False),
        sa.Column("closed_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "evaluation_weight_policies",
        sa.Column("version", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("employer_weight_pct", sa.Integer(), nullable=False),
        sa.Column("report_weight_pct", sa.Integer(), nullable=False),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "accounts",
        sa.Column("user_id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("campus_id", sa.Integer(), nullable=True),
        sa.Column("program_id", sa.Integer(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    for column in ("role", "campus_id", "program_id"):
        op.create_index(f"ix_accounts_{column}", "accounts", [column])

    op.create_table(
        "manual_alerts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("practice_id", sa.Integer(), sa.ForeignKey("practices.id"), nullable=False),
        sa.Column("subject", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("recipient_user_id", sa.Integer(), nullable=False),
        sa.Column("recipient_role", sa.String(20), nullable=False),
        sa.Column("sent_by", sa.Integer(), nullable=False),
        sa.Column("sent_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_manual_alerts_practice_id", "manual_alerts", ["practice_id"])

    op.create_table(
        "audit_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_user_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(60), nullable=False),
        sa.Column("entity_type", sa.String(60), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("metadata", JSON_TYPE, nullable=False),
        sa.Column("occurred_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("request_origin", sa.String(255), nullable=False),
    )
    for column in ("actor_user_id", "action", "occurred_at"):
        op.create_index(f"ix_audit_entries_{column}", "audit_entries", [column])
    op.create_index("ix_audit_entries_entity", "audit_entries", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_entries")
    op.drop_table("manual_alerts")
    op.drop_table("accounts")
    op.drop_table("evaluation_weight_policies")
    op.drop_table("final_records")
    op.drop_table("report_evaluations")
    op.drop_table("employer_evaluations")
    op.drop_table("practices")
