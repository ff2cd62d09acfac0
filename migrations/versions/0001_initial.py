"""questionnaire versions, structure tree and assessment responses

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


VERSION_STATUS = sa.Enum("DRAFT", "PUBLISHED", "ARCHIVED", name="versionstatus")
ASSESSMENT_STATUS = sa.Enum(
    "DRAFT",
    "SUBMITTED",
    "PDF_GENERATED",
    "PDF_FAILED",
    "EMAIL_SENT",
    "EMAIL_FAILED",
    name="assessmentstatus",
)


def upgrade() -> None:
    op.create_table(
        "questionnaire_versions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("status", VERSION_STATUS, nullable=False, server_default="DRAFT"),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index(
        "ix_questionnaire_versions_version_number", "questionnaire_versions", ["version_number"], unique=True
    )
    op.create_index("ix_questionnaire_versions_status", "questionnaire_versions", ["status"])
    # At most one PUBLISHED row; both dialects support partial indexes.
    op.create_index(
        "uq_questionnaire_single_published",
        "questionnaire_versions",
        ["status"],
        unique=True,
        sqlite_where=sa.text("status = 'PUBLISHED'"),
        postgresql_where=sa.text("status = 'PUBLISHED'"),
    )

    op.create_table(
        "areas",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(
            ["version_id"], ["questionnaire_versions.id"], name="fk_areas_version", ondelete="CASCADE"
        ),
        sa.UniqueConstraint("version_id", "code", name="uq_area_code_per_version"),
    )
    op.create_index("ix_areas_version_id", "areas", ["version_id"])

    op.create_table(
        "elements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("area_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["area_id"], ["areas.id"], name="fk_elements_area", ondelete="CASCADE"),
    )
    op.create_index("ix_elements_area_id", "elements", ["area_id"])

    op.create_table(
        "questions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("element_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=30), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("levels_description", sa.Text(), nullable=False, server_default=""),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("scale_min", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("scale_max", sa.Integer(), nullable=False, server_default="5"),
        sa.ForeignKeyConstraint(["element_id"], ["elements.id"], name="fk_questions_element", ondelete="CASCADE"),
    )
    op.create_index("ix_questions_element_id", "questions", ["element_id"])

    op.create_table(
        "assessment_responses",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("user_email", sa.String(length=320), nullable=False),
        sa.Column("user_name", sa.String(length=200), nullable=True),
        sa.Column("consent_given", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("user_token", sa.String(length=128), nullable=False),
        sa.Column("status", ASSESSMENT_STATUS, nullable=False, server_default="DRAFT"),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("calculated_scores", sa.JSON(), nullable=True),
        sa.Column("delivery_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_delivery_error", sa.String(length=500), nullable=True),
        sa.Column("email_message_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("pdf_generated_at", sa.DateTime(), nullable=True),
        sa.Column("email_sent_at", sa.DateTime(), nullable=True),
        sa.Column("data_retention_until", sa.DateTime(), nullable=False),
        # No cascade: deleting a referenced version is refused by the store.
        sa.ForeignKeyConstraint(
            ["version_id"], ["questionnaire_versions.id"], name="fk_assessment_responses_version"
        ),
        sa.UniqueConstraint("user_token", name="uq_assessment_responses_user_token"),
    )
    op.create_index("ix_assessment_responses_version_id", "assessment_responses", ["version_id"])
    op.create_index("ix_assessment_responses_status", "assessment_responses", ["status"])
    op.create_index("ix_assessment_responses_created_at", "assessment_responses", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_assessment_responses_created_at", table_name="assessment_responses")
    op.drop_index("ix_assessment_responses_status", table_name="assessment_responses")
    op.drop_index("ix_assessment_responses_version_id", table_name="assessment_responses")
    op.drop_table("assessment_responses")
    op.drop_index("ix_questions_element_id", table_name="questions")
    op.drop_table("questions")
    op.drop_index("ix_elements_area_id", table_name="elements")
    op.drop_table("elements")
    op.drop_index("ix_areas_version_id", table_name="areas")
    op.drop_table("areas")
    op.drop_index("uq_questionnaire_single_published", table_name="questionnaire_versions")
    op.drop_index("ix_questionnaire_versions_status", table_name="questionnaire_versions")
    op.drop_index("ix_questionnaire_versions_version_number", table_name="questionnaire_versions")
    op.drop_table("questionnaire_versions")
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        ASSESSMENT_STATUS.drop(bind, checkfirst=True)
        VERSION_STATUS.drop(bind, checkfirst=True)
