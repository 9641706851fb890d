"""Content submissions, campaign templates, payout details, invitations, talent onboarding.

Revision ID: c7d2e4f6a8b1
Revises: a1c3e5f7b9d0
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "c7d2e4f6a8b1"
down_revision: Union[str, Sequence[str], None] = "a1c3e5f7b9d0"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


PROFILE_FLAGS = ("email_forwarding_setup", "instagram_bio_setup", "uk_events_chat_joined")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    existing_tables = set(inspector.get_table_names())

    if "campaign_content_submissions" not in existing_tables:
        op.create_table(
            "campaign_content_submissions",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("campaign_influencer_id", sa.String(36), nullable=False),
            sa.Column("content_url", sa.Text(), nullable=False),
            sa.Column("content_type", sa.String(32), nullable=False),
            sa.Column("platform", sa.String(32), nullable=False),
            sa.Column("title", sa.String(255), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("caption", sa.Text(), nullable=True),
            sa.Column("hashtags", sa.JSON(), nullable=False),
            sa.Column("screenshot_url", sa.Text(), nullable=True),
            sa.Column("views", sa.BigInteger(), nullable=True),
            sa.Column("likes", sa.BigInteger(), nullable=True),
            sa.Column("comments", sa.BigInteger(), nullable=True),
            sa.Column("shares", sa.BigInteger(), nullable=True),
            sa.Column("saves", sa.BigInteger(), nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="PENDING"),
            sa.Column("submitted_at", sa.DateTime(), nullable=False),
            sa.Column("reviewed_at", sa.DateTime(), nullable=True),
            sa.Column("reviewed_by", sa.String(36), nullable=True),
            sa.Column("review_notes", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["campaign_influencer_id"], ["campaign_influencers.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"], ondelete="SET NULL"),
        )
        op.create_index(
            "idx_content_submissions_participation", "campaign_content_submissions", ["campaign_influencer_id"]
        )
        op.create_index("idx_content_submissions_status", "campaign_content_submissions", ["status"])

    if "campaign_templates" not in existing_tables:
        op.create_table(
            "campaign_templates",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("industry", sa.String(128), nullable=True),
            sa.Column("goals", sa.JSON(), nullable=False),
            sa.Column("min_followers", sa.BigInteger(), nullable=True),
            sa.Column("max_followers", sa.BigInteger(), nullable=True),
            sa.Column("min_engagement", sa.Float(), nullable=True),
            sa.Column("platforms", sa.JSON(), nullable=False),
            sa.Column("demographics", sa.JSON(), nullable=True),
            sa.Column("content_guidelines", sa.Text(), nullable=True),
            sa.Column("deliverables", sa.JSON(), nullable=False),
            sa.Column("budget_min", sa.Numeric(12, 2), nullable=True),
            sa.Column("budget_max", sa.Numeric(12, 2), nullable=True),
            sa.Column("preparation_days", sa.Integer(), nullable=True),
            sa.Column("execution_days", sa.Integer(), nullable=True),
            sa.Column("total_days", sa.Integer(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_by", sa.String(36), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_campaign_templates_industry", "campaign_templates", ["industry"])

    if "influencer_payments" not in existing_tables:
        op.create_table(
            "influencer_payments",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("influencer_id", sa.String(36), nullable=False),
            sa.Column("payment_method", sa.String(32), nullable=False),
            sa.Column("encrypted_details", sa.Text(), nullable=False),
            sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.ForeignKeyConstraint(["influencer_id"], ["influencers.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("influencer_id"),
        )

    if "user_invitations" not in existing_tables:
        op.create_table(
            "user_invitations",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("clerk_invitation_id", sa.String(255), nullable=False),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("role", sa.String(32), nullable=False),
            sa.Column("status", sa.String(16), nullable=False, server_default="INVITED"),
            sa.Column("first_name", sa.String(128), nullable=True),
            sa.Column("last_name", sa.String(128), nullable=True),
            sa.Column("invited_by", sa.String(36), nullable=True),
            sa.Column("invited_by_email", sa.String(320), nullable=True),
            sa.Column("invited_at", sa.DateTime(), nullable=False),
            sa.Column("expires_at", sa.DateTime(), nullable=True),
            sa.Column("accepted_at", sa.DateTime(), nullable=True),
            sa.Column("revoked_at", sa.DateTime(), nullable=True),
            sa.Column("accepted_user_id", sa.String(36), nullable=True),
            sa.Column("clerk_id", sa.String(255), nullable=True),
            sa.ForeignKeyConstraint(["invited_by"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["accepted_user_id"], ["users.id"], ondelete="SET NULL"),
            sa.UniqueConstraint("clerk_invitation_id"),
        )
        op.create_index("idx_user_invitations_email", "user_invitations", ["email"])
        op.create_index("idx_user_invitations_status", "user_invitations", ["status"])

    if "talent_onboarding_steps" not in existing_tables:
        op.create_table(
            "talent_onboarding_steps",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), nullable=False),
            sa.Column("step_key", sa.String(64), nullable=False),
            sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("data", sa.JSON(), nullable=False),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("user_id", "step_key", name="uq_talent_onboarding_steps_user_step"),
        )

    if "talent_brand_preferences" not in existing_tables:
        op.create_table(
            "talent_brand_preferences",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), nullable=False),
            sa.Column("brand_id", sa.String(36), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["brand_id"], ["brands.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("user_id", "brand_id", name="uq_talent_brand_preferences_user_brand"),
        )

    if "talent_payment_history" not in existing_tables:
        op.create_table(
            "talent_payment_history",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), nullable=False),
            sa.Column("previous_payment_amount", sa.Numeric(12, 2), nullable=True),
            sa.Column("currency", sa.String(3), nullable=False, server_default="GBP"),
            sa.Column("payment_method", sa.String(64), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_talent_payment_history_user", "talent_payment_history", ["user_id"])

    if "talent_brand_collaborations" not in existing_tables:
        op.create_table(
            "talent_brand_collaborations",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), nullable=False),
            sa.Column("brand_name", sa.String(255), nullable=False),
            sa.Column("collaboration_type", sa.String(64), nullable=True),
            sa.Column("date_range", sa.String(128), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_talent_brand_collaborations_user", "talent_brand_collaborations", ["user_id"])

    profile_cols = {c["name"] for c in inspector.get_columns("user_profiles")}
    with op.batch_alter_table("user_profiles") as batch:
        for name in PROFILE_FLAGS:
            if name not in profile_cols:
                batch.add_column(sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.false()))
        if "manager_email" not in profile_cols:
            batch.add_column(sa.Column("manager_email", sa.String(320), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("user_profiles") as batch:
        batch.drop_column("manager_email")
        for name in reversed(PROFILE_FLAGS):
            batch.drop_column(name)

    op.drop_table("talent_brand_collaborations")
    op.drop_table("talent_payment_history")
    op.drop_table("talent_brand_preferences")
    op.drop_table("talent_onboarding_steps")
    op.drop_table("user_invitations")
    op.drop_table("influencer_payments")
    op.drop_table("campaign_templates")
    op.drop_table("campaign_content_submissions")
