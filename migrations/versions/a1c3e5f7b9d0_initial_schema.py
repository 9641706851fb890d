"""Initial schema: users, influencers, brands, campaigns, quotations, shortlists, invoices, modash cache.

Revision ID: a1c3e5f7b9d0
Revises:
Create Date: 2026-03-02
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c3e5f7b9d0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("clerk_id", sa.String(255), nullable=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("role", sa.String(32), nullable=False, server_default="BRAND"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("clerk_id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("idx_users_role", "users", ["role"])

    op.create_table(
        "user_profiles",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("first_name", sa.String(128), nullable=True),
        sa.Column("last_name", sa.String(128), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("location_country", sa.String(128), nullable=True),
        sa.Column("location_city", sa.String(128), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("website_url", sa.Text(), nullable=True),
        sa.Column("is_onboarded", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("actor_user_id", sa.String(36), nullable=True),
        sa.Column("actor_user_email", sa.String(320), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("entity_type", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("client_ip", sa.String(64), nullable=True),
        sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])
    op.create_index("idx_audit_logs_created_at", "audit_logs", ["created_at"])

    op.create_table(
        "influencers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("niches", sa.JSON(), nullable=False),
        sa.Column("content_type", sa.String(32), nullable=False, server_default="STANDARD"),
        sa.Column("tier", sa.String(32), nullable=True),
        sa.Column("influencer_type", sa.String(32), nullable=False, server_default="SIGNED"),
        sa.Column("total_followers", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_engagement_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_avg_views", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("estimated_promotion_views", sa.BigInteger(), nullable=True),
        sa.Column("price_per_post", sa.Numeric(12, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("relationship_status", sa.String(32), nullable=True),
        sa.Column("assigned_to", sa.String(36), nullable=True),
        sa.Column("labels", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("modash_last_updated", sa.DateTime(), nullable=True),
        sa.Column("modash_update_priority", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("auto_update_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assigned_to"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_influencers_user", "influencers", ["user_id"])
    op.create_index("idx_influencers_tier", "influencers", ["tier"])
    op.create_index("idx_influencers_followers", "influencers", ["total_followers"])

    op.create_table(
        "influencer_platforms",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("influencer_id", sa.String(36), nullable=False),
        sa.Column("platform", sa.String(32), nullable=False),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("modash_user_id", sa.String(255), nullable=True),
        sa.Column("profile_url", sa.Text(), nullable=True),
        sa.Column("followers", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("following", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("engagement_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("avg_views", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("avg_likes", sa.BigInteger(), nullable=True),
        sa.Column("avg_comments", sa.BigInteger(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_connected", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_synced", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["influencer_id"], ["influencers.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("influencer_id", "platform", name="uq_influencer_platforms_influencer_platform"),
    )
    op.create_index("idx_influencer_platforms_influencer", "influencer_platforms", ["influencer_id"])

    op.create_table(
        "brands",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("industry", sa.String(128), nullable=True),
        sa.Column("website_url", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("logo_url", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_brands_company_name", "brands", ["company_name"])
    op.create_index("idx_brands_user", "brands", ["user_id"])

    op.create_table(
        "brand_contacts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("brand_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("role", sa.String(128), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["brand_id"], ["brands.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_brand_contacts_brand_id", "brand_contacts", ["brand_id"])

    op.create_table(
        "campaigns",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("brand_id", sa.String(36), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("brand_name", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="DRAFT"),
        sa.Column("goals", sa.JSON(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("application_deadline", sa.Date(), nullable=True),
        sa.Column("content_deadline", sa.Date(), nullable=True),
        sa.Column("total_budget", sa.Numeric(12, 2), nullable=True),
        sa.Column("per_influencer_budget", sa.Numeric(12, 2), nullable=True),
        sa.Column("min_followers", sa.BigInteger(), nullable=True),
        sa.Column("max_followers", sa.BigInteger(), nullable=True),
        sa.Column("min_engagement", sa.Float(), nullable=True),
        sa.Column("platforms", sa.JSON(), nullable=False),
        sa.Column("target_niches", sa.JSON(), nullable=False),
        sa.Column("demographics", sa.JSON(), nullable=True),
        sa.Column("content_guidelines", sa.Text(), nullable=True),
        sa.Column("deliverables", sa.JSON(), nullable=False),
        sa.Column("quotation_id", sa.String(36), nullable=True),
        sa.Column("created_by", sa.String(36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["brand_id"], ["brands.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_campaigns_status", "campaigns", ["status"])
    op.create_index("idx_campaigns_brand", "campaigns", ["brand_id"])

    op.create_table(
        "campaign_influencers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("campaign_id", sa.String(36), nullable=False),
        sa.Column("influencer_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="INVITED"),
        sa.Column("compensation_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("deadline", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        sa.Column("declined_at", sa.DateTime(), nullable=True),
        sa.Column("content_submitted_at", sa.DateTime(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("product_shipped", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("content_posted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("payment_released", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("content_links", sa.JSON(), nullable=False),
        sa.Column("discount_code", sa.String(64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["influencer_id"], ["influencers.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("campaign_id", "influencer_id", name="uq_campaign_influencers_campaign_influencer"),
    )
    op.create_index("idx_campaign_influencers_influencer", "campaign_influencers", ["influencer_id"])
    op.create_index("idx_campaign_influencers_status", "campaign_influencers", ["status"])

    op.create_table(
        "quotations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("brand_id", sa.String(36), nullable=True),
        sa.Column("brand_name", sa.String(255), nullable=False),
        sa.Column("brand_email", sa.String(320), nullable=False),
        sa.Column("industry", sa.String(128), nullable=True),
        sa.Column("campaign_description", sa.Text(), nullable=False),
        sa.Column("target_audience", sa.Text(), nullable=True),
        sa.Column("budget", sa.Numeric(12, 2), nullable=True),
        sa.Column("timeline", sa.String(255), nullable=True),
        sa.Column("deliverables", sa.JSON(), nullable=False),
        sa.Column("platforms", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("submitted_at", sa.DateTime(), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("reviewed_by", sa.String(36), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("campaign_id", sa.String(36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["brand_id"], ["brands.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_quotations_status", "quotations", ["status"])
    op.create_index("idx_quotations_brand", "quotations", ["brand_id"])

    op.create_table(
        "quotation_influencers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("quotation_id", sa.String(36), nullable=False),
        sa.Column("influencer_id", sa.String(36), nullable=False),
        sa.Column("proposed_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["quotation_id"], ["quotations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["influencer_id"], ["influencers.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("quotation_id", "influencer_id", name="uq_quotation_influencers_quotation_influencer"),
    )
    op.create_index("ix_quotation_influencers_quotation_id", "quotation_influencers", ["quotation_id"])

    op.create_table(
        "shortlists",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("brand_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["brand_id"], ["brands.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_shortlists_brand_id", "shortlists", ["brand_id"])

    op.create_table(
        "shortlist_influencers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("shortlist_id", sa.String(36), nullable=False),
        sa.Column("influencer_id", sa.String(36), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("added_by", sa.String(36), nullable=True),
        sa.Column("added_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["shortlist_id"], ["shortlists.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["influencer_id"], ["influencers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["added_by"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("shortlist_id", "influencer_id", name="uq_shortlist_influencers_shortlist_influencer"),
    )
    op.create_index("ix_shortlist_influencers_shortlist_id", "shortlist_influencers", ["shortlist_id"])
    op.create_index("ix_shortlist_influencers_influencer_id", "shortlist_influencers", ["influencer_id"])

    op.create_table(
        "influencer_invoices",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("influencer_id", sa.String(36), nullable=False),
        sa.Column("campaign_id", sa.String(36), nullable=False),
        sa.Column("invoice_number", sa.String(32), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("creator_name", sa.String(255), nullable=False),
        sa.Column("creator_address", sa.Text(), nullable=True),
        sa.Column("creator_email", sa.String(320), nullable=True),
        sa.Column("campaign_reference", sa.String(255), nullable=False),
        sa.Column("brand_name", sa.String(255), nullable=False),
        sa.Column("content_description", sa.Text(), nullable=False),
        sa.Column("content_link", sa.Text(), nullable=False),
        sa.Column("agreed_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="GBP"),
        sa.Column("vat_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("vat_rate", sa.Numeric(5, 2), nullable=False, server_default="20.00"),
        sa.Column("vat_amount", sa.Numeric(12, 2), nullable=False, server_default="0.00"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="SENT"),
        sa.Column("staff_notes", sa.Text(), nullable=True),
        sa.Column("payment_terms", sa.String(64), nullable=False, server_default="Net 30"),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("verified_by", sa.String(36), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["influencer_id"], ["influencers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["verified_by"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("invoice_number"),
    )
    op.create_index("idx_influencer_invoices_status", "influencer_invoices", ["status"])
    op.create_index("idx_influencer_invoices_influencer", "influencer_invoices", ["influencer_id"])
    op.create_index("idx_influencer_invoices_campaign", "influencer_invoices", ["campaign_id"])

    op.create_table(
        "modash_profile_cache",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("influencer_platform_id", sa.String(36), nullable=False),
        sa.Column("modash_user_id", sa.String(255), nullable=False),
        sa.Column("platform", sa.String(32), nullable=False),
        sa.Column("cached_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        sa.Column("update_priority", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("fullname", sa.String(255), nullable=True),
        sa.Column("followers", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("following", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("engagement_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("avg_likes", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("avg_comments", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("avg_views", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("avg_reels_plays", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("posts_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("profile_url", sa.Text(), nullable=True),
        sa.Column("picture_url", sa.Text(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("city", sa.String(128), nullable=True),
        sa.Column("country", sa.String(128), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("contacts", sa.JSON(), nullable=False),
        sa.Column("hashtags", sa.JSON(), nullable=False),
        sa.Column("mentions", sa.JSON(), nullable=False),
        sa.Column("stats", sa.JSON(), nullable=False),
        sa.Column("recent_posts", sa.JSON(), nullable=False),
        sa.Column("popular_posts", sa.JSON(), nullable=False),
        sa.Column("sponsored_posts", sa.JSON(), nullable=False),
        sa.Column("audience", sa.JSON(), nullable=False),
        sa.Column("credits_used", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["influencer_platform_id"], ["influencer_platforms.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_modash_cache_platform_row", "modash_profile_cache", ["influencer_platform_id", "platform"])
    op.create_index("idx_modash_cache_expires_at", "modash_profile_cache", ["expires_at"])


def downgrade() -> None:
    op.drop_table("modash_profile_cache")
    op.drop_table("influencer_invoices")
    op.drop_table("shortlist_influencers")
    op.drop_table("shortlists")
    op.drop_table("quotation_influencers")
    op.drop_table("quotations")
    op.drop_table("campaign_influencers")
    op.drop_table("campaigns")
    op.drop_table("brand_contacts")
    op.drop_table("brands")
    op.drop_table("influencer_platforms")
    op.drop_table("influencers")
    op.drop_table("audit_logs")
    op.drop_table("user_profiles")
    op.drop_table("users")
