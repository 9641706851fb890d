from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Float, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.stride.models import Base, new_id
from app.stride.utils import utcnow

if TYPE_CHECKING:
    from app.stride.models import User


class Influencer(Base):
    __tablename__ = "influencers"
    __table_args__ = (
        Index("idx_influencers_user", "user_id"),
        Index("idx_influencers_tier", "tier"),
        Index("idx_influencers_followers", "total_followers"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    # Roster-only influencers (discovered, not yet signed up) have no user.
    user_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=True)

    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    niches: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    content_type: Mapped[str] = mapped_column(String(32), nullable=False, default="STANDARD")
    tier: Mapped[str | None] = mapped_column(String(32), nullable=True)
    influencer_type: Mapped[str] = mapped_column(String(32), nullable=False, default="SIGNED")

    # Aggregates over influencer_platforms (see service.update_aggregated_stats)
    total_followers: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_engagement_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_avg_views: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    estimated_promotion_views: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    price_per_post: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # CRM fields
    relationship_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    labels: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Free-form JSON text; "modash_data" holds the last analytics refresh.
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    modash_last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    modash_update_priority: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    auto_update_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    user: Mapped["User | None"] = relationship("User", foreign_keys=[user_id], lazy="selectin")
    platforms: Mapped[list["InfluencerPlatform"]] = relationship(
        back_populates="influencer",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InfluencerPlatform.platform",
    )


class InfluencerPlatform(Base):
    __tablename__ = "influencer_platforms"
    __table_args__ = (
        UniqueConstraint("influencer_id", "platform", name="uq_influencer_platforms_influencer_platform"),
        Index("idx_influencer_platforms_influencer", "influencer_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    influencer_id: Mapped[str] = mapped_column(ForeignKey("influencers.id", ondelete="CASCADE"), nullable=False)
    platform: Mapped[str] = mapped_column(String(32), nullable=False)  # INSTAGRAM, TIKTOK, ...
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    modash_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    profile_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    followers: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    following: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    engagement_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    avg_views: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    avg_likes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    avg_comments: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_connected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_synced: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    influencer: Mapped[Influencer] = relationship(back_populates="platforms")
