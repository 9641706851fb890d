from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.stride.models import Base, new_id
from app.stride.utils import utcnow


class ModashProfileCache(Base):
    """
    Cached Modash profile report for one influencer platform.
    Rows are replaced on refresh; expiry is advisory (reads never evict).
    """

    __tablename__ = "modash_profile_cache"
    __table_args__ = (
        Index("idx_modash_cache_platform_row", "influencer_platform_id", "platform"),
        Index("idx_modash_cache_expires_at", "expires_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    influencer_platform_id: Mapped[str] = mapped_column(
        ForeignKey("influencer_platforms.id", ondelete="CASCADE"), nullable=False
    )
    modash_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    platform: Mapped[str] = mapped_column(String(32), nullable=False)  # lowercase modash platform

    cached_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    update_priority: Mapped[int] = mapped_column(Integer, nullable=False, default=50)

    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    fullname: Mapped[str | None] = mapped_column(String(255), nullable=True)
    followers: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    following: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    engagement_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    avg_likes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    avg_comments: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    avg_views: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    avg_reels_plays: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    posts_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    profile_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    picture_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    country: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    contacts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    hashtags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    mentions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    stats: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    recent_posts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    popular_posts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    sponsored_posts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    audience: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    credits_used: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
