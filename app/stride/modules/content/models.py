from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.stride.models import Base, new_id
from app.stride.modules.campaigns.models import CampaignInfluencer
from app.stride.utils import utcnow


class ContentSubmission(Base):
    """One posted piece of content for a campaign participation, awaiting staff review."""

    __tablename__ = "campaign_content_submissions"
    __table_args__ = (
        Index("idx_content_submissions_participation", "campaign_influencer_id"),
        Index("idx_content_submissions_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    campaign_influencer_id: Mapped[str] = mapped_column(
        ForeignKey("campaign_influencers.id", ondelete="CASCADE"), nullable=False
    )

    content_url: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(String(32), nullable=False)  # post, reel, story...
    platform: Mapped[str] = mapped_column(String(32), nullable=False)  # lowercase
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    hashtags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    screenshot_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Self-reported performance at submission time
    views: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    likes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    comments: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    shares: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    saves: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    participation: Mapped[CampaignInfluencer] = relationship(CampaignInfluencer, lazy="selectin")
