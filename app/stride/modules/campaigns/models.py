from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import JSON, BigInteger, Boolean, Date, DateTime, Float, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.stride.models import Base, new_id
from app.stride.utils import utcnow

if TYPE_CHECKING:
    from app.stride.modules.brands.models import Brand
    from app.stride.modules.influencers.models import Influencer


class Campaign(Base):
    __tablename__ = "campaigns"
    __table_args__ = (
        Index("idx_campaigns_status", "status"),
        Index("idx_campaigns_brand", "brand_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    brand_id: Mapped[str | None] = mapped_column(ForeignKey("brands.id", ondelete="SET NULL"), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="DRAFT")
    goals: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    application_deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    content_deadline: Mapped[date | None] = mapped_column(Date, nullable=True)

    total_budget: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    per_influencer_budget: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    # Targeting
    min_followers: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    max_followers: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    min_engagement: Mapped[float | None] = mapped_column(Float, nullable=True)
    platforms: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    target_niches: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    demographics: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    content_guidelines: Mapped[str | None] = mapped_column(Text, nullable=True)
    deliverables: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Set when converted from a quotation
    quotation_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    created_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    brand: Mapped["Brand | None"] = relationship("Brand", lazy="selectin")
    participants: Mapped[list["CampaignInfluencer"]] = relationship(
        back_populates="campaign",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CampaignInfluencer.created_at",
    )


class CampaignInfluencer(Base):
    __tablename__ = "campaign_influencers"
    __table_args__ = (
        UniqueConstraint("campaign_id", "influencer_id", name="uq_campaign_influencers_campaign_influencer"),
        Index("idx_campaign_influencers_influencer", "influencer_id"),
        Index("idx_campaign_influencers_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    campaign_id: Mapped[str] = mapped_column(ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    influencer_id: Mapped[str] = mapped_column(ForeignKey("influencers.id", ondelete="CASCADE"), nullable=False)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="INVITED")
    compensation_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    declined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    content_submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # Tracking flags
    product_shipped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    content_posted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_released: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    content_links: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    discount_code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    campaign: Mapped[Campaign] = relationship(back_populates="participants")
    influencer: Mapped["Influencer"] = relationship("Influencer", lazy="selectin")
