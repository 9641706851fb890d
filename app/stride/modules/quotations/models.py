from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.stride.models import Base, new_id
from app.stride.utils import utcnow

if TYPE_CHECKING:
    from app.stride.modules.influencers.models import Influencer


class Quotation(Base):
    __tablename__ = "quotations"
    __table_args__ = (
        Index("idx_quotations_status", "status"),
        Index("idx_quotations_brand", "brand_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    brand_id: Mapped[str | None] = mapped_column(ForeignKey("brands.id", ondelete="SET NULL"), nullable=True)

    brand_name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand_email: Mapped[str] = mapped_column(String(320), nullable=False)
    industry: Mapped[str | None] = mapped_column(String(128), nullable=True)
    campaign_description: Mapped[str] = mapped_column(Text, nullable=False)
    target_audience: Mapped[str | None] = mapped_column(Text, nullable=True)
    budget: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    timeline: Mapped[str | None] = mapped_column(String(255), nullable=True)
    deliverables: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    platforms: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Campaign created from this quotation (status "completed")
    campaign_id: Mapped[str | None] = mapped_column(ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    influencers: Mapped[list["QuotationInfluencer"]] = relationship(
        back_populates="quotation",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="QuotationInfluencer.created_at",
    )


class QuotationInfluencer(Base):
    __tablename__ = "quotation_influencers"
    __table_args__ = (
        UniqueConstraint("quotation_id", "influencer_id", name="uq_quotation_influencers_quotation_influencer"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    quotation_id: Mapped[str] = mapped_column(ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False, index=True)
    influencer_id: Mapped[str] = mapped_column(ForeignKey("influencers.id", ondelete="CASCADE"), nullable=False)
    proposed_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    quotation: Mapped[Quotation] = relationship(back_populates="influencers")
    influencer: Mapped["Influencer"] = relationship("Influencer", lazy="selectin")
