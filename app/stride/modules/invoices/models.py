from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.stride.models import Base, new_id
from app.stride.utils import utcnow

if TYPE_CHECKING:
    from app.stride.modules.campaigns.models import Campaign
    from app.stride.modules.influencers.models import Influencer


class InfluencerInvoice(Base):
    __tablename__ = "influencer_invoices"
    __table_args__ = (
        Index("idx_influencer_invoices_status", "status"),
        Index("idx_influencer_invoices_influencer", "influencer_id"),
        Index("idx_influencer_invoices_campaign", "campaign_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    influencer_id: Mapped[str] = mapped_column(ForeignKey("influencers.id", ondelete="CASCADE"), nullable=False)
    campaign_id: Mapped[str] = mapped_column(ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)

    invoice_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)  # INV-YYYY-MM-NNNN
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Creator details as written on the invoice
    creator_name: Mapped[str] = mapped_column(String(255), nullable=False)
    creator_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    creator_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    campaign_reference: Mapped[str] = mapped_column(String(255), nullable=False)
    brand_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_description: Mapped[str] = mapped_column(Text, nullable=False)
    content_link: Mapped[str] = mapped_column(Text, nullable=False)

    agreed_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="GBP")
    vat_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("20.00"))
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="SENT")
    staff_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_terms: Mapped[str] = mapped_column(String(64), nullable=False, default="Net 30")

    created_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    verified_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    influencer: Mapped["Influencer"] = relationship("Influencer", lazy="selectin")
    campaign: Mapped["Campaign"] = relationship("Campaign", lazy="selectin")
