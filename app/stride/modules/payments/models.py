from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.stride.models import Base, new_id
from app.stride.utils import utcnow


class InfluencerPayment(Base):
    """Payout details for an influencer; one row per influencer, details stored as a Fernet token."""

    __tablename__ = "influencer_payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    influencer_id: Mapped[str] = mapped_column(
        ForeignKey("influencers.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False)  # PAYPAL | BANK_TRANSFER
    encrypted_details: Mapped[str] = mapped_column(Text, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
