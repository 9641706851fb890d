from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Float, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.stride.models import Base, new_id
from app.stride.utils import utcnow


class CampaignTemplate(Base):
    __tablename__ = "campaign_templates"
    __table_args__ = (
        Index("idx_campaign_templates_industry", "industry"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    industry: Mapped[str | None] = mapped_column(String(128), nullable=True)
    goals: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Targeting defaults copied onto new campaigns
    min_followers: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    max_followers: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    min_engagement: Mapped[float | None] = mapped_column(Float, nullable=True)
    platforms: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    demographics: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    content_guidelines: Mapped[str | None] = mapped_column(Text, nullable=True)
    deliverables: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    budget_min: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    budget_max: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    preparation_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    execution_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
