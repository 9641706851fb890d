from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from app.stride.utils import utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role", "role"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    clerk_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="BRAND")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    profile: Mapped["UserProfile | None"] = relationship(
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class UserProfile(Base):
    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    first_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    location_country: Mapped[str | None] = mapped_column(String(128), nullable=True)
    location_city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    website_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_onboarded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Signed-talent onboarding outcomes
    email_forwarding_setup: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    manager_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    instagram_bio_setup: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    uk_events_chat_joined: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    user: Mapped[User] = relationship(back_populates="profile")


class AuditEvent(Base):
    """
    Append-only audit trail event.
    Kept generic; entity_id is a string so any table's key fits.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_logs_entity", "entity_type", "entity_id"),
        Index("idx_audit_logs_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_user_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "campaign.create"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "Campaign"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.stride.modules.influencers.models import Influencer, InfluencerPlatform  # noqa: E402,F401
from app.stride.modules.brands.models import Brand, BrandContact  # noqa: E402,F401
from app.stride.modules.campaigns.models import Campaign, CampaignInfluencer  # noqa: E402,F401
from app.stride.modules.quotations.models import Quotation, QuotationInfluencer  # noqa: E402,F401
from app.stride.modules.shortlists.models import Shortlist, ShortlistInfluencer  # noqa: E402,F401
from app.stride.modules.invoices.models import InfluencerInvoice  # noqa: E402,F401
from app.stride.modules.modash.models import ModashProfileCache  # noqa: E402,F401
from app.stride.modules.content.models import ContentSubmission  # noqa: E402,F401
from app.stride.modules.templates.models import CampaignTemplate  # noqa: E402,F401
from app.stride.modules.payments.models import InfluencerPayment  # noqa: E402,F401
from app.stride.modules.invitations.models import UserInvitation  # noqa: E402,F401
from app.stride.modules.onboarding.models import (  # noqa: E402,F401
    TalentBrandCollaboration,
    TalentBrandPreference,
    TalentOnboardingStep,
    TalentPaymentHistory,
)
