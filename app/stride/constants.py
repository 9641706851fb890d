"""
Central constants for the Stride dashboard.
"""
from __future__ import annotations

# Roles (stored on users.role)
ROLE_BRAND = "BRAND"
ROLE_INFLUENCER_PARTNERED = "INFLUENCER_PARTNERED"
ROLE_INFLUENCER_SIGNED = "INFLUENCER_SIGNED"
ROLE_STAFF = "STAFF"
ROLE_ADMIN = "ADMIN"

VALID_ROLES = (ROLE_BRAND, ROLE_INFLUENCER_PARTNERED, ROLE_INFLUENCER_SIGNED, ROLE_STAFF, ROLE_ADMIN)
INFLUENCER_ROLES = frozenset({ROLE_INFLUENCER_PARTNERED, ROLE_INFLUENCER_SIGNED})
STAFF_ROLES = frozenset({ROLE_STAFF, ROLE_ADMIN})

# Social platforms
VALID_PLATFORMS = ("INSTAGRAM", "TIKTOK", "YOUTUBE", "TWITCH", "TWITTER", "LINKEDIN")

# Platforms Modash can report on (lowercase, as used in Modash URLs)
MODASH_PLATFORMS = ("instagram", "tiktok", "youtube")

VALID_TIERS = ("GOLD", "SILVER", "PARTNERED", "BRONZE")
VALID_CONTENT_TYPES = ("STANDARD", "UGC", "SEEDING")
VALID_INFLUENCER_TYPES = ("SIGNED", "PARTNERED", "AGENCY_PARTNER")
VALID_RELATIONSHIP_STATUSES = ("prospect", "contacted", "negotiating", "signed", "active", "inactive")

# Campaigns
VALID_CAMPAIGN_STATUSES = ("DRAFT", "ACTIVE", "PAUSED", "COMPLETED", "CANCELLED")

# Campaign participation (campaign_influencers.status)
VALID_PARTICIPATION_STATUSES = (
    "INVITED",
    "ACCEPTED",
    "DECLINED",
    "IN_PROGRESS",
    "CONTENT_SUBMITTED",
    "COMPLETED",
    "PAID",
)

# Quotations
VALID_QUOTATION_STATUSES = ("pending", "in_review", "approved", "rejected", "completed")

# Influencer invoices
VALID_INVOICE_STATUSES = ("DRAFT", "SENT", "VERIFIED", "DELAYED", "PAID", "VOIDED")
DEFAULT_CURRENCY = "GBP"
DEFAULT_VAT_RATE = "20.00"
DEFAULT_PAYMENT_TERMS = "Net 30"
INVOICE_DUE_DAYS = 30

# Content submissions (campaign_content_submissions.status)
VALID_SUBMISSION_STATUSES = ("PENDING", "SUBMITTED", "APPROVED", "REJECTED", "REVISION_REQUESTED")
VALID_SUBMISSION_CONTENT_TYPES = ("post", "reel", "story", "video", "short", "live")

# Staff invitations (user_invitations.status)
VALID_INVITATION_STATUSES = ("INVITED", "ACCEPTED", "DECLINED", "EXPIRED")
INVITATION_EXPIRY_DAYS = 30

# Influencer payment details
VALID_PAYMENT_METHODS = ("PAYPAL", "BANK_TRANSFER")

# Signed-talent onboarding steps
ONBOARDING_REQUIRED_STEPS = (
    "welcome_video",
    "personal_info",
    "social_goals",
    "brand_selection",
    "brand_inbound_setup",
    "email_forwarding_video",
    "instagram_bio_setup",
    "uk_events_chat",
    "expectations",
)
ONBOARDING_OPTIONAL_STEPS = ("social_handles", "previous_collaborations", "payment_information")
