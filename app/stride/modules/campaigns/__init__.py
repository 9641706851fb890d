"""
Campaigns module.

- Campaign CRUD with a guarded status lifecycle (DRAFT/ACTIVE/PAUSED/COMPLETED/CANCELLED)
- Influencer participation (invite, respond, track shipment/posting, content submission)
- Brand-scoped views for the brand portal
"""
