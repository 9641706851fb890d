"""
Modash integration.

- HTTP client (profile reports, discovery search, credit usage)
- Analytics refresh for roster influencers
- Profile cache with priority-based expiry
"""
