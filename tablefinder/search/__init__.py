"""
Remote search cache and reconciliation.

Responsibilities:
- Decide per category whether cached place ids are still good for the
  caller's coordinate or whether the provider must be queried again.
- Rank raw provider results and upsert them into the store exactly once.
- Offer uncached lookups (free-text search, details, reviews).
"""
