"""
Durable entity store.

Responsibilities:
- Persist users, restaurants, reviews and chat messages in SQLite.
- Deduplicate restaurants by their external place id.
- Commit every mutation before returning, then publish it to listeners.
"""
