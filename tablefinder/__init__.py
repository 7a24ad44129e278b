"""
Tablefinder restaurant discovery service.

Responsibilities:
- Mirror restaurants from the places provider into a local store.
- Serve cached category searches keyed on the caller's location.
- Keep the user's profile, favourites, reviews and assistant chat.
"""
