"""
Change notification layer.

Responsibilities:
- Keep a registry of listeners and the entity kinds each one cares about.
- Replay current state to a listener the moment it subscribes.
- Deliver committed add/update/remove events synchronously, in
  registration order, without keeping listeners alive.
"""
