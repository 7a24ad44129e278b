from __future__ import annotations

from ..store.models import User

ASSISTANT_PROMPT = """\
You are the Tablefinder AI Assistant.
You help users discover and learn about restaurants, cuisines, and dining experiences.
Use the user's preferences to personalize responses.
Be **concise** and clear, answer in 1-3 sentences maximum.
If the question is unrelated to food or dining, politely redirect them."""


def describe_user(user: User | None) -> str:
    if user is None:
        return "User preferences not found."

    cuisines = ", ".join(user.preferred_cuisines or [])
    location = ", ".join(part for part in (user.city, user.country) if part) or "Unknown"
    lines = [
        "User Preferences:",
        f"- Name: {user.name or 'Unknown'}",
        f"- City: {location}",
        f"- Favourite cuisines: {cuisines or 'Not specified'}",
        f"- Price range: {user.preferred_price_tier} / 5",
    ]
    return "\n".join(lines)


def build_prompt(user: User | None, text: str) -> str:
    return f"{ASSISTANT_PROMPT}\n\n{describe_user(user)}\n\nUser: {text.strip()}"
