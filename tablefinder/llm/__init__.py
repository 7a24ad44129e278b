"""
LLM integration layer.

Responsibilities:
- Manage Groq API configuration and credentials.
- Send assistant prompts to Groq and return the reply text.
- Surface every failure as a ``ChatError`` the caller can present.
"""
