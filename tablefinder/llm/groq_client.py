from __future__ import annotations

import logging

from groq import Groq

from ..errors import ChatError
from .config import DEFAULT_LLM_CONFIG, LLMConfig

logger = logging.getLogger(__name__)

EMPTY_REPLY = "No response from AI."


def generate_reply(prompt: str, config: LLMConfig = DEFAULT_LLM_CONFIG) -> str:
    """
    Send a fully built prompt to Groq and return the reply text.

    Raises ``ChatError`` when the assistant is disabled, has no API key,
    or the call fails for any reason.
    """
    if not config.enabled or not config.api_key:
        raise ChatError("AI assistant is not configured")

    try:
        client = Groq(api_key=config.api_key, timeout=config.timeout)
        response = client.chat.completions.create(
            model=config.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )
        content = (response.choices[0].message.content or "").strip()
    except Exception as exc:
        logger.warning("Groq chat call failed", exc_info=True)
        raise ChatError("AI assistant is unavailable, please try again later") from exc

    return content or EMPTY_REPLY
