from __future__ import annotations

import asyncio
import logging

from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from ..llm.groq_client import generate_reply
from ..store.base import EntityStore
from ..store.models import ChatMessage
from .prompts import build_prompt

logger = logging.getLogger(__name__)


class ChatAssistant:
    """Conversation with the AI assistant, persisted as chat history."""

    def __init__(self, store: EntityStore, config: LLMConfig = DEFAULT_LLM_CONFIG) -> None:
        self.store = store
        self.config = config

    async def ask(self, text: str) -> ChatMessage:
        """Record the question, ask the model, record and return its reply.

        If the model call fails the question stays in the history and the
        ``ChatError`` propagates.
        """
        self.store.add_chat_message(text, is_from_user=True)
        prompt = build_prompt(self.store.get_user(), text)

        # The Groq SDK call blocks; store access stays on the caller's thread
        reply = await asyncio.to_thread(generate_reply, prompt, self.config)
        return self.store.add_chat_message(reply, is_from_user=False)

    def history(self) -> list[ChatMessage]:
        return self.store.chat_history()

    def clear(self) -> None:
        self.store.clear_chat_history()
