# app/services/message_memory.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from app.config import LINK_TTL_SECONDS
from app.services.kv_store import KVStore

log = logging.getLogger("services.message_memory")

MSG_KEY_PREFIX = "msgtext:"


class MessageMemory:
    """
    Telegram у MessageDeleted не віддає текст видаленого повідомлення.
    Тому для повідомлень із посиланнями запам'ятовуємо текст (у чат-розмітці)
    на той самий термін, що й записи посилань.
    """

    def __init__(self, kv: KVStore, ttl_seconds: int = LINK_TTL_SECONDS):
        self.kv = kv
        self.ttl_seconds = int(ttl_seconds)

    @staticmethod
    def key_for(channel_id: str, message_id: str) -> str:
        return f"{MSG_KEY_PREFIX}{channel_id}:{message_id}"

    async def remember(self, channel_id: str, message_id: str, text: str,
                       thread_id: Optional[str] = None) -> None:
        await self.kv.set(
            self.key_for(channel_id, message_id),
            {"text": text, "thread_id": thread_id},
            ttl_seconds=self.ttl_seconds,
        )

    async def pop(self, channel_id: str, message_id: str) -> Optional[Dict[str, Any]]:
        """Повертає збережене {text, thread_id} і забуває його."""
        key = self.key_for(channel_id, message_id)
        data = await self.kv.get(key)
        if data is None:
            return None
        await self.kv.delete(key)
        return data
