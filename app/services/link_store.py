# app/services/link_store.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.config import LINK_TTL_SECONDS
from app.services.kv_store import KVStore
from app.utils.url_norm import normalize_url

log = logging.getLogger("services.link_store")

# Префікс ключів посилань у спільному KV
LINK_KEY_PREFIX = "link:"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_ts(value: Any) -> Optional[datetime]:
    """ISO-рядок / datetime -> aware datetime (UTC); None, якщо розібрати не вдалося."""
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except (TypeError, ValueError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class LinkProvenance:
    """
    Де/ким/коли канонічне посилання було поширене вперше (у межах TTL).
    observed_at: момент запису; None після from_dict означає зіпсовану мітку.
    """
    canonical_key: str
    original_url: str
    channel_id: str
    message_id: str
    user_id: str
    thread_id: Optional[str] = None
    observed_at: Optional[datetime] = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["observed_at"] = self.observed_at.isoformat() if self.observed_at else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkProvenance":
        return cls(
            canonical_key=str(data.get("canonical_key") or ""),
            original_url=str(data.get("original_url") or ""),
            channel_id=str(data.get("channel_id") or ""),
            message_id=str(data.get("message_id") or ""),
            user_id=str(data.get("user_id") or ""),
            thread_id=data.get("thread_id") or None,
            observed_at=parse_ts(data.get("observed_at")),
        )


class LinkStore:
    """
    Обгортка над KVStore з семантикою посилань:
    ключ = prefix + канонічний ключ, кожен запис живе ttl_seconds.
    Помилки сховища не ковтаються, їх обробляє викликач.
    """

    def __init__(self, kv: KVStore, ttl_seconds: int = LINK_TTL_SECONDS, prefix: str = LINK_KEY_PREFIX):
        self.kv = kv
        self.ttl_seconds = int(ttl_seconds)
        self.prefix = prefix

    def key_for(self, raw_url: str) -> str:
        return f"{self.prefix}{normalize_url(raw_url)}"

    async def lookup(self, raw_url: str) -> Optional[LinkProvenance]:
        data = await self.kv.get(self.key_for(raw_url))
        if not data:
            return None
        return LinkProvenance.from_dict(data)

    async def put(self, raw_url: str, provenance: LinkProvenance, preserve_original: bool = True) -> bool:
        """
        Зберігає запис. При preserve_original=True існуючий запис не чіпаємо
        (перший, хто поділився, лишається в історії до кінця TTL).
        Повертає True, якщо запис справді відбувся.
        """
        key = self.key_for(raw_url)
        if preserve_original and await self.kv.get(key):
            log.debug("link_store: keep original for %s", key)
            return False
        await self.kv.set(key, provenance.to_dict(), ttl_seconds=self.ttl_seconds)
        return True

    async def remove_if_matches(self, raw_url: str, message_id: str, channel_id: str) -> bool:
        """
        Видаляє запис, лише якщо він вказує саме на це повідомлення в цьому каналі.
        """
        key = self.key_for(raw_url)
        data = await self.kv.get(key)
        if not data:
            return False
        existing = LinkProvenance.from_dict(data)
        if existing.message_id != str(message_id) or existing.channel_id != str(channel_id):
            return False
        await self.kv.delete(key)
        return True
