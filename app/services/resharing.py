# app/services/resharing.py
"""
Виявлення повторних поширень посилань.

Для нового повідомлення:
  текст -> LinkExtractor -> (паралельно) LinkStore.lookup -> decide() по кожному
  посиланню -> (паралельно) LinkStore.put -> один агрегований текст відповіді.

Для видаленого повідомлення: з його попереднього тексту дістаємо посилання і
видаляємо лише ті записи, що вказують саме на це повідомлення.

Сховище тут «м'який кеш»: помилка читання = запису немає, помилка запису
логується і не зачіпає інші посилання того ж повідомлення.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from app.config import ALLOWLISTED_HOSTS, NOTIFY_SELF_RESHARE, RECENT_SHARE_WINDOW_SEC
from app.logging_json import StructuredAdapter, get_logger, new_trace_id
from app.services.link_store import LinkProvenance, LinkStore
from app.utils.formatting import ChatMarkupNotices, NoticeFormatter
from app.utils.link_parser import LinkExtractor
from app.utils.url_norm import normalize_url

log = get_logger("services.resharing")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReshareKind(str, Enum):
    CROSS_CHANNEL = "cross_channel"
    SAME_THREAD = "same_thread"
    SAME_CHANNEL = "same_channel"


@dataclass
class IncomingMessage:
    text: str
    id: str
    channel_id: str
    user_id: str
    thread_id: Optional[str] = None


@dataclass
class DeletionEvent:
    deleted_message_id: str
    channel_id: str
    previous_text: Optional[str] = None
    previous_thread_id: Optional[str] = None


@dataclass
class ProcessingResult:
    links_found: List[str] = field(default_factory=list)
    response: Optional[str] = None


@dataclass
class LinkLookup:
    raw: str
    canonical_key: str
    existing: Optional[LinkProvenance] = None


def is_allowlisted(canonical_key: str, allowlist: Iterable[str]) -> bool:
    return any(prefix and canonical_key.startswith(prefix) for prefix in allowlist)


def decide(
    lookup: LinkLookup,
    message: IncomingMessage,
    now: datetime,
    *,
    allowlist: Iterable[str] = ALLOWLISTED_HOSTS,
    recent_window: float = RECENT_SHARE_WINDOW_SEC,
    notify_self_reshare: bool = NOTIFY_SELF_RESHARE,
) -> Tuple[Optional[ReshareKind], str]:
    """
    Драбина рішень для одного посилання, перше правило, що спрацювало, виграє.
    Повертає (вид сповіщення або None, причина для логів).
    """
    if is_allowlisted(lookup.canonical_key, allowlist):
        return None, "allowlisted"

    existing = lookup.existing
    if existing is None:
        return None, "first_seen"

    # < recent_window: це те саме повідомлення або дубль доставки події
    if existing.observed_at is not None:
        age = (now - existing.observed_at).total_seconds()
        if age < recent_window:
            return None, "very_recent"

    if not notify_self_reshare and existing.user_id == message.user_id:
        return None, "self_reshare"

    if existing.channel_id != message.channel_id:
        return ReshareKind.CROSS_CHANNEL, "other_channel"
    if message.thread_id and existing.thread_id == message.thread_id:
        return ReshareKind.SAME_THREAD, "same_thread"
    return ReshareKind.SAME_CHANNEL, "same_channel"


class ResharingEngine:
    def __init__(
        self,
        store: LinkStore,
        extractor: Optional[LinkExtractor] = None,
        allowlist: Iterable[str] = ALLOWLISTED_HOSTS,
        notices: Optional[NoticeFormatter] = None,
        clock: Optional[Clock] = None,
        recent_window: float = RECENT_SHARE_WINDOW_SEC,
        notify_self_reshare: bool = NOTIFY_SELF_RESHARE,
    ):
        self.store = store
        self.extractor = extractor or LinkExtractor()
        self.allowlist = tuple(allowlist)
        self.notices = notices or ChatMarkupNotices()
        self.clock = clock or utcnow
        self.recent_window = float(recent_window)
        self.notify_self_reshare = notify_self_reshare

    # ----------------- helpers -----------------
    async def _lookup(self, raw: str, tlog: StructuredAdapter) -> LinkLookup:
        key = normalize_url(raw)
        try:
            existing = await self.store.lookup(raw)
        except Exception:
            tlog.exception("Failed to lookup existing link", url=raw, canonical_key=key)
            existing = None
        return LinkLookup(raw=raw, canonical_key=key, existing=existing)

    async def _persist(self, lookup: LinkLookup, message: IncomingMessage, now: datetime,
                       tlog: StructuredAdapter) -> bool:
        provenance = LinkProvenance(
            canonical_key=lookup.canonical_key,
            original_url=lookup.raw,
            channel_id=message.channel_id,
            message_id=message.id,
            user_id=message.user_id,
            thread_id=message.thread_id,
            observed_at=now,
        )
        try:
            return await self.store.put(lookup.raw, provenance)
        except Exception:
            tlog.exception("Failed to store link", url=lookup.raw, canonical_key=lookup.canonical_key)
            return False

    async def _remove(self, raw: str, event: DeletionEvent, tlog: StructuredAdapter) -> bool:
        try:
            removed = await self.store.remove_if_matches(raw, event.deleted_message_id, event.channel_id)
        except Exception:
            tlog.exception("Message deletion: failed to remove link reference", url=raw)
            return False
        if removed:
            tlog.debug("Message deletion: deleting link reference", url=raw,
                       canonical_key=normalize_url(raw), message_id=event.deleted_message_id)
        else:
            tlog.debug("Message deletion: link reference not found or from different message",
                       url=raw, message_id=event.deleted_message_id)
        return removed

    def render(self, kind: ReshareKind, existing: LinkProvenance) -> str:
        if kind is ReshareKind.CROSS_CHANNEL:
            return self.notices.cross_channel(existing)
        if kind is ReshareKind.SAME_THREAD:
            return self.notices.same_thread(existing)
        return self.notices.same_channel(existing)

    # ----------------- public API -----------------
    async def process_message(self, message: IncomingMessage) -> ProcessingResult:
        links = self.extractor.extract(message.text)
        if not links:
            return ProcessingResult()

        tlog = log.bind(trace_id=new_trace_id("msg"))
        tlog.debug("Found links in message", link_count=len(links), links=links, message_id=message.id)

        now = self.clock()
        lookups = await asyncio.gather(*(self._lookup(u, tlog) for u in links))

        # dict як впорядкована множина: однакові тексти не дублюються
        notices: Dict[str, None] = {}
        for lk in lookups:
            kind, reason = decide(
                lk, message, now,
                allowlist=self.allowlist,
                recent_window=self.recent_window,
                notify_self_reshare=self.notify_self_reshare,
            )
            tlog.debug("Reshare decision", url=lk.raw, canonical_key=lk.canonical_key,
                       kind=kind.value if kind else None, reason=reason)
            if kind is not None and lk.existing is not None:
                notices[self.render(kind, lk.existing)] = None

        written = await asyncio.gather(*(self._persist(lk, message, now, tlog) for lk in lookups))

        response = "\n".join(notices) if notices else None
        tlog.debug("Link processing complete", found_links=len(links),
                   stored=sum(1 for w in written if w), notices=len(notices),
                   has_response=response is not None)
        return ProcessingResult(links_found=list(links), response=response)

    async def process_deletion(self, event: DeletionEvent) -> None:
        tlog = log.bind(trace_id=new_trace_id("del"))

        if not event.previous_text:
            tlog.debug("Message deletion: no previous message content available",
                       message_id=event.deleted_message_id)
            return

        links = self.extractor.extract(event.previous_text)
        if not links:
            tlog.debug("Message deletion: no links found in deleted message",
                       message_id=event.deleted_message_id)
            return

        results = await asyncio.gather(*(self._remove(u, event, tlog) for u in links))
        tlog.debug("Message deletion: processing complete",
                   deleted_count=sum(1 for r in results if r), total_links=len(links))
