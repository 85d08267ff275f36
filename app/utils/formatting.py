# app/utils/formatting.py
from __future__ import annotations

from html import escape as _esc
from typing import TYPE_CHECKING

from app.config import NOTICE_PREFIX

if TYPE_CHECKING:
    from app.services.link_store import LinkProvenance


class NoticeFormatter:
    """
    Тексти повідомлень «це посилання вже було».
    Базова версія: чат-розмітка <#CHANNEL>, <@USER>.
    """

    def __init__(self, prefix: str = NOTICE_PREFIX):
        self.prefix = prefix

    def _line(self, body: str) -> str:
        return f"{self.prefix} {body}" if self.prefix else body

    def channel_ref(self, existing: "LinkProvenance") -> str:
        return f"<#{existing.channel_id}>"

    def user_ref(self, existing: "LinkProvenance") -> str:
        return f"<@{existing.user_id}>"

    def cross_channel(self, existing: "LinkProvenance") -> str:
        return self._line(f"That link is also being discussed in {self.channel_ref(existing)}")

    def same_thread(self, existing: "LinkProvenance") -> str:
        return self._line(f"That link was previously shared in this thread by {self.user_ref(existing)}")

    def same_channel(self, existing: "LinkProvenance") -> str:
        return self._line("That link is also being discussed in this channel")


# Псевдонім для явності в конфігурації двигуна
ChatMarkupNotices = NoticeFormatter


def tg_message_link(channel_id: str, message_id: str) -> str:
    """
    -1001234567890 + 42 -> https://t.me/c/1234567890/42
    Для приватних чатів (додатний id) посилання на повідомлення не буває.
    """
    cid = str(channel_id or "")
    if cid.startswith("-100"):
        return f"https://t.me/c/{cid[4:]}/{message_id}"
    return ""


class TelegramHtmlNotices(NoticeFormatter):
    """Ті самі фрази, але в HTML для Telegram (client.parse_mode = 'html')."""

    def channel_ref(self, existing: "LinkProvenance") -> str:
        url = tg_message_link(existing.channel_id, existing.message_id)
        if url:
            return f'<a href="{_esc(url, quote=True)}">another chat</a>'
        return f"<code>{_esc(existing.channel_id)}</code>"

    def user_ref(self, existing: "LinkProvenance") -> str:
        uid = _esc(existing.user_id, quote=True)
        return f'<a href="tg://user?id={uid}">{uid}</a>'

    def same_channel(self, existing: "LinkProvenance") -> str:
        url = tg_message_link(existing.channel_id, existing.message_id)
        if url:
            return self._line(
                f'That link is also being discussed in <a href="{_esc(url, quote=True)}">this message</a> in this channel'
            )
        return super().same_channel(existing)
