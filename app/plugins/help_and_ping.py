# app/plugins/help_and_ping.py
from html import escape as _esc

from telethon import events

from app.config import ALLOWLISTED_HOSTS, LINK_TTL_SECONDS
from app.services.resharing import is_allowlisted
from app.utils.url_norm import normalize_url

HELP_TEXT_MD = """\
*Відстеження посилань*
Бот запам'ятовує, де посилання поширили вперше (зберігається {days} дн.), і
відповідає, коли те саме посилання з'являється знову — в іншому чаті, у тій самій
гілці або в цьому ж чаті. Посилання у `коді` та голі домени (`example.com`) не рахуються.

*Команди*
- `/link_info <url>` — канонічний ключ і де посилання бачили вперше
- `/help` — показати цю довідку
- `/ping` — перевірка зв’язку (має відповісти “pong”)
"""


def setup(client, control_peer=None, context=None, **kwargs):
    links = context.links

    # фільтр: приймати команди тільки від control_peer (якщо заданий)
    dec_filter = {}
    if control_peer:
        dec_filter = dict(from_users=control_peer)

    @client.on(events.NewMessage(pattern=r'^/help$', **dec_filter))
    async def help_cmd(event):
        days = max(1, LINK_TTL_SECONDS // 86400)
        await event.reply(HELP_TEXT_MD.format(days=days), parse_mode="md")

    @client.on(events.NewMessage(pattern=r'^/ping$', **dec_filter))
    async def ping_cmd(event):
        await event.reply("pong")

    @client.on(events.NewMessage(pattern=r'^/link_info(?:\s+(\S+))?$', **dec_filter))
    async def link_info_cmd(event):
        url = event.pattern_match.group(1)
        if not url:
            await event.reply("Використання: <code>/link_info &lt;url&gt;</code>", parse_mode="html")
            return

        key = normalize_url(url)
        lines = [f"🔑 Ключ: <code>{_esc(key)}</code>"]
        if is_allowlisted(key, ALLOWLISTED_HOSTS):
            lines.append("✅ У списку дозволених — сповіщень не буде")

        try:
            existing = await links.lookup(url)
        except Exception as e:
            lines.append(f"⚠️ Сховище недоступне: <code>{_esc(str(e))}</code>")
            await event.reply("\n".join(lines), parse_mode="html")
            return

        if existing is None:
            lines.append("Ще не траплялось (або запис протух)")
        else:
            lines.append(f"💬 chat=<code>{_esc(existing.channel_id)}</code> msg=<code>{_esc(existing.message_id)}</code>")
            lines.append(f"👤 user=<code>{_esc(existing.user_id)}</code>")
            if existing.thread_id:
                lines.append(f"🧵 thread=<code>{_esc(existing.thread_id)}</code>")
            when = existing.observed_at.isoformat(timespec="seconds") if existing.observed_at else "?"
            lines.append(f"🕒 {when}")
            lines.append(f"🔗 {_esc(existing.original_url)}")
        await event.reply("\n".join(lines), parse_mode="html", link_preview=False)
