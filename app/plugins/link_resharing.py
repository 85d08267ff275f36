# app/plugins/link_resharing.py
from telethon import events

from app.config import WATCH_CHATS
from app.logging_json import get_logger
from app.services.resharing import DeletionEvent, IncomingMessage
from app.utils.tg_markup import thread_id_of, to_chat_markup

log = get_logger("plugin.link_resharing")


def _parse_watch(chats) -> set:
    out = set()
    for c in chats or ():
        try:
            out.add(int(c))
        except (TypeError, ValueError):
            log.warning("link_resharing: WATCH_CHATS entry %r is not a chat id, skipped", c)
    return out


def setup(client, control_peer=None, context=None, **kwargs):
    engine = context.engine
    memory = context.memory
    watch_ids = _parse_watch(WATCH_CHATS)

    def _watched(chat_id) -> bool:
        return not watch_ids or chat_id in watch_ids

    log.info("link_resharing: setup", watch_chats=sorted(watch_ids) or "all")

    @client.on(events.NewMessage(incoming=True))
    async def _on_message(evt):
        if not _watched(evt.chat_id):
            return
        msg = evt.message
        raw = msg.message or ""
        # команди (/help, /link_info ...) не рахуються
        if not raw or raw.startswith("/"):
            return

        text = to_chat_markup(raw, msg.entities)
        incoming = IncomingMessage(
            text=text,
            id=str(msg.id),
            channel_id=str(evt.chat_id),
            user_id=str(evt.sender_id or ""),
            thread_id=thread_id_of(msg),
        )
        try:
            result = await engine.process_message(incoming)
        except Exception as e:
            log.exception("link_resharing: message handler error: %s", e,
                          chat_id=evt.chat_id, message_id=msg.id)
            return

        if result.links_found:
            try:
                await memory.remember(incoming.channel_id, incoming.id, text, incoming.thread_id)
            except Exception as e:
                log.warning("link_resharing: can't remember message text: %s", e,
                            chat_id=evt.chat_id, message_id=msg.id)

        if result.response:
            await evt.reply(result.response, parse_mode="html", link_preview=False)

    @client.on(events.MessageDeleted())
    async def _on_deleted(evt):
        # у приватних чатах і звичайних групах Telegram не повідомляє chat_id
        if evt.chat_id is None:
            log.debug("link_resharing: deletion without chat_id", deleted_ids=list(evt.deleted_ids or []))
            return
        if not _watched(evt.chat_id):
            return

        channel_id = str(evt.chat_id)
        for mid in evt.deleted_ids or []:
            try:
                saved = await memory.pop(channel_id, str(mid)) or {}
                await engine.process_deletion(DeletionEvent(
                    deleted_message_id=str(mid),
                    channel_id=channel_id,
                    previous_text=saved.get("text"),
                    previous_thread_id=saved.get("thread_id"),
                ))
            except Exception as e:
                log.exception("link_resharing: deletion handler error: %s", e,
                              chat_id=evt.chat_id, message_id=mid)

    log.info("link_resharing plugin loaded")
