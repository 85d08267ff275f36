# app/utils/tg_markup.py
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from telethon.helpers import add_surrogate, del_surrogate
from telethon.tl import types as ttypes


def to_chat_markup(text: str, entities: Optional[Iterable] = None) -> str:
    """
    Переводить Telegram-текст з entities у чат-розмітку, яку розуміє LinkExtractor:
      • MessageEntityUrl      «hello.app/x»      -> <hello.app/x>
      • MessageEntityTextUrl  «docs» (href=URL)  -> <URL|docs>
      • MessageEntityCode     -> `код`
      • MessageEntityPre      -> ```код```

    Офсети entities рахуються в UTF-16 code units, тому працюємо із «сурогатним» рядком.
    Вкладені/перекриті entities всередині вже обгорнутого фрагмента пропускаються.
    """
    if not text:
        return ""
    if not entities:
        return text

    s = add_surrogate(text)
    n = len(s)

    # offset -> (end, opening, closing)
    spans: Dict[int, tuple] = {}
    for e in entities:
        try:
            off = int(getattr(e, "offset", 0))
            ln = int(getattr(e, "length", 0))
        except (TypeError, ValueError):
            continue
        if off < 0 or ln <= 0 or off + ln > n or off in spans:
            continue

        if isinstance(e, ttypes.MessageEntityUrl):
            spans[off] = (off + ln, "<", ">")
        elif isinstance(e, ttypes.MessageEntityTextUrl):
            href = add_surrogate(getattr(e, "url", "") or "")
            if href:
                spans[off] = (off + ln, f"<{href}|", ">")
        elif isinstance(e, ttypes.MessageEntityCode):
            spans[off] = (off + ln, "`", "`")
        elif isinstance(e, ttypes.MessageEntityPre):
            spans[off] = (off + ln, "```", "```")

    out: List[str] = []
    pos = 0
    for off in sorted(spans):
        if off < pos:
            continue
        end, opening, closing = spans[off]
        out.append(s[pos:off])
        out.append(opening)
        # підпис не повинен «закрити» токен раніше часу
        piece = s[off:end]
        if opening.endswith("|"):
            piece = piece.replace(">", "")
        out.append(piece)
        out.append(closing)
        pos = end
    out.append(s[pos:])
    return del_surrogate("".join(out))


def thread_id_of(msg) -> Optional[str]:
    """
    «Гілка» повідомлення в Telegram:
      • коментар/відповідь у гілці: reply_to_top_id
      • повідомлення у форум-топіку: id топіка (reply_to_msg_id)
      • звичайна відповідь: id повідомлення, на яке відповіли
    """
    hdr = getattr(msg, "reply_to", None)
    if hdr is None:
        return None
    top = getattr(hdr, "reply_to_top_id", None)
    if top:
        return str(top)
    reply_id = getattr(hdr, "reply_to_msg_id", None)
    return str(reply_id) if reply_id else None
