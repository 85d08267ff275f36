# app/utils/link_intent.py
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import SplitResult, urlsplit

from app.utils.url_norm import SCHEME_RE, strip_chat_formatting

_PORT_RE = re.compile(r":\d+$")
_HAS_ALPHA_RE = re.compile(r"[a-z]", re.IGNORECASE)


def _split(token: str) -> Optional[SplitResult]:
    candidate = strip_chat_formatting(token)
    if not candidate:
        return None
    if not SCHEME_RE.match(candidate):
        candidate = "https://" + candidate
    try:
        parts = urlsplit(candidate)
        if not parts.hostname:
            return None
        return parts
    except ValueError:
        return None


def _has_meaningful_path(parts: SplitResult) -> bool:
    return any(seg.strip() for seg in parts.path.split("/"))


def _has_query_pair(parts: SplitResult) -> bool:
    return any("=" in pair and pair.split("=", 1)[0] for pair in parts.query.split("&"))


def _has_subdomain(parts: SplitResult) -> bool:
    host = parts.hostname or ""
    if host.startswith("www."):
        host = host[4:]
    labels = host.split(".")
    if len(labels) <= 2:
        return False
    # 192.168.0.1 / 24.7.0.26 не піддомени
    return bool(_HAS_ALPHA_RE.search(labels[-1]))


def _has_port(parts: SplitResult) -> bool:
    return bool(_PORT_RE.search(parts.netloc))


def is_bare_domain(token: str) -> bool:
    """
    True для «голого» домену: тільки хост (без піддомену, крім www, і без порту),
    порожній або кореневий шлях, без query і фрагмента.
    Схема не має значення: hello.app і https://hello.app однаково голі.
    """
    parts = _split(token)
    if parts is None:
        return False
    return not (
        _has_meaningful_path(parts)
        or _has_query_pair(parts)
        or parts.fragment
        or _has_subdomain(parts)
        or _has_port(parts)
    )


def is_intentional_link(token: str) -> bool:
    """
    Чи схоже, що користувач справді поділився посиланням, а не просто згадав домен.

    Чат-клієнти самі перетворюють «я користуюсь hello.app» на лінк,
    тому приймаємо лише структурно «навмисні» URL:
      • є непорожній сегмент шляху (aol.com/123)
      • є query з key=value або непорожній #фрагмент
      • є піддомен, крім www (api.example.com)
      • є явний порт (example.com:8080)
    """
    parts = _split(token)
    if parts is None:
        return False
    if _has_meaningful_path(parts):
        return True
    if _has_query_pair(parts):
        return True
    if parts.fragment:
        return True
    if _has_subdomain(parts):
        return True
    if _has_port(parts):
        return True
    return False
