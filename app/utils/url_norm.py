# app/utils/url_norm.py
from __future__ import annotations

import re
from typing import List, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit

# Трекінгові параметри, які не змінюють зміст сторінки
TRACKING_PARAMS = frozenset({
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    "s",
    "t",
})

_TRAIL_PUNCT_RE = re.compile(r"[.,;:!?]$")
SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def strip_chat_formatting(raw: str) -> str:
    """
    Знімає чат-розмітку з токена:
      <https://example.com|Example>  ->  https://example.com
    """
    url = (raw or "").replace("<", "").replace(">", "").strip()
    if "|" in url:
        url = url.split("|", 1)[0]
    return url


def _with_scheme(url: str) -> str:
    # схема потрібна лише для парсингу, у ключ вона не потрапляє
    if SCHEME_RE.match(url):
        return url
    return "https://" + url


def _strip_tracking(query: str) -> str:
    if not query:
        return ""
    pairs: List[Tuple[str, str]] = parse_qsl(query, keep_blank_values=True)
    kept = [(k, v) for k, v in pairs if k not in TRACKING_PARAMS]
    if len(kept) == len(pairs):
        return query
    return urlencode(kept)


def normalize_url(raw: str) -> str:
    """
    Канонічний ключ посилання: host + path + ?query, без схеми, www., фрагмента
    і трекінгових параметрів.

        normalize_url("https://www.example.com/")  -> "example.com"
        normalize_url("http://example.com")        -> "example.com"
        normalize_url("https://google.com?utm_source=x&q=test") -> "google.com?q=test"

    Ніколи не кидає виняток: якщо розібрати не вдалося, повертає очищений
    рядок без хвостової пунктуації.
    """
    url = strip_chat_formatting(raw)
    try:
        parts = urlsplit(_with_scheme(url))
        host = parts.hostname
        if not host:
            raise ValueError(f"no host in {url!r}")

        if host.startswith("www."):
            host = host[4:]

        path = parts.path
        if path == "/":
            path = ""

        query = _strip_tracking(parts.query)
        return host + path + (f"?{query}" if query else "")
    except ValueError:
        return _TRAIL_PUNCT_RE.sub("", url)
