# app/utils/link_parser.py
from __future__ import annotations

import re
from typing import Callable, List, Optional

from app.utils.link_intent import is_intentional_link

# Допоміжні шаблони (компілюються в екземплярі LinkExtractor)
# 1) ```багаторядковий код```
FENCED_CODE_PATTERN = r"```[\s\S]*?```"
# 2) `інлайн-код`
INLINE_CODE_PATTERN = r"`[^`]*?`"
# 3) числовий операнд карма-команди: <@U123> += 11.4 / -= 2.6
KARMA_OPERAND_PATTERN = r"(?<=[+-]=)(\s*)(\d+(?:\.\d+)*)"
# 4) чат-розмітка посилання: <URL> або <URL|підпис>
#    група 1: сам URL без підпису
CHAT_LINK_PATTERN = (
    r"<((?:https?://)?(?:www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,63}\b"
    r"(?:[-a-zA-Z0-9()@:%_+.~#?&/=]*))[^>]*>"
)

# сигіли згадок користувача / каналу: <@U123>, <#C123|general>
_MENTION_SIGILS = ("@", "#")


def _blank(m: re.Match) -> str:
    return " " * len(m.group(0))


class LinkExtractor:
    """
    Витягує з тексту повідомлення «навмисні» посилання у чат-розмітці.

    Шаблони компілюються один раз при створенні екземпляра; екземпляр
    передається явно туди, де він потрібен (ResharingEngine, тести).
    """

    def __init__(self, classifier: Callable[[str], bool] = is_intentional_link):
        self.classifier = classifier
        self.fenced_code_re = re.compile(FENCED_CODE_PATTERN)
        self.inline_code_re = re.compile(INLINE_CODE_PATTERN)
        self.karma_operand_re = re.compile(KARMA_OPERAND_PATTERN)
        self.chat_link_re = re.compile(CHAT_LINK_PATTERN, re.IGNORECASE)

    def sanitize(self, text: str) -> str:
        """
        Замінює код і карма-операнди пробілами тієї ж довжини,
        щоб офсети решти тексту не змістились.
        """
        s = self.fenced_code_re.sub(_blank, text or "")
        s = self.inline_code_re.sub(_blank, s)
        s = self.karma_operand_re.sub(lambda m: m.group(1) + " " * len(m.group(2)), s)
        return s

    def candidates(self, text: str) -> List[str]:
        """Усі токени <URL> поза кодом, крім згадок <@user> / <#channel>."""
        out: List[str] = []
        for m in self.chat_link_re.finditer(self.sanitize(text)):
            url = m.group(1)
            if not url or url.startswith(_MENTION_SIGILS):
                continue
            out.append(url)
        return out

    def extract(self, text: str) -> List[str]:
        """
        Повертає унікальні навмисні посилання у порядку першої появи.
        Дублі прибираються за точним сирим рядком (не за канонічним ключем).
        """
        if not text:
            return []

        seen = set()
        out: List[str] = []
        for url in self.candidates(text):
            if url in seen:
                continue
            if not self.classifier(url):
                continue
            out.append(url)
            seen.add(url)
        return out


def extract_links(text: str, extractor: Optional[LinkExtractor] = None) -> List[str]:
    return (extractor or LinkExtractor()).extract(text)
