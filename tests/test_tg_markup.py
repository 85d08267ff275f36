from types import SimpleNamespace

from telethon.tl import types as ttypes

from app.utils.link_parser import extract_links
from app.utils.tg_markup import thread_id_of, to_chat_markup


def test_url_entity_is_wrapped():
    text = "see example.com/a now"
    out = to_chat_markup(text, [ttypes.MessageEntityUrl(offset=4, length=13)])
    assert out == "see <example.com/a> now"
    assert extract_links(out) == ["example.com/a"]


def test_text_url_entity_keeps_label():
    text = "read docs please"
    ent = ttypes.MessageEntityTextUrl(offset=5, length=4, url="https://example.com/docs")
    assert to_chat_markup(text, [ent]) == "read <https://example.com/docs|docs> please"


def test_code_entities_become_backticks():
    text = "run example.com/a or this"
    out = to_chat_markup(text, [
        ttypes.MessageEntityCode(offset=4, length=13),
        ttypes.MessageEntityPre(offset=21, length=4, language=""),
    ])
    assert out == "run `example.com/a` or ```this```"


def test_offsets_are_utf16():
    text = "👋 example.com/a"
    out = to_chat_markup(text, [ttypes.MessageEntityUrl(offset=3, length=13)])
    assert out == "👋 <example.com/a>"


def test_plain_text_passthrough():
    assert to_chat_markup("hello", None) == "hello"
    assert to_chat_markup("", [ttypes.MessageEntityUrl(offset=0, length=1)]) == ""


def test_code_wrapped_url_is_not_extracted():
    text = "example.com/a"
    out = to_chat_markup(text, [
        ttypes.MessageEntityCode(offset=0, length=13),
        ttypes.MessageEntityUrl(offset=0, length=13),
    ])
    assert out == "`example.com/a`"
    assert extract_links(out) == []


def test_thread_id_of():
    assert thread_id_of(SimpleNamespace(reply_to=None)) is None
    hdr = SimpleNamespace(reply_to_top_id=5, reply_to_msg_id=7)
    assert thread_id_of(SimpleNamespace(reply_to=hdr)) == "5"
    hdr = SimpleNamespace(reply_to_top_id=None, reply_to_msg_id=7)
    assert thread_id_of(SimpleNamespace(reply_to=hdr)) == "7"
