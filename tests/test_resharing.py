from datetime import timedelta

import pytest

from app.services.link_store import LinkProvenance
from app.services.resharing import (
    DeletionEvent,
    IncomingMessage,
    LinkLookup,
    ProcessingResult,
    ReshareKind,
    ResharingEngine,
    decide,
)
from app.utils.formatting import ChatMarkupNotices

LINK = "<https://www.phoronix.com/news/X>"
KEY = "link:phoronix.com/news/X"


def _msg(text=LINK, id="1", channel="C1", user="U1", thread=None):
    return IncomingMessage(text=text, id=id, channel_id=channel, user_id=user, thread_id=thread)


@pytest.mark.asyncio
async def test_first_sighting_is_stored_silently(engine, kv, clock):
    result = await engine.process_message(_msg(thread="T1"))

    assert result.links_found == ["https://www.phoronix.com/news/X"]
    assert result.response is None
    assert list(kv.data) == [KEY]
    stored = kv.data[KEY]
    assert stored["channel_id"] == "C1"
    assert stored["message_id"] == "1"
    assert stored["user_id"] == "U1"
    assert stored["thread_id"] == "T1"
    assert stored["original_url"] == "https://www.phoronix.com/news/X"
    assert stored["observed_at"] == clock.now.isoformat()


@pytest.mark.asyncio
async def test_no_links(engine, kv):
    result = await engine.process_message(_msg(text="just talking about example.com"))
    assert result == ProcessingResult()
    assert kv.data == {}


@pytest.mark.asyncio
async def test_cross_channel(engine, clock):
    await engine.process_message(_msg(channel="C1"))
    clock.advance(60)
    result = await engine.process_message(_msg(id="2", channel="C2", user="U2"))
    assert result.response == "👋 That link is also being discussed in <#C1>"


@pytest.mark.asyncio
async def test_same_thread(engine, clock):
    await engine.process_message(_msg(thread="T1"))
    clock.advance(60)
    result = await engine.process_message(_msg(id="2", user="U2", thread="T1"))
    assert result.response == "👋 That link was previously shared in this thread by <@U1>"


@pytest.mark.asyncio
async def test_same_channel(engine, clock):
    await engine.process_message(_msg(thread="T1"))
    clock.advance(60)
    other_thread = await engine.process_message(_msg(id="2", user="U2", thread="T2"))
    top_level = await engine.process_message(_msg(id="3", user="U2"))
    expected = "👋 That link is also being discussed in this channel"
    assert other_thread.response == expected
    assert top_level.response == expected


@pytest.mark.asyncio
async def test_very_recent_duplicate_is_suppressed(engine, clock):
    await engine.process_message(_msg(channel="C1"))
    clock.advance(2)
    result = await engine.process_message(_msg(id="2", channel="C2"))
    assert result.response is None


@pytest.mark.asyncio
async def test_allowlisted_never_notifies(engine, clock):
    text = "<https://developer.apple.com/videos/play/wwdc2024/101/>"
    await engine.process_message(_msg(text=text, channel="C1"))
    clock.advance(60)
    result = await engine.process_message(_msg(text=text, id="2", channel="C2"))
    assert result.links_found
    assert result.response is None


@pytest.mark.asyncio
async def test_self_reshare_switch(make_engine, clock):
    engine = make_engine(notify_self_reshare=False)
    await engine.process_message(_msg(channel="C1", user="U1"))
    clock.advance(60)
    same_user = await engine.process_message(_msg(id="2", channel="C2", user="U1"))
    other_user = await engine.process_message(_msg(id="3", channel="C2", user="U2"))
    assert same_user.response is None
    assert other_user.response == "👋 That link is also being discussed in <#C1>"


@pytest.mark.asyncio
async def test_equal_notices_are_merged(engine, clock):
    text = "<https://example.com/a> <https://example.com/b>"
    await engine.process_message(_msg(text=text, channel="C1"))
    clock.advance(60)
    result = await engine.process_message(_msg(text=text, id="2", channel="C2"))
    assert result.response == "👋 That link is also being discussed in <#C1>"


@pytest.mark.asyncio
async def test_different_notices_joined_in_link_order(engine, clock):
    await engine.process_message(_msg(text="<https://example.com/a>", channel="C1", thread="T1"))
    await engine.process_message(_msg(text="<https://example.com/b>", id="2", channel="C2"))
    clock.advance(60)
    result = await engine.process_message(
        _msg(text="<https://example.com/a> <https://example.com/b>", id="3", channel="C1", user="U2", thread="T1")
    )
    assert result.response == (
        "👋 That link was previously shared in this thread by <@U1>\n"
        "👋 That link is also being discussed in <#C2>"
    )


@pytest.mark.asyncio
async def test_original_provenance_is_kept(engine, kv, clock):
    await engine.process_message(_msg(channel="C1"))
    clock.advance(60)
    await engine.process_message(_msg(id="2", channel="C2"))
    assert kv.data[KEY]["channel_id"] == "C1"


@pytest.mark.asyncio
async def test_store_read_failure_is_treated_as_miss(engine, kv):
    kv.fail_get = True
    result = await engine.process_message(_msg())
    assert result.links_found == ["https://www.phoronix.com/news/X"]
    assert result.response is None


@pytest.mark.asyncio
async def test_write_failure_is_isolated_per_link(engine, kv):
    kv.fail_set_keys.add("link:example.com/a")
    result = await engine.process_message(_msg(text="<https://example.com/a> <https://example.com/b>"))
    assert len(result.links_found) == 2
    assert "link:example.com/a" not in kv.data
    assert "link:example.com/b" in kv.data


@pytest.mark.asyncio
async def test_deletion_removes_only_matching_records(engine, kv):
    await engine.process_message(_msg(text="<https://example.com/a>", id="10", channel="C1"))
    await engine.process_message(_msg(text="<https://example.com/b>", id="11", channel="C1"))

    await engine.process_deletion(DeletionEvent(
        deleted_message_id="10",
        channel_id="C1",
        previous_text="<https://example.com/a> <https://example.com/b>",
    ))
    assert "link:example.com/a" not in kv.data
    assert "link:example.com/b" in kv.data


@pytest.mark.asyncio
async def test_deletion_without_text_is_noop(engine, kv):
    await engine.process_message(_msg(id="10"))
    await engine.process_deletion(DeletionEvent(deleted_message_id="10", channel_id="C1"))
    assert KEY in kv.data


def _lookup(observed_at, channel="C1", user="U1"):
    existing = LinkProvenance(
        canonical_key="example.com/a",
        original_url="https://example.com/a",
        channel_id=channel,
        message_id="1",
        user_id=user,
        observed_at=observed_at,
    )
    return LinkLookup(raw="https://example.com/a", canonical_key="example.com/a", existing=existing)


def test_decide_unknown_timestamp_is_not_recent(clock):
    kind, reason = decide(_lookup(None), _msg(channel="C2"), clock.now, allowlist=())
    assert kind is ReshareKind.CROSS_CHANNEL
    assert reason == "other_channel"


def test_decide_future_timestamp_counts_as_recent(clock):
    kind, reason = decide(_lookup(clock.now + timedelta(seconds=30)), _msg(channel="C2"), clock.now, allowlist=())
    assert kind is None
    assert reason == "very_recent"


def test_decide_allowlist_is_prefix_match(clock):
    lookup = _lookup(clock.now - timedelta(days=1))
    kind, reason = decide(lookup, _msg(channel="C2"), clock.now, allowlist=("example.com/",))
    assert kind is None
    assert reason == "allowlisted"


@pytest.mark.asyncio
async def test_scheme_case_does_not_hide_reshare(engine, clock):
    await engine.process_message(_msg(text="<https://example.com/a>", channel="C1"))
    clock.advance(60)
    result = await engine.process_message(_msg(text="<HTTPS://example.com/a>", id="2", channel="C2"))
    assert result.response == "👋 That link is also being discussed in <#C1>"


def test_default_notices_use_chat_markup(link_store):
    assert isinstance(ResharingEngine(link_store).notices, ChatMarkupNotices)
