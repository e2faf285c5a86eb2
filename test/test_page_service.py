"""
test_page_service.py
--------------------
Tests for the fragment store in services.page_service, run against a real
in-memory SQLite database:
- Page creation on first submission
- Sanitization before persistence
- Replacement, deletion and read-your-write results
- Concurrent first submissions and page timestamps
"""

import asyncio
from datetime import datetime

import pytest
from unittest.mock import patch
from sqlalchemy import update
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from db import Base
from models.page import Page
from services.page_service import (
    delete_fragment,
    get_page,
    put_fragment,
    replace_fragment,
)


@pytest.mark.asyncio
async def test_get_missing_page_returns_none(db_session):
    assert await get_page(db_session, "never/created") is None


@pytest.mark.asyncio
async def test_put_creates_page_with_sanitized_fragment(db_session):
    page = await put_fragment(
        db_session, "team/alpha", "<p>hi</p><script>alert(1)</script>"
    )

    assert page.id == "team/alpha"
    assert len(page.fragments) == 1
    assert page.fragments[0].html == "<p>hi</p>"
    assert page.fragments[0].css == ""
    assert len(page.fragments[0].id) == 32


@pytest.mark.asyncio
async def test_put_appends_in_submission_order(db_session):
    await put_fragment(db_session, "ordered", "<p>1</p>")
    await put_fragment(db_session, "ordered", "<p>2</p>")
    page = await put_fragment(db_session, "ordered", "<p>3</p>")

    assert [f.html for f in page.fragments] == ["<p>1</p>", "<p>2</p>", "<p>3</p>"]
    assert len({f.id for f in page.fragments}) == 3


@pytest.mark.asyncio
async def test_put_sanitizes_css(db_session):
    page = await put_fragment(
        db_session, "styled", "<p>x</p>", css="p { background: url(https://evil.com/a.png) }"
    )
    assert page.fragments[0].css == "p { background: url(/a.png) }"


@pytest.mark.asyncio
async def test_put_always_runs_the_filter(db_session):
    with patch("services.page_service.sanitize", return_value="<i>filtered</i>") as mock_sanitize:
        page = await put_fragment(db_session, "filtered", "<b>raw</b>")

    mock_sanitize.assert_called_once_with("<b>raw</b>")
    assert page.fragments[0].html == "<i>filtered</i>"


@pytest.mark.asyncio
async def test_replace_overwrites_html_and_keeps_css(db_session):
    page = await put_fragment(db_session, "rep", "<p>old</p>", css="p{color:red}")
    fragment_id = page.fragments[0].id

    page = await replace_fragment(
        db_session, "rep", fragment_id, '<p>new</p><img src="http://x.io/i.png">'
    )

    assert page.fragments[0].id == fragment_id
    assert page.fragments[0].html == '<p>new</p><img src="/i.png">'
    assert page.fragments[0].css == "p{color:red}"


@pytest.mark.asyncio
async def test_replace_with_css_updates_css(db_session):
    page = await put_fragment(db_session, "rep-css", "<p>x</p>")
    fragment_id = page.fragments[0].id

    page = await replace_fragment(
        db_session, "rep-css", fragment_id, "<p>x</p>", css="<style>p{}</style>p{color:blue}"
    )
    assert page.fragments[0].css == "p{color:blue}"


@pytest.mark.asyncio
async def test_replace_with_identical_content_returns_same_state(db_session):
    page = await put_fragment(db_session, "same", "<p>same</p>")
    before = page.to_dict()

    page = await replace_fragment(db_session, "same", before["fragments"][0]["id"], "<p>same</p>")
    assert page.to_dict() == before


@pytest.mark.asyncio
async def test_replace_unknown_fragment_leaves_page_unchanged(db_session):
    page = await put_fragment(db_session, "unknown-frag", "<p>keep</p>")
    before = page.to_dict()

    page = await replace_fragment(db_session, "unknown-frag", "deadbeef", "<p>other</p>")
    assert page.to_dict() == before


@pytest.mark.asyncio
async def test_replace_on_missing_page_returns_none(db_session):
    assert await replace_fragment(db_session, "nope", "deadbeef", "<p>x</p>") is None


@pytest.mark.asyncio
async def test_replace_cannot_touch_another_pages_fragment(db_session):
    other = await put_fragment(db_session, "other", "<p>other</p>")
    await put_fragment(db_session, "mine", "<p>mine</p>")

    await replace_fragment(db_session, "mine", other.fragments[0].id, "<p>hijack</p>")

    other = await get_page(db_session, "other")
    assert other.fragments[0].html == "<p>other</p>"


@pytest.mark.asyncio
async def test_delete_last_fragment_leaves_empty_page(db_session):
    page = await put_fragment(db_session, "del", "<p>bye</p>")

    page = await delete_fragment(db_session, "del", page.fragments[0].id)

    assert page is not None
    assert page.to_dict() == {"id": "del", "fragments": []}


@pytest.mark.asyncio
async def test_delete_keeps_remaining_fragments_in_order(db_session):
    await put_fragment(db_session, "del-many", "<p>1</p>")
    page = await put_fragment(db_session, "del-many", "<p>2</p>")
    await put_fragment(db_session, "del-many", "<p>3</p>")

    page = await delete_fragment(db_session, "del-many", page.fragments[1].id)
    assert [f.html for f in page.fragments] == ["<p>1</p>", "<p>3</p>"]


@pytest.mark.asyncio
async def test_delete_on_missing_page_returns_none(db_session):
    assert await delete_fragment(db_session, "nope", "deadbeef") is None


@pytest.mark.asyncio
async def test_concurrent_first_submissions_all_append(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'concurrent.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    sessions = async_sessionmaker(bind=engine, expire_on_commit=False)

    async def submit(n):
        async with sessions() as session:
            return await put_fragment(session, "busy", f"<p>{n}</p>")

    try:
        await asyncio.gather(*(submit(n) for n in range(5)))
        async with sessions() as session:
            page = await get_page(session, "busy")
    finally:
        await engine.dispose()

    assert sorted(f.html for f in page.fragments) == [f"<p>{n}</p>" for n in range(5)]
    assert [f.position for f in page.fragments] == list(range(5))


async def _mark_stale(db_session, page_id, when):
    await db_session.execute(
        update(Page).where(Page.id == page_id).values(updated_at=when)
    )
    await db_session.commit()


@pytest.mark.asyncio
async def test_mutations_bump_page_updated_at(db_session):
    stale = datetime(2000, 1, 1)
    page = await put_fragment(db_session, "touched", "<p>a</p>")
    fragment_id = page.fragments[0].id

    await _mark_stale(db_session, "touched", stale)
    page = await put_fragment(db_session, "touched", "<p>b</p>")
    assert page.updated_at > stale

    await _mark_stale(db_session, "touched", stale)
    page = await replace_fragment(db_session, "touched", fragment_id, "<p>c</p>")
    assert page.updated_at > stale

    await _mark_stale(db_session, "touched", stale)
    page = await delete_fragment(db_session, "touched", fragment_id)
    assert page.updated_at > stale


@pytest.mark.asyncio
async def test_no_op_replace_keeps_page_updated_at(db_session):
    stale = datetime(2000, 1, 1)
    await put_fragment(db_session, "untouched", "<p>a</p>")
    await _mark_stale(db_session, "untouched", stale)

    page = await replace_fragment(db_session, "untouched", "deadbeef", "<p>b</p>")
    assert page.updated_at == stale
