"""
page_service.py
---------------
Fragment store for sandbox pages.

Every mutation sanitizes incoming markup with `utils.html_filter.sanitize`,
commits, and then re-reads the page so callers always get the full current
state (read-your-write). Callers are responsible for the length gate
(`utils.content_validation`).
"""

import logging
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.page import Fragment, Page
from utils.html_filter import sanitize

logger = logging.getLogger(__name__)


async def get_page(db: AsyncSession, page_id: str) -> Optional[Page]:
    """Return the page with its fragments in store order, or None if it was never created."""
    result = await db.execute(
        select(Page)
        .where(Page.id == page_id)
        .options(selectinload(Page.fragments))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# INSERT .. ON CONFLICT constructs for the dialects `config` can produce.
_UPSERT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


async def _ensure_page(db: AsyncSession, page_id: str) -> None:
    """
    Create ``page_id`` if needed and bump its ``updated_at``, in one statement.

    Concurrent first submissions to the same page all land on the conflict
    branch instead of failing on the primary key.
    """
    dialect = db.get_bind().dialect.name
    try:
        insert = _UPSERT_INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"No page upsert for dialect {dialect!r}") from None

    await db.execute(
        insert(Page)
        .values(id=page_id)
        .on_conflict_do_update(
            index_elements=[Page.id], set_={"updated_at": func.now()}
        )
    )


async def _touch_page(db: AsyncSession, page_id: str) -> None:
    await db.execute(
        update(Page)
        .where(Page.id == page_id)
        .values(updated_at=func.now())
        .execution_options(synchronize_session=False)
    )


def _next_position(page_id: str):
    # Evaluated inside the INSERT so the position is read under the write lock.
    return (
        select(func.coalesce(func.max(Fragment.position) + 1, 0))
        .where(Fragment.page_id == page_id)
        .scalar_subquery()
    )


async def put_fragment(
    db: AsyncSession,
    page_id: str,
    html: str,
    css: str = "",
) -> Page:
    """
    Append a new fragment to ``page_id``, creating the page on first use.

    Returns:
        The page after the insert.
    """
    await _ensure_page(db, page_id)

    fragment = Fragment(
        page_id=page_id,
        position=_next_position(page_id),
        html=sanitize(html),
        css=sanitize(css) if css else "",
    )
    db.add(fragment)
    await db.commit()
    logger.info(
        "Added fragment %s to page %s",
        fragment.id,
        page_id,
        extra={"page_id": page_id, "fragment_id": fragment.id},
    )

    return await get_page(db, page_id)


async def replace_fragment(
    db: AsyncSession,
    page_id: str,
    fragment_id: str,
    html: str,
    css: Optional[str] = None,
) -> Optional[Page]:
    """
    Overwrite the html (and css, when given) of one fragment in a single statement.

    Unknown fragments leave the page unchanged. Returns None when the page
    does not exist.
    """
    values = {"html": sanitize(html)}
    if css is not None:
        values["css"] = sanitize(css)

    result = await db.execute(
        update(Fragment)
        .where(Fragment.id == fragment_id, Fragment.page_id == page_id)
        .values(**values)
    )

    context = {"page_id": page_id, "fragment_id": fragment_id}
    if result.rowcount:
        await _touch_page(db, page_id)
        await db.commit()
        logger.info("Replaced fragment %s on page %s", fragment_id, page_id, extra=context)
    else:
        await db.commit()
        logger.info("No fragment %s on page %s to replace", fragment_id, page_id, extra=context)

    return await get_page(db, page_id)


async def delete_fragment(
    db: AsyncSession,
    page_id: str,
    fragment_id: str,
) -> Optional[Page]:
    """
    Remove one fragment. The page itself is kept, even when it becomes empty.

    Returns None when the page does not exist.
    """
    result = await db.execute(
        delete(Fragment).where(
            Fragment.id == fragment_id, Fragment.page_id == page_id
        )
    )
    if result.rowcount:
        await _touch_page(db, page_id)
        logger.info(
            "Deleted fragment %s from page %s",
            fragment_id,
            page_id,
            extra={"page_id": page_id, "fragment_id": fragment_id},
        )
    await db.commit()

    return await get_page(db, page_id)
