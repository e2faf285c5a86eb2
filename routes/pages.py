"""
pages.py
--------
Routes for sandbox pages.

API (`/api/p/{page_id}`):
- GET    -> current page, or 204 when the page was never created
- POST   -> raw HTML body, appended as a new fragment
- PUT    -> JSON {fragmentId, html, css?}, overwrites one fragment
- DELETE -> raw fragment id body, removes that fragment

Every verb answers with the full page after the operation (or 204).
Content-bearing verbs reject anything over the length limit with a 400
before the filter or the store is touched.

View (`/p/{page_id}`): serves the polling sandbox shell.
"""

import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

import services.page_service
from db import get_async_session
from models.page import Page
from schemas.common import ErrorResponse
from schemas.page_schemas import PageResponse, Replacement
from utils.content_validation import ContentValidator

logger = logging.getLogger(__name__)
router = APIRouter()
view_router = APIRouter()

SANDBOX_HTML = os.path.join(
    os.path.dirname(os.path.dirname(__file__)), "static", "html", "sandbox.html"
)

PAGE_RESPONSES = {
    status.HTTP_200_OK: {"model": PageResponse},
    status.HTTP_204_NO_CONTENT: {"description": "Page does not exist"},
}
CONTENT_RESPONSES = {
    **PAGE_RESPONSES,
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
}


def page_response(page: Optional[Page]) -> Response:
    """200 with the page as JSON, or an empty 204 when there is no page."""
    if page is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    payload = PageResponse.model_validate(page).model_dump()
    return JSONResponse(status_code=status.HTTP_200_OK, content=payload)


async def read_text_body(request: Request) -> str:
    raw = await request.body()
    return raw.decode("utf-8", errors="replace")


# ============================
# Page API Endpoints
# ============================

@router.get("/{page_id:path}", responses=PAGE_RESPONSES)
async def read_page(
    page_id: str,
    db: AsyncSession = Depends(get_async_session),
):
    """Return the current page."""
    page = await services.page_service.get_page(db, page_id)
    return page_response(page)


@router.post("/{page_id:path}", responses=CONTENT_RESPONSES)
async def create_fragment(
    page_id: str,
    request: Request,
    db: AsyncSession = Depends(get_async_session),
):
    """Append the raw request body as a new fragment."""
    html = await read_text_body(request)
    ContentValidator.enforce_length(html)

    if html:
        page = await services.page_service.put_fragment(db, page_id, html)
    else:
        logger.debug("Ignoring empty submission for page %s", page_id)
        page = await services.page_service.get_page(db, page_id)
    return page_response(page)


@router.put("/{page_id:path}", responses=CONTENT_RESPONSES)
async def replace_fragment(
    page_id: str,
    replacement: Replacement,
    db: AsyncSession = Depends(get_async_session),
):
    """Overwrite one fragment's content."""
    ContentValidator.enforce_length(replacement.html, replacement.css)

    page = await services.page_service.replace_fragment(
        db,
        page_id,
        replacement.fragment_id,
        replacement.html,
        css=replacement.css,
    )
    return page_response(page)


@router.delete("/{page_id:path}", responses=PAGE_RESPONSES)
async def delete_fragment(
    page_id: str,
    request: Request,
    db: AsyncSession = Depends(get_async_session),
):
    """Remove the fragment whose id is the raw request body."""
    fragment_id = (await read_text_body(request)).strip()

    if fragment_id:
        page = await services.page_service.delete_fragment(db, page_id, fragment_id)
    else:
        page = await services.page_service.get_page(db, page_id)
    return page_response(page)


# ============================
# Sandbox View
# ============================

@view_router.get("/p/{page_id:path}", include_in_schema=False)
async def sandbox_view(page_id: str) -> Response:
    """Serve the sandbox shell; it fetches and polls `/api/p/{page_id}` itself."""
    logger.debug("Serving sandbox view for page %s", page_id)
    return FileResponse(SANDBOX_HTML, headers={"Cache-Control": "no-store"})
