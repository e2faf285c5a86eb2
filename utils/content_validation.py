"""
content_validation.py
---------------------
Boundary checks applied to user-submitted sandbox content before it reaches
the HTML filter or the fragment store.

Length is measured in UTF-16 code units, the unit the browser editor counts
in, so a character outside the Basic Multilingual Plane (most emoji) costs two.
"""

import logging
from typing import Optional

from fastapi import HTTPException, status

from config import settings

logger = logging.getLogger(__name__)

CONTENT_TOO_LONG_MESSAGE = "More than 1000 characters at once not allowed!"


class ContentTooLongError(HTTPException):
    """400 for oversized submissions; rendered as ``{"message", "detail"}`` by `main`."""

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=CONTENT_TOO_LONG_MESSAGE,
        )


def content_length(content: str) -> int:
    """Length of ``content`` in UTF-16 code units."""
    return len(content.encode("utf-16-le")) // 2


class ContentValidator:
    """Length gate for fragment html/css."""

    MAX_CONTENT_LENGTH = getattr(settings, "MAX_USER_CONTENT_LENGTH", 1000)

    @classmethod
    def validate_length(cls, content: Optional[str]) -> bool:
        """True when ``content`` fits within the per-submission limit."""
        return content is None or content_length(content) <= cls.MAX_CONTENT_LENGTH

    @classmethod
    def enforce_length(cls, *contents: Optional[str]) -> None:
        """
        Raise `ContentTooLongError` when any of ``contents`` is over the limit.

        ``None`` entries (e.g. css that was not submitted) are ignored.
        """
        for content in contents:
            if not cls.validate_length(content):
                logger.warning(
                    "Rejected submission of %d characters (limit %d)",
                    content_length(content),
                    cls.MAX_CONTENT_LENGTH,
                )
                raise ContentTooLongError()
