"""
Services package initialization.
This module exposes the core functionality from each service module.
"""

from services.page_service import (
    get_page,
    put_fragment,
    replace_fragment,
    delete_fragment,
)

__all__ = [
    # Fragment store
    "get_page",
    "put_fragment",
    "replace_fragment",
    "delete_fragment",
]
