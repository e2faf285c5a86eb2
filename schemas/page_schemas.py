"""
page_schemas.py
---------------
Pydantic models for sandbox pages, used by the page routes and services.

Content length is deliberately not constrained here: oversized content must be
answered with the fixed 400 message from `utils.content_validation`, not a 422.
"""

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# region Page Models

class FragmentResponse(BaseModel):
    id: str
    html: str
    css: str = ""

    model_config = ConfigDict(from_attributes=True)


class PageResponse(BaseModel):
    id: str
    fragments: List[FragmentResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class Replacement(BaseModel):
    """Overwrite one fragment; css is left as stored when omitted."""

    fragment_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("fragmentId", "fragment_id"),
    )
    # Older clients send the new markup under "fragment"
    html: str = Field(..., validation_alias=AliasChoices("html", "fragment"))
    css: Optional[str] = None

# endregion
