"""
page.py
-------
Sandbox pages and the fragments submitted to them.
A Page is addressed by a path-like id (e.g. "team/alpha"); each Fragment holds
already-sanitized html and css.
"""

import uuid
from datetime import datetime
from typing import List

from sqlalchemy import String, Text, TIMESTAMP, text, ForeignKey, Integer
from sqlalchemy.orm import relationship, Mapped, mapped_column

from db import Base


def _new_fragment_id() -> str:
    return uuid.uuid4().hex


class Page(Base):
    __tablename__ = "pages"

    id: Mapped[str] = mapped_column(String(500), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=False), server_default=text("CURRENT_TIMESTAMP"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=False),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    fragments: Mapped[List["Fragment"]] = relationship(
        "Fragment",
        back_populates="page",
        order_by="Fragment.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Page {self.id} fragments={len(self.fragments)}>"

    def to_dict(self):
        """Wire representation consumed by the sandbox view."""
        return {
            "id": self.id,
            "fragments": [fragment.to_dict() for fragment in self.fragments],
        }


class Fragment(Base):
    __tablename__ = "fragments"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_fragment_id)
    page_id: Mapped[str] = mapped_column(
        String(500),
        ForeignKey("pages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, server_default=text("0"), nullable=False)
    html: Mapped[str] = mapped_column(Text, nullable=False, default="")
    css: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=False), server_default=text("CURRENT_TIMESTAMP"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=False),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    page = relationship("Page", back_populates="fragments")

    def __repr__(self) -> str:
        return f"<Fragment {self.id} page_id={self.page_id}>"

    def to_dict(self):
        return {"id": self.id, "html": self.html, "css": self.css or ""}
