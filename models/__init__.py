"""Consolidated imports for SQLAlchemy models."""

from .page import Page, Fragment
