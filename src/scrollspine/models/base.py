"""Base model shared by every ScrollSpine pydantic model.

Example:
    >>> from scrollspine.models.base import ScrollSpineModel
    >>> class Point(ScrollSpineModel):
    ...     name: str
    >>> Point(name="  origin  ").name
    'origin'
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class ScrollSpineModel(BaseModel):
    """Base model with standard configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )
