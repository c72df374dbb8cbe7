"""SQLAlchemy Enum column helper that persists member values."""

from __future__ import annotations

import enum

import sqlalchemy as sa


def enum_column_type(enum_cls: type[enum.Enum], name: str) -> sa.Enum:
    """Map *enum_cls* to a named ENUM storing ``.value`` (e.g. ``off-duty``)."""
    return sa.Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
