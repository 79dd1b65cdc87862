"""Shared column helpers for SQLModel entities."""

from sqlalchemy import JSON, Column
from sqlalchemy.dialects.postgresql import JSONB


def json_column(nullable: bool = False) -> Column:
    """JSON column stored as JSONB on PostgreSQL and plain JSON elsewhere."""
    return Column(JSON().with_variant(JSONB(), "postgresql"), nullable=nullable)
