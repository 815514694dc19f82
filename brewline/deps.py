"""FastAPI dependencies for the Brewline API.

Provides:
- Database session dependency
- Staff actor resolution for status changes (X-Staff-Actor header)
"""

from typing import Optional

from fastapi import Header

from .db import get_db

__all__ = ["get_db", "get_staff_actor"]


def get_staff_actor(
    x_staff_actor: Optional[str] = Header(None, alias="X-Staff-Actor"),
) -> Optional[str]:
    actor = (x_staff_actor or "").strip()
    return actor or None
