"""Dataclass models representing DB rows.

These are plain Python objects, not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from newsvault.classify import Category, category_to_text


@dataclass
class ArchivedEntity:
    title: str
    url: str
    text_length: int
    image_count: int
    content: str
    category: Category = Category.NONE
    publish_time: Optional[datetime] = None
    publisher: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[int] = None

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    def publish_time_text(self) -> Optional[str]:
        """UTC ISO-8601 text, so string order in SQLite is chronological."""
        if self.publish_time is None:
            return None
        value = self.publish_time
        if value.tzinfo is None:
            value = value.astimezone()
        return value.astimezone(timezone.utc).isoformat()

    def category_text(self) -> str:
        return category_to_text(self.category)
