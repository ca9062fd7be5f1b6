"""
Shared helpers for the forum managers: input checks and pagination.
"""

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from lexforum.core.config import settings
from lexforum.core.exceptions import ValidationError

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One offset-based page plus the unpaginated total."""

    items: list[T] = field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total

    def pagination(self) -> dict[str, int | bool]:
        return {
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
            "hasMore": self.has_more,
        }


def require_text(value: str | None, field_name: str, max_length: int | None = None) -> str:
    """Strip and validate a required text field."""
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field_name} is required")
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return text


def require_display_order(value: int) -> int:
    if value < 0:
        raise ValidationError("displayOrder must be non-negative")
    return value


def page_bounds(limit: int | None, offset: int | None) -> tuple[int, int]:
    """Apply defaults and validate limit/offset."""
    limit = settings.forum_page_size if limit is None else limit
    offset = 0 if offset is None else offset

    if limit < 1 or limit > settings.forum_max_page_size:
        raise ValidationError(
            f"limit must be between 1 and {settings.forum_max_page_size}"
        )
    if offset < 0:
        raise ValidationError("offset must be non-negative")
    return limit, offset


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
