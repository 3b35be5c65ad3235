"""Input checks shared by the matrix, ledger and scope services."""

from __future__ import annotations

from enum import Enum
from typing import Optional, TypeVar

from .errors import ValidationError

E = TypeVar("E", bound=Enum)


def require_text(value: Optional[str], field: str, message: str = "") -> str:
    """Return the stripped value, or raise ValidationError if it is blank."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message or f"{field} is required", field=field)
    return value.strip()


def coerce_enum(enum_cls: type[E], value: object, field: str) -> E:
    """Accept an enum member, its value or its name; spacing and case are ignored.

    "In Review", "in_review" and "InReview" all resolve to GapStatus.IN_REVIEW.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        wanted = value.replace(" ", "").replace("_", "").replace("-", "").lower()
        for member in enum_cls:
            candidates = (
                str(member.value).replace(" ", "").replace("-", "").lower(),
                member.name.replace("_", "").lower(),
            )
            if wanted in candidates:
                return member
    allowed = ", ".join(str(m.value) for m in enum_cls)
    raise ValidationError(f"Invalid {field}: {value!r} (expected one of: {allowed})", field=field)
