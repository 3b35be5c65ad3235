"""Control catalog data models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Control(BaseModel):
    """A single reference control from a catalog such as ISO/IEC 27001 Annex A."""

    model_config = ConfigDict(frozen=True)

    id: str
    reference: str
    description: str
    domain: str
