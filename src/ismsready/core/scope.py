"""Scope services: projects, boundaries and stakeholders."""

from __future__ import annotations

import logging
import re
from typing import Optional

from ..models.scope import Boundary, BoundaryType, Project, Stakeholder
from ..store.base import ComplianceStore
from .checks import coerce_enum, require_text
from .errors import InvalidStateError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ScopeService:
    def __init__(self, store: ComplianceStore):
        self.store = store

    async def _require_project(self, project_id: str) -> Project:
        project = await self.store.get_project(project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        return project

    async def create_project(
        self,
        name: str,
        *,
        owner_id: str,
        description: Optional[str] = None,
    ) -> Project:
        project = await self.store.create_project(Project(
            name=require_text(name, "name", "Project name is required"),
            description=description,
            owner_id=owner_id,
        ))
        logger.info("Project %s created: %s", project.id, project.name)
        return project

    async def set_on_hold(self, project_id: str, on_hold: bool = True) -> Project:
        await self._require_project(project_id)
        project = await self.store.set_project_hold(project_id, on_hold)
        logger.info("Project %s %s", project_id, "put on hold" if on_hold else "resumed")
        return project

    async def add_boundary(
        self,
        project_id: str,
        name: str,
        boundary_type: BoundaryType | str = BoundaryType.OTHER,
        *,
        user_id: str,
        notes: Optional[str] = None,
        included: bool = True,
    ) -> Boundary:
        boundary_name = require_text(name, "name", "Boundary name is required")
        kind = coerce_enum(BoundaryType, boundary_type, "type")
        await self._require_project(project_id)
        boundary = await self.store.create_boundary(Boundary(
            project_id=project_id,
            name=boundary_name,
            type=kind,
            included=included,
            notes=notes,
            owner_id=user_id,
        ))
        logger.info("Boundary %s added to project %s (%s)", boundary.id, project_id, kind.value)
        return boundary

    async def set_boundary_included(
        self, boundary_id: str, included: bool, notes: Optional[str] = None
    ) -> Boundary:
        """Take a boundary in or out of scope; its cells are kept either way."""
        if await self.store.get_boundary(boundary_id) is None:
            raise NotFoundError("boundary", boundary_id)
        changes: dict = {"included": included}
        if notes is not None:
            changes["notes"] = notes
        boundary = await self.store.update_boundary(boundary_id, changes)
        logger.info("Boundary %s %s scope", boundary_id, "back in" if included else "out of")
        return boundary

    async def delete_boundary(self, boundary_id: str, *, user_id: str) -> None:
        """Delete a boundary on behalf of its owner.

        Applicability decisions are never removed, so a boundary that has any
        is refused; exclude it from scope instead.
        """
        boundary = await self.store.get_boundary(boundary_id)
        if boundary is None or boundary.owner_id != user_id:
            raise NotFoundError("boundary", boundary_id)
        cells = await self.store.list_cells_for_boundary(boundary_id)
        if cells:
            raise InvalidStateError(
                boundary_id,
                f"{len(cells)} applicability decision(s)",
                "delete boundary",
                message=(
                    f"Boundary {boundary.name} has {len(cells)} applicability decision(s); "
                    "exclude it from scope instead"
                ),
            )
        await self.store.delete_boundary(boundary_id)
        logger.info("Boundary %s deleted from project %s", boundary_id, boundary.project_id)

    async def list_boundaries(self, project_id: str) -> list[Boundary]:
        await self._require_project(project_id)
        boundaries = await self.store.list_boundaries(project_id)
        return sorted(boundaries, key=lambda b: b.created_at)

    async def add_stakeholder(
        self,
        project_id: str,
        name: str,
        *,
        user_id: str,
        role: Optional[str] = None,
        email: Optional[str] = None,
        responsibilities: Optional[str] = None,
    ) -> Stakeholder:
        stakeholder_name = require_text(name, "name", "Stakeholder name is required")
        if email is not None:
            email = email.strip() or None
        if email and not EMAIL_PATTERN.match(email):
            raise ValidationError(f"Invalid email address: {email}", field="email")
        await self._require_project(project_id)
        stakeholder = await self.store.create_stakeholder(Stakeholder(
            project_id=project_id,
            name=stakeholder_name,
            role=role,
            email=email,
            responsibilities=responsibilities,
            owner_id=user_id,
        ))
        logger.info("Stakeholder %s added to project %s", stakeholder.id, project_id)
        return stakeholder
