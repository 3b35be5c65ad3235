"""ISMS objectives: prioritised statements kept in a user-defined order."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..models.scope import Objective, ObjectivePriority
from ..store.base import ComplianceStore
from .checks import coerce_enum, require_text
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MIN_STATEMENT_LENGTH = 5


def _statement(value: Optional[str]) -> str:
    statement = require_text(value, "statement", "Objective statement is required")
    if len(statement) < MIN_STATEMENT_LENGTH:
        raise ValidationError(
            f"Objective statement must be at least {MIN_STATEMENT_LENGTH} characters",
            field="statement",
        )
    return statement


def ordered(objectives: list[Objective]) -> list[Objective]:
    """Position ascending; among equal positions the newest comes first."""
    by_newest = sorted(objectives, key=lambda o: o.created_at, reverse=True)
    return sorted(by_newest, key=lambda o: o.order)


class ObjectiveService:
    def __init__(self, store: ComplianceStore):
        self.store = store

    async def _require(self, objective_id: str, user_id: str) -> Objective:
        objective = await self.store.get_objective(objective_id)
        if objective is None or objective.owner_id != user_id:
            raise NotFoundError("objective", objective_id)
        return objective

    async def list_objectives(self, project_id: str) -> list[Objective]:
        if await self.store.get_project(project_id) is None:
            raise NotFoundError("project", project_id)
        return ordered(await self.store.list_objectives(project_id))

    async def add_objective(
        self,
        project_id: str,
        statement: str,
        priority: ObjectivePriority | str = ObjectivePriority.MEDIUM,
        *,
        user_id: str,
        order: Optional[int] = None,
    ) -> Objective:
        """Add an objective; without an explicit order it goes to the end of the list."""
        text = _statement(statement)
        level = coerce_enum(ObjectivePriority, priority, "priority")
        existing = await self.list_objectives(project_id)
        if order is None:
            order = max((o.order for o in existing), default=0) + 1
        objective = await self.store.create_objective(Objective(
            project_id=project_id,
            statement=text,
            priority=level,
            order=order,
            owner_id=user_id,
        ))
        logger.info("Objective %s added to project %s at position %d", objective.id, project_id, order)
        return objective

    async def update_objective(
        self,
        objective_id: str,
        *,
        user_id: str,
        statement: Optional[str] = None,
        priority: ObjectivePriority | str | None = None,
    ) -> Objective:
        await self._require(objective_id, user_id)
        changes: dict = {}
        if statement is not None:
            changes["statement"] = _statement(statement)
        if priority is not None:
            changes["priority"] = coerce_enum(ObjectivePriority, priority, "priority")
        if not changes:
            raise ValidationError("Nothing to update: give a statement or a priority")
        return await self.store.update_objective(objective_id, changes)

    async def remove_objective(self, objective_id: str, *, user_id: str) -> None:
        objective = await self._require(objective_id, user_id)
        await self.store.delete_objective(objective_id)
        logger.info("Objective %s removed from project %s", objective_id, objective.project_id)

    async def reorder(self, project_id: str, objective_ids: list[str]) -> list[Objective]:
        """Renumber the project's objectives 1..n in the given order.

        The ids must name every objective of the project exactly once.
        """
        current = await self.list_objectives(project_id)
        known = {o.id for o in current}
        if len(objective_ids) != len(set(objective_ids)) or set(objective_ids) != known:
            raise ValidationError(
                "Reorder must list every objective of the project exactly once",
                field="objective_ids",
            )
        positions = {objective_id: index for index, objective_id in enumerate(objective_ids, start=1)}
        await asyncio.gather(*(
            self.store.update_objective(o.id, {"order": positions[o.id]})
            for o in current
            if o.order != positions[o.id]
        ))
        logger.info("Objectives of project %s reordered", project_id)
        return await self.list_objectives(project_id)
