"""Tests for core/objectives.py."""

from __future__ import annotations

from datetime import timedelta

import pytest

from ismsready.core.errors import NotFoundError, ValidationError
from ismsready.core.objectives import ObjectiveService, ordered
from ismsready.models.scope import Objective, ObjectivePriority

USER = "user-1"


class TestOrdered:
    def test_position_then_newest_first(self):
        first = Objective(project_id="p", statement="Keep risk register current", order=1, owner_id=USER)
        older = Objective(project_id="p", statement="Train all staff yearly", order=2, owner_id=USER)
        newer = Objective(
            project_id="p", statement="Encrypt customer data", order=2, owner_id=USER,
            created_at=older.created_at + timedelta(seconds=1),
        )
        assert [o.id for o in ordered([older, first, newer])] == [first.id, newer.id, older.id]


class TestObjectiveService:
    @pytest.mark.asyncio
    async def test_add_appends_to_end(self, store, project):
        service = ObjectiveService(store)
        one = await service.add_objective(project.id, "Protect customer data", "High", user_id=USER)
        two = await service.add_objective(project.id, "Train all staff yearly", user_id=USER)
        assert (one.order, two.order) == (1, 2)
        assert one.priority == ObjectivePriority.HIGH
        assert two.priority == ObjectivePriority.MEDIUM

    @pytest.mark.asyncio
    async def test_statement_too_short(self, store, project):
        with pytest.raises(ValidationError) as exc:
            await ObjectiveService(store).add_objective(project.id, " abc ", user_id=USER)
        assert exc.value.field == "statement"

    @pytest.mark.asyncio
    async def test_priority_validated(self, store, project):
        with pytest.raises(ValidationError) as exc:
            await ObjectiveService(store).add_objective(project.id, "Protect customer data", "Urgent", user_id=USER)
        assert exc.value.field == "priority"

    @pytest.mark.asyncio
    async def test_unknown_project(self, store):
        with pytest.raises(NotFoundError):
            await ObjectiveService(store).add_objective("missing", "Protect customer data", user_id=USER)

    @pytest.mark.asyncio
    async def test_update(self, store, project):
        service = ObjectiveService(store)
        objective = await service.add_objective(project.id, "Protect customer data", user_id=USER)
        updated = await service.update_objective(objective.id, user_id=USER, priority="low")
        assert updated.priority == ObjectivePriority.LOW
        assert updated.statement == "Protect customer data"

    @pytest.mark.asyncio
    async def test_update_needs_a_change(self, store, project):
        service = ObjectiveService(store)
        objective = await service.add_objective(project.id, "Protect customer data", user_id=USER)
        with pytest.raises(ValidationError):
            await service.update_objective(objective.id, user_id=USER)

    @pytest.mark.asyncio
    async def test_other_users_objective_hidden(self, store, project):
        service = ObjectiveService(store)
        objective = await service.add_objective(project.id, "Protect customer data", user_id=USER)
        with pytest.raises(NotFoundError):
            await service.remove_objective(objective.id, user_id="user-2")
        with pytest.raises(NotFoundError):
            await service.update_objective(objective.id, user_id="user-2", statement="Something else")

    @pytest.mark.asyncio
    async def test_remove(self, store, project):
        service = ObjectiveService(store)
        objective = await service.add_objective(project.id, "Protect customer data", user_id=USER)
        await service.remove_objective(objective.id, user_id=USER)
        assert await service.list_objectives(project.id) == []

    @pytest.mark.asyncio
    async def test_reorder(self, store, project):
        service = ObjectiveService(store)
        a = await service.add_objective(project.id, "Protect customer data", user_id=USER)
        b = await service.add_objective(project.id, "Train all staff yearly", user_id=USER)
        c = await service.add_objective(project.id, "Test backups quarterly", user_id=USER)

        result = await service.reorder(project.id, [c.id, a.id, b.id])
        assert [(o.id, o.order) for o in result] == [(c.id, 1), (a.id, 2), (b.id, 3)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("pick", [
        lambda ids: ids[:2],
        lambda ids: ids + [ids[0]],
        lambda ids: ids[:2] + ["missing"],
    ])
    async def test_reorder_must_name_every_objective_once(self, store, project, pick):
        service = ObjectiveService(store)
        ids = [
            (await service.add_objective(project.id, statement, user_id=USER)).id
            for statement in ("Protect customer data", "Train all staff yearly", "Test backups quarterly")
        ]
        with pytest.raises(ValidationError):
            await service.reorder(project.id, pick(ids))
        assert [o.order for o in await service.list_objectives(project.id)] == [1, 2, 3]
