"""Tests for core/readiness.py."""

from __future__ import annotations

import itertools
from unittest.mock import AsyncMock, patch

import pytest

from ismsready.core.errors import AggregationError, BackendUnavailable, NotFoundError
from ismsready.core.ledger import EvidenceGapLedger
from ismsready.core.matrix import ApplicabilityMatrix
from ismsready.core.questionnaire import record_answer
from ismsready.core.readiness import (
    ReadinessAggregator,
    compute_completion,
    compute_module_scores,
    derive_status,
    explain,
)
from ismsready.core.scope import ScopeService
from ismsready.models.catalog import Control
from ismsready.models.questionnaire import Question
from ismsready.models.readiness import ModuleScores, ProjectStatus, ReadinessView
from ismsready.store.memory import MemoryStore

USER = "user-1"


class TestCompletion:
    def test_all_zero(self):
        assert compute_completion(ModuleScores()) == 0

    def test_all_one(self):
        scores = ModuleScores(boundary=1, stakeholder=1, soa=1, questionnaire=1, remediation=1)
        assert compute_completion(scores) == 100

    def test_equal_weights(self):
        assert compute_completion(ModuleScores(boundary=1, stakeholder=1)) == 40

    def test_halves_round_up(self):
        # mean 0.005 -> 0.5%, which round() would take to 0
        assert compute_completion(ModuleScores(soa=0.025)) == 1
        # mean 0.205 -> 20.5%
        assert compute_completion(ModuleScores(boundary=1, soa=0.025)) == 21

    def test_monotonic_in_each_module(self):
        steps = [0.0, 0.1, 0.25, 0.5, 0.75, 1.0]
        modules = ["boundary", "stakeholder", "soa", "questionnaire", "remediation"]
        for base in itertools.product([0.0, 0.5, 1.0], repeat=5):
            baseline = dict(zip(modules, base))
            for module in modules:
                previous = -1
                for value in steps:
                    scores = ModuleScores(**{**baseline, module: value})
                    completion = compute_completion(scores)
                    assert completion >= previous
                    previous = completion


class TestModuleScores:
    def test_empty_inputs(self):
        scores = compute_module_scores(0, 0, 0, 0, 0.0, 0, 0)
        assert scores == ModuleScores()

    def test_soa_fraction(self):
        scores = compute_module_scores(2, 1, 3, 3, 0.0, 0, 0)
        assert scores.soa == pytest.approx(0.5)

    def test_questionnaire_clamped(self):
        assert compute_module_scores(1, 1, 0, 1, 1.7, 0, 0).questionnaire == 1.0
        assert compute_module_scores(1, 1, 0, 1, -0.2, 0, 0).questionnaire == 0.0

    def test_remediation_without_gaps(self):
        assert compute_module_scores(1, 1, 1, 1, 0.0, 0, 0).remediation == 1.0
        assert compute_module_scores(1, 1, 0, 1, 0.0, 0, 0).remediation == 0.0

    def test_excluded_boundaries_only_shrink_soa_denominator(self):
        scores = compute_module_scores(2, 0, 3, 3, 0.0, 0, 0, in_scope_boundaries=1)
        assert scores.boundary == 1.0
        assert scores.soa == 1.0

    def test_remediation_fraction(self):
        assert compute_module_scores(1, 1, 1, 1, 0.0, 1, 4).remediation == pytest.approx(0.25)


class TestDeriveStatus:
    @pytest.mark.parametrize("completion,on_hold,expected", [
        (0, False, ProjectStatus.NOT_STARTED),
        (0, True, ProjectStatus.NOT_STARTED),
        (100, True, ProjectStatus.COMPLETED),
        (100, False, ProjectStatus.COMPLETED),
        (55, True, ProjectStatus.ON_HOLD),
        (55, False, ProjectStatus.IN_PROGRESS),
        (1, False, ProjectStatus.IN_PROGRESS),
        (99, False, ProjectStatus.IN_PROGRESS),
    ])
    def test_priority(self, completion, on_hold, expected):
        assert derive_status(completion, on_hold) == expected


class TestReadinessAggregator:
    @pytest.mark.asyncio
    async def test_empty_project(self, store, project):
        view = await ReadinessAggregator(store).readiness(project.id)
        assert view.completion_percentage == 0
        assert view.status == ProjectStatus.NOT_STARTED
        assert view.module_scores == ModuleScores()

    @pytest.mark.asyncio
    async def test_fully_ready_project(self):
        controls = [
            Control(id=ref, reference=ref, description=ref, domain="Organizational controls")
            for ref in ("A.5.1", "A.5.2", "A.5.3")
        ]
        store = MemoryStore(controls=controls, questions=[Question(id="q1", text="Scope documented?")])
        scope = ScopeService(store)
        matrix = ApplicabilityMatrix(store)
        ledger = EvidenceGapLedger(store)

        project = await scope.create_project("Acme", owner_id=USER)
        await scope.add_stakeholder(project.id, "CISO", user_id=USER)
        finance = await scope.add_boundary(project.id, "Finance", "Department", user_id=USER)
        api = await scope.add_boundary(project.id, "API", "System", user_id=USER)
        for boundary in (finance, api):
            for control in controls:
                cell = await matrix.set_applicability(boundary.id, control.id, True, "in scope", user_id=USER)
        gap = await ledger.open_gap(cell.id, "Missing review", "Low", identified_by=USER)
        for target in ("InReview", "Confirmed", "Remediated", "Closed"):
            await ledger.transition_gap(gap.id, target)
        await record_answer(store, project.id, "q1", "Compliant", user_id=USER)

        view = await ReadinessAggregator(store).readiness(project.id)
        assert view.completion_percentage == 100
        assert view.status == ProjectStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_partial_progress(self, store, project, boundaries):
        matrix = ApplicabilityMatrix(store)
        ledger = EvidenceGapLedger(store)
        cell = await matrix.set_applicability(boundaries[0].id, "A.5.1", True, "needed", user_id=USER)
        await ledger.open_gap(cell.id, "finding", "High", identified_by=USER)

        view = await ReadinessAggregator(store).readiness(project.id)
        scores = view.module_scores
        assert scores.boundary == 1.0
        assert scores.stakeholder == 0.0
        assert scores.soa == pytest.approx(1 / 8)
        assert scores.remediation == 0.0
        # (1 + 0 + 0.125 + 0 + 0) / 5 = 22.5%
        assert view.completion_percentage == 23
        assert view.status == ProjectStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_on_hold(self, store, project, boundaries):
        await store.set_project_hold(project.id, True)
        view = await ReadinessAggregator(store).readiness(project.id)
        assert view.completion_percentage == 20
        assert view.status == ProjectStatus.ON_HOLD

    @pytest.mark.asyncio
    async def test_out_of_scope_boundary_ignored(self, store, project, boundaries):
        matrix = ApplicabilityMatrix(store)
        await matrix.set_applicability(boundaries[1].id, "A.5.1", True, "needed", user_id=USER)
        await store.update_boundary(boundaries[1].id, {"included": False})
        view = await ReadinessAggregator(store).readiness(project.id)
        assert view.module_scores.soa == 0.0

    @pytest.mark.asyncio
    async def test_excluded_boundaries_still_count_as_scoped(self, store, project, boundaries):
        for boundary in boundaries:
            await store.update_boundary(boundary.id, {"included": False})
        view = await ReadinessAggregator(store).readiness(project.id)
        assert view.module_scores.boundary == 1.0
        assert view.module_scores.soa == 0.0

    @pytest.mark.asyncio
    async def test_gaps_on_out_of_scope_cells_ignored(self, store, project, boundaries):
        matrix = ApplicabilityMatrix(store)
        ledger = EvidenceGapLedger(store)
        await matrix.set_applicability(boundaries[0].id, "A.5.1", True, "needed", user_id=USER)
        outsourced = await matrix.set_applicability(boundaries[1].id, "A.5.1", True, "needed", user_id=USER)
        await ledger.open_gap(outsourced.id, "No supplier review", "High", identified_by=USER)
        await store.update_boundary(boundaries[1].id, {"included": False})

        view = await ReadinessAggregator(store).readiness(project.id)
        assert view.module_scores.remediation == 1.0

    @pytest.mark.asyncio
    async def test_gaps_on_retired_controls_ignored(self, store, project, boundaries):
        cell = await ApplicabilityMatrix(store).set_applicability(
            boundaries[0].id, "A.5.1", True, "needed", user_id=USER
        )
        await EvidenceGapLedger(store).open_gap(cell.id, "finding", "Low", identified_by=USER)
        del store.controls["A.5.1"]

        view = await ReadinessAggregator(store).readiness(project.id)
        assert view.module_scores.soa == 0.0
        assert view.module_scores.remediation == 0.0

    @pytest.mark.asyncio
    async def test_recomputed_after_mutation(self, store, project, boundaries):
        aggregator = ReadinessAggregator(store)
        before = await aggregator.readiness(project.id)
        await ScopeService(store).add_stakeholder(project.id, "DPO", user_id=USER)
        after = await aggregator.readiness(project.id)
        assert after.completion_percentage > before.completion_percentage

    @pytest.mark.asyncio
    async def test_unknown_project(self, store):
        with pytest.raises(NotFoundError):
            await ReadinessAggregator(store).readiness("missing")

    @pytest.mark.asyncio
    async def test_store_failure_wrapped(self, store, project, boundaries):
        failure = BackendUnavailable("timed out", backend="memory")
        with patch.object(store, "list_cells", AsyncMock(side_effect=failure)):
            with pytest.raises(AggregationError) as exc:
                await ReadinessAggregator(store).readiness(project.id)
        assert exc.value.project_id == project.id
        assert exc.value.__cause__ is failure

    @pytest.mark.asyncio
    async def test_questionnaire_not_a_number(self, store, project):
        with patch.object(store, "questionnaire_completion", AsyncMock(return_value=float("nan"))):
            with pytest.raises(AggregationError):
                await ReadinessAggregator(store).readiness(project.id)

    @pytest.mark.asyncio
    async def test_project_stats(self, store, project, boundaries):
        scope = ScopeService(store)
        await scope.create_project("Untouched", owner_id="user-1")
        held = await scope.create_project("Paused", owner_id="user-1")
        await scope.add_boundary(held.id, "HQ", "Location", user_id="user-1")
        await scope.set_on_hold(held.id)
        await scope.create_project("Someone else's", owner_id="user-2")

        stats = await ReadinessAggregator(store).project_stats("user-1")
        assert stats.total == 3
        assert stats.not_started == 1
        assert stats.in_progress == 1
        assert stats.on_hold == 1
        assert stats.completed == 0


class TestExplain:
    def test_hints_only_for_incomplete_modules(self):
        scores = ModuleScores(boundary=1, stakeholder=1, soa=0.5, questionnaire=1, remediation=1)
        rows = explain(ReadinessView(
            project_id="p", status=ProjectStatus.IN_PROGRESS, completion_percentage=90, module_scores=scores,
        ))
        hinted = [module for module, _, hint in rows if hint]
        assert hinted == ["soa"]
        assert [module for module, _, _ in rows] == [
            "boundary", "stakeholder", "soa", "questionnaire", "remediation",
        ]
