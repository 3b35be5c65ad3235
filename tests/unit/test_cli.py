"""Tests for the isms CLI."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from ismsready.cli.isms import exit_code_for, isms_cli
from ismsready.core.config import load_workspace_config
from ismsready.core.errors import (
    AggregationError,
    BackendUnavailable,
    ConcurrentModificationError,
    InvalidStateError,
    InvalidTransitionError,
    IsmsError,
    NotFoundError,
    ValidationError,
)

ENV = {"ISMS_USER_ID": "auditor-1"}


def invoke(workspace: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(isms_cli, ["-w", str(workspace), *args], env=ENV)


@pytest.fixture
def active_workspace(workspace: Path) -> Path:
    """Workspace with a project and one boundary."""
    assert invoke(workspace, "project", "create", "Acme ISMS").exit_code == 0
    assert invoke(workspace, "boundary", "add", "Finance", "--type", "Department").exit_code == 0
    return workspace


def boundary_id(workspace: Path) -> str:
    result = invoke(workspace, "boundary", "list", "--json")
    return json.loads(result.output)[0]["id"]


def cell_id(workspace: Path, control: str) -> str:
    result = invoke(workspace, "soa", "matrix", "--json")
    rows = json.loads(result.output)
    return next(r["cell_id"] for r in rows if r["control_id"] == control)


class TestExitCodes:
    @pytest.mark.parametrize("error,code", [
        (ValidationError("bad"), 2),
        (NotFoundError("gap", "g1"), 3),
        (InvalidStateError("c1", "not applicable", "assess"), 4),
        (InvalidTransitionError("g1", "Closed", "Identified"), 4),
        (ConcurrentModificationError("g1", "Identified", "InReview"), 5),
        (BackendUnavailable("down"), 6),
        (AggregationError("p1"), 6),
        (IsmsError("other"), 1),
    ])
    def test_mapping(self, error, code):
        assert exit_code_for(error) == code


class TestWorkspace:
    def test_init(self, tmp_path: Path):
        result = invoke(tmp_path, "init", "--name", "Acme")
        assert result.exit_code == 0
        assert (tmp_path / ".isms" / "config.yaml").exists()

    def test_project_create_sets_active_project(self, workspace: Path):
        result = invoke(workspace, "project", "create", "Acme ISMS")
        assert result.exit_code == 0
        project_id = load_workspace_config(workspace)["project"]["id"]
        assert project_id in result.output

    def test_no_active_project(self, workspace: Path):
        result = invoke(workspace, "readiness")
        assert result.exit_code == 2
        assert "No active project" in result.output

    def test_corrupt_state_file(self, active_workspace: Path):
        (active_workspace / ".isms" / "state.yaml").write_text("projects: [unclosed\n", encoding="utf-8")
        result = invoke(active_workspace, "boundary", "list")
        assert result.exit_code == 6

    def test_state_file_with_wrong_schema(self, active_workspace: Path):
        (active_workspace / ".isms" / "state.yaml").write_text("projects:\n  - name: x\n", encoding="utf-8")
        result = invoke(active_workspace, "boundary", "list")
        assert result.exit_code == 6
        assert "ERROR" in result.output

    def test_unknown_backend_in_config(self, workspace: Path):
        (workspace / ".isms" / "config.yaml").write_text("store:\n  backend: sqlite\n", encoding="utf-8")
        result = invoke(workspace, "-p", "p1", "boundary", "list")
        assert result.exit_code == 2
        assert "Unknown store backend" in result.output


class TestBoundaries:
    def test_remove(self, active_workspace: Path):
        bid = boundary_id(active_workspace)
        assert invoke(active_workspace, "boundary", "remove", bid).exit_code == 0
        assert json.loads(invoke(active_workspace, "boundary", "list", "--json").output) == []

    def test_remove_with_decisions_refused(self, active_workspace: Path):
        bid = boundary_id(active_workspace)
        invoke(active_workspace, "soa", "set", bid, "A.5.1", "--reason", "Policy needed")
        result = invoke(active_workspace, "boundary", "remove", bid)
        assert result.exit_code == 4
        assert len(json.loads(invoke(active_workspace, "boundary", "list", "--json").output)) == 1


class TestObjectives:
    def test_add_list_and_reorder(self, active_workspace: Path):
        assert invoke(active_workspace, "objective", "add", "Protect customer data", "--priority", "High").exit_code == 0
        assert invoke(active_workspace, "objective", "add", "Train all staff yearly").exit_code == 0
        listed = json.loads(invoke(active_workspace, "objective", "list", "--json").output)
        assert [(o["order"], o["priority"]) for o in listed] == [(1, "High"), (2, "Medium")]

        first, second = (o["id"] for o in listed)
        assert invoke(active_workspace, "objective", "reorder", second, first).exit_code == 0
        reordered = json.loads(invoke(active_workspace, "objective", "list", "--json").output)
        assert [o["id"] for o in reordered] == [second, first]

    def test_reorder_incomplete(self, active_workspace: Path):
        invoke(active_workspace, "objective", "add", "Protect customer data")
        invoke(active_workspace, "objective", "add", "Train all staff yearly")
        listed = json.loads(invoke(active_workspace, "objective", "list", "--json").output)
        assert invoke(active_workspace, "objective", "reorder", listed[0]["id"]).exit_code == 2

    def test_short_statement(self, active_workspace: Path):
        assert invoke(active_workspace, "objective", "add", "abc").exit_code == 2

    def test_edit_and_remove(self, active_workspace: Path):
        invoke(active_workspace, "objective", "add", "Protect customer data")
        objective_id = json.loads(invoke(active_workspace, "objective", "list", "--json").output)[0]["id"]
        assert invoke(active_workspace, "objective", "edit", objective_id, "--priority", "Low").exit_code == 0
        assert invoke(active_workspace, "objective", "remove", objective_id).exit_code == 0
        assert invoke(active_workspace, "objective", "remove", objective_id).exit_code == 3


class TestControls:
    def test_prefix(self, workspace: Path):
        result = invoke(workspace, "controls", "--prefix", "A.8", "--json")
        assert result.exit_code == 0
        assert len(json.loads(result.output)) == 34

    def test_search(self, workspace: Path):
        result = invoke(workspace, "controls", "--search", "threat intelligence", "--json")
        assert [c["reference"] for c in json.loads(result.output)] == ["A.5.7"]


class TestSoa:
    def test_set_and_matrix(self, active_workspace: Path):
        bid = boundary_id(active_workspace)
        result = invoke(active_workspace, "soa", "set", bid, "A.5.1", "--reason", "Policy needed")
        assert result.exit_code == 0

        rows = json.loads(invoke(active_workspace, "soa", "matrix", "--json").output)
        assert len(rows) == 93
        decided = [r for r in rows if r["is_applicable"] is not None]
        assert [(r["control_id"], r["is_applicable"]) for r in decided] == [("A.5.1", True)]

    def test_blank_exclusion_reason(self, active_workspace: Path):
        bid = boundary_id(active_workspace)
        result = invoke(active_workspace, "soa", "set", bid, "A.5.1", "--not-applicable", "--reason", " ")
        assert result.exit_code == 2
        assert "ERROR" in result.output

    def test_unknown_control(self, active_workspace: Path):
        bid = boundary_id(active_workspace)
        result = invoke(active_workspace, "soa", "set", bid, "Z.1", "--reason", "x")
        assert result.exit_code == 3

    def test_assess_excluded_control(self, active_workspace: Path):
        bid = boundary_id(active_workspace)
        invoke(active_workspace, "soa", "set", bid, "A.7.1", "--not-applicable", "--reason", "Cloud only")
        result = invoke(active_workspace, "soa", "assess", cell_id(active_workspace, "A.7.1"), "Compliant")
        assert result.exit_code == 4

    def test_undecided(self, active_workspace: Path):
        bid = boundary_id(active_workspace)
        invoke(active_workspace, "soa", "set", bid, "A.5.1", "--reason", "Policy needed")
        result = invoke(active_workspace, "soa", "undecided", bid)
        assert result.exit_code == 0
        assert "92 undecided" in result.output


class TestGaps:
    def test_lifecycle(self, active_workspace: Path):
        bid = boundary_id(active_workspace)
        invoke(active_workspace, "soa", "set", bid, "A.5.15", "--reason", "Access control")
        cid = cell_id(active_workspace, "A.5.15")
        assert invoke(active_workspace, "gap", "open", cid, "No joiner/leaver process", "-s", "High").exit_code == 0

        gaps = json.loads(invoke(active_workspace, "gap", "list", cid, "--json").output)
        gap_id = gaps[0]["id"]
        assert gaps[0]["status"] == "Identified"

        assert invoke(active_workspace, "gap", "move", gap_id, "Remediated").exit_code == 4
        assert invoke(active_workspace, "gap", "move", gap_id, "InReview").exit_code == 0
        stale = invoke(active_workspace, "gap", "move", gap_id, "Confirmed", "--expected", "Identified")
        assert stale.exit_code == 5

    def test_unknown_gap(self, active_workspace: Path):
        assert invoke(active_workspace, "gap", "move", "missing", "InReview").exit_code == 3

    def test_evidence(self, active_workspace: Path):
        bid = boundary_id(active_workspace)
        invoke(active_workspace, "soa", "set", bid, "A.5.1", "--reason", "Policy needed")
        cid = cell_id(active_workspace, "A.5.1")
        assert invoke(active_workspace, "evidence", "add", cid, "Policy v3", "--file-ref", "docs/policy.pdf").exit_code == 0
        items = json.loads(invoke(active_workspace, "evidence", "list", cid, "--json").output)
        assert [e["title"] for e in items] == ["Policy v3"]
        assert items[0]["uploaded_by"] == "auditor-1"


class TestReadiness:
    def test_json_view(self, active_workspace: Path):
        result = invoke(active_workspace, "readiness", "--json")
        assert result.exit_code == 0
        view = json.loads(result.output)
        assert view["status"] == "InProgress"
        assert view["completion_percentage"] == 20
        assert view["module_scores"]["boundary"] == 1.0

    def test_questionnaire_answer_moves_score(self, active_workspace: Path):
        before = json.loads(invoke(active_workspace, "readiness", "--json").output)
        assert invoke(active_workspace, "questionnaire", "answer", "ctx-01", "Compliant").exit_code == 0
        after = json.loads(invoke(active_workspace, "readiness", "--json").output)
        assert after["module_scores"]["questionnaire"] > before["module_scores"]["questionnaire"]

    def test_on_hold(self, active_workspace: Path):
        assert invoke(active_workspace, "project", "hold").exit_code == 0
        view = json.loads(invoke(active_workspace, "readiness", "--json").output)
        assert view["status"] == "OnHold"

    @patch("ismsready.cli.isms.ReadinessAggregator.readiness", new_callable=AsyncMock)
    def test_aggregation_failure(self, mock_readiness, active_workspace: Path):
        mock_readiness.side_effect = AggregationError("p1", "store timed out")
        result = invoke(active_workspace, "readiness")
        assert result.exit_code == 6
        assert "store timed out" in result.output

    def test_table_output(self, active_workspace: Path):
        result = invoke(active_workspace, "readiness")
        assert result.exit_code == 0
        assert "InProgress" in result.output
        assert "stakeholder" in result.output
