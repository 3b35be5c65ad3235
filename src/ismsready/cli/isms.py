"""isms - ISMS applicability and readiness from the command line.

Every command works against the workspace's configured store
(.isms/config.yaml); the active project is remembered there by
``isms project create``.
"""

from __future__ import annotations

import asyncio
import json
from datetime import date
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .. import __version__
from ..catalog.query import (
    controls_by_domain,
    controls_by_prefix,
    search_controls,
    sort_controls,
)
from ..core.config import (
    get_effective_config,
    initialize_workspace,
    resolve_user_id,
    save_workspace_value,
)
from ..core.errors import (
    AggregationError,
    BackendUnavailable,
    ConcurrentModificationError,
    InvalidStateError,
    InvalidTransitionError,
    IsmsError,
    NotFoundError,
    ValidationError,
)
from ..core.ledger import EvidenceGapLedger
from ..core.logs import configure_logging
from ..core.matrix import ApplicabilityMatrix, summarize_by_domain
from ..core.objectives import ObjectiveService
from ..core.questionnaire import answers_by_domain, record_answer
from ..core.readiness import ReadinessAggregator, explain
from ..core.scope import ScopeService
from ..models.ledger import GapSeverity, GapStatus
from ..models.matrix import ComplianceStatus
from ..models.questionnaire import ANSWER_STATUSES
from ..models.scope import BoundaryType, ObjectivePriority
from ..store.base import ComplianceStore, get_store

console = Console()

EXIT_VALIDATION = 2
EXIT_NOT_FOUND = 3
EXIT_INVALID_STATE = 4
EXIT_CONFLICT = 5
EXIT_BACKEND = 6

STATUS_COLORS = {
    "NotStarted": "dim",
    "InProgress": "cyan",
    "Completed": "green",
    "OnHold": "yellow",
}

PRIORITY_COLORS = {
    "High": "red",
    "Medium": "yellow",
    "Low": "green",
}


def exit_code_for(error: IsmsError) -> int:
    if isinstance(error, ValidationError):
        return EXIT_VALIDATION
    if isinstance(error, NotFoundError):
        return EXIT_NOT_FOUND
    if isinstance(error, (InvalidStateError, InvalidTransitionError)):
        return EXIT_INVALID_STATE
    if isinstance(error, ConcurrentModificationError):
        return EXIT_CONFLICT
    if isinstance(error, (BackendUnavailable, AggregationError)):
        return EXIT_BACKEND
    return 1


class CliState:
    """Resolved workspace, config and acting user for one invocation."""

    def __init__(self, workspace: Path, config: dict, project_id: Optional[str] = None):
        self.workspace = workspace
        self.config = config
        self.user_id = resolve_user_id(config)
        self._project_id = project_id
        self._store: Optional[ComplianceStore] = None

    @property
    def store(self) -> ComplianceStore:
        if self._store is None:
            self._store = get_store(self.config)
        return self._store

    @property
    def project_id(self) -> str:
        project_id = self._project_id or (self.config.get("project") or {}).get("id")
        if not project_id:
            raise ValidationError(
                "No active project. Run: isms project create <name>", field="project"
            )
        return project_id


def _run(ctx: click.Context, action: Callable[[CliState], Awaitable[Any]]) -> Any:
    state: CliState = ctx.obj
    try:
        return asyncio.run(action(state))
    except IsmsError as e:
        console.print(f"  [red]ERROR[/red] {escape(e.message)}")
        if e.retryable:
            console.print("  [dim]Re-fetch and try again.[/dim]")
        ctx.exit(exit_code_for(e))


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _applicable_label(value: Optional[bool]) -> str:
    if value is None:
        return "[dim]undecided[/dim]"
    return "[green]yes[/green]" if value else "[yellow]no[/yellow]"


@click.group()
@click.version_option(__version__, prog_name="isms")
@click.option(
    "--workspace", "-w",
    type=click.Path(file_okay=False),
    default=".",
    help="Workspace directory holding .isms/",
)
@click.option("--project", "-p", "project_id", type=str, help="Project id (default: active project)")
@click.option("--backend", type=click.Choice(["memory", "yaml", "rest"]), help="Store backend override")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def isms_cli(
    ctx: click.Context,
    workspace: str,
    project_id: str | None,
    backend: str | None,
    verbose: bool,
) -> None:
    """ISMS applicability and readiness tracking."""
    workspace_path = Path(workspace).resolve()
    overrides: dict = {}
    if backend:
        overrides["store"] = {"backend": backend}
    if verbose:
        overrides["logging"] = {"level": "DEBUG"}

    config = get_effective_config(workspace_path, overrides or None)
    configure_logging(config["logging"]["level"])
    ctx.obj = CliState(workspace_path, config, project_id)


@isms_cli.command()
@click.option("--name", "-n", default="", help="Workspace display name")
@click.pass_context
def init(ctx: click.Context, name: str) -> None:
    """Initialize an .isms/ workspace."""
    state: CliState = ctx.obj
    config_path = initialize_workspace(state.workspace, name)
    console.print(f"  [green]Initialized[/green] {config_path.parent.name}/ in {state.workspace.name}")


# -- projects -------------------------------------------------------------


@isms_cli.group()
def project() -> None:
    """Create and manage ISMS projects."""


@project.command("create")
@click.argument("name")
@click.option("--description", "-d", type=str)
@click.pass_context
def project_create(ctx: click.Context, name: str, description: str | None) -> None:
    """Create a project and make it the active one."""

    async def action(state: CliState):
        return await ScopeService(state.store).create_project(
            name, owner_id=state.user_id, description=description
        )

    created = _run(ctx, action)
    save_workspace_value(ctx.obj.workspace, "project", "id", created.id)
    console.print(f"  [green]OK[/green] Project {escape(created.name)} ({created.id})")


@project.command("hold")
@click.option("--off", is_flag=True, help="Resume the project instead")
@click.pass_context
def project_hold(ctx: click.Context, off: bool) -> None:
    """Put the active project on hold (or resume it)."""

    async def action(state: CliState):
        return await ScopeService(state.store).set_on_hold(state.project_id, not off)

    updated = _run(ctx, action)
    console.print(f"  [green]OK[/green] {escape(updated.name)}: {'on hold' if updated.on_hold else 'active'}")


@project.command("stats")
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def project_stats(ctx: click.Context, as_json: bool) -> None:
    """Count your projects by readiness status."""

    async def action(state: CliState):
        return await ReadinessAggregator(state.store).project_stats(state.user_id)

    stats = _run(ctx, action)
    if as_json:
        _echo_json(stats.model_dump())
        return
    console.print(
        f"  Total: {stats.total}  Not started: {stats.not_started}  "
        f"In progress: {stats.in_progress}  Completed: {stats.completed}  On hold: {stats.on_hold}"
    )


# -- boundaries and stakeholders ------------------------------------------


@isms_cli.group()
def boundary() -> None:
    """Manage scope boundaries."""


@boundary.command("add")
@click.argument("name")
@click.option(
    "--type", "-t", "boundary_type",
    type=click.Choice([t.value for t in BoundaryType], case_sensitive=False),
    default=BoundaryType.OTHER.value,
)
@click.option("--notes", type=str)
@click.option("--excluded", is_flag=True, help="Record the boundary as out of scope")
@click.pass_context
def boundary_add(ctx: click.Context, name: str, boundary_type: str, notes: str | None, excluded: bool) -> None:
    """Add a boundary to the active project."""

    async def action(state: CliState):
        return await ScopeService(state.store).add_boundary(
            state.project_id, name, boundary_type,
            user_id=state.user_id, notes=notes, included=not excluded,
        )

    created = _run(ctx, action)
    console.print(f"  [green]OK[/green] Boundary {escape(created.name)} ({created.id})")


@boundary.command("list")
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def boundary_list(ctx: click.Context, as_json: bool) -> None:
    """List the active project's boundaries."""

    async def action(state: CliState):
        return await ScopeService(state.store).list_boundaries(state.project_id)

    boundaries = _run(ctx, action)
    if as_json:
        _echo_json([b.model_dump(mode="json") for b in boundaries])
        return

    table = Table(title="Boundaries")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("In scope")
    for b in boundaries:
        table.add_row(b.id, escape(b.name), b.type.value, _applicable_label(b.included))
    console.print(table)


@boundary.command("exclude")
@click.argument("boundary_id")
@click.option("--include", is_flag=True, help="Bring the boundary back into scope")
@click.option("--notes", type=str)
@click.pass_context
def boundary_exclude(ctx: click.Context, boundary_id: str, include: bool, notes: str | None) -> None:
    """Take a boundary out of scope."""

    async def action(state: CliState):
        return await ScopeService(state.store).set_boundary_included(boundary_id, include, notes)

    updated = _run(ctx, action)
    console.print(f"  [green]OK[/green] {escape(updated.name)}: {'in scope' if updated.included else 'out of scope'}")


@boundary.command("remove")
@click.argument("boundary_id")
@click.pass_context
def boundary_remove(ctx: click.Context, boundary_id: str) -> None:
    """Delete a boundary that has no applicability decisions."""

    async def action(state: CliState):
        await ScopeService(state.store).delete_boundary(boundary_id, user_id=state.user_id)

    _run(ctx, action)
    console.print(f"  [green]OK[/green] Removed boundary {boundary_id}")


@isms_cli.group()
def stakeholder() -> None:
    """Manage stakeholders."""


@stakeholder.command("add")
@click.argument("name")
@click.option("--role", type=str)
@click.option("--email", type=str)
@click.option("--responsibilities", type=str)
@click.pass_context
def stakeholder_add(
    ctx: click.Context,
    name: str,
    role: str | None,
    email: str | None,
    responsibilities: str | None,
) -> None:
    """Add a stakeholder to the active project."""

    async def action(state: CliState):
        return await ScopeService(state.store).add_stakeholder(
            state.project_id, name,
            user_id=state.user_id, role=role, email=email, responsibilities=responsibilities,
        )

    created = _run(ctx, action)
    console.print(f"  [green]OK[/green] Stakeholder {escape(created.name)} ({created.id})")


# -- objectives -----------------------------------------------------------


@isms_cli.group()
def objective() -> None:
    """ISMS objectives."""


@objective.command("add")
@click.argument("statement")
@click.option(
    "--priority",
    type=click.Choice([p.value for p in ObjectivePriority], case_sensitive=False),
    default=ObjectivePriority.MEDIUM.value,
)
@click.pass_context
def objective_add(ctx: click.Context, statement: str, priority: str) -> None:
    """Add an objective to the end of the active project's list."""

    async def action(state: CliState):
        return await ObjectiveService(state.store).add_objective(
            state.project_id, statement, priority, user_id=state.user_id
        )

    created = _run(ctx, action)
    console.print(f"  [green]OK[/green] Objective {created.order}: {escape(created.statement)} ({created.id})")


@objective.command("list")
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def objective_list(ctx: click.Context, as_json: bool) -> None:
    """List the active project's objectives in order."""

    async def action(state: CliState):
        return await ObjectiveService(state.store).list_objectives(state.project_id)

    objectives = _run(ctx, action)
    if as_json:
        _echo_json([o.model_dump(mode="json") for o in objectives])
        return
    table = Table(title="Objectives")
    table.add_column("#", justify="right")
    table.add_column("Priority")
    table.add_column("Statement")
    table.add_column("ID", style="dim")
    for o in objectives:
        color = PRIORITY_COLORS.get(o.priority.value, "white")
        table.add_row(str(o.order), f"[{color}]{o.priority.value}[/{color}]", escape(o.statement), o.id)
    console.print(table)


@objective.command("edit")
@click.argument("objective_id")
@click.option("--statement", type=str)
@click.option(
    "--priority",
    type=click.Choice([p.value for p in ObjectivePriority], case_sensitive=False),
)
@click.pass_context
def objective_edit(ctx: click.Context, objective_id: str, statement: str | None, priority: str | None) -> None:
    """Change an objective's statement or priority."""

    async def action(state: CliState):
        return await ObjectiveService(state.store).update_objective(
            objective_id, user_id=state.user_id, statement=statement, priority=priority
        )

    updated = _run(ctx, action)
    console.print(f"  [green]OK[/green] {updated.id}: {updated.priority.value}")


@objective.command("remove")
@click.argument("objective_id")
@click.pass_context
def objective_remove(ctx: click.Context, objective_id: str) -> None:
    """Delete an objective."""

    async def action(state: CliState):
        await ObjectiveService(state.store).remove_objective(objective_id, user_id=state.user_id)

    _run(ctx, action)
    console.print(f"  [green]OK[/green] Removed {objective_id}")


@objective.command("reorder")
@click.argument("objective_ids", nargs=-1, required=True)
@click.pass_context
def objective_reorder(ctx: click.Context, objective_ids: tuple[str, ...]) -> None:
    """Put the objectives in the given order (list every id once)."""

    async def action(state: CliState):
        return await ObjectiveService(state.store).reorder(state.project_id, list(objective_ids))

    objectives = _run(ctx, action)
    for o in objectives:
        console.print(f"  {o.order}. {escape(o.statement)}")


# -- control catalog ------------------------------------------------------


@isms_cli.command()
@click.option("--prefix", type=str, help="Reference prefix, e.g. A.5")
@click.option("--search", "-s", type=str, help="Text to find in reference or description")
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def controls(ctx: click.Context, prefix: str | None, search: str | None, as_json: bool) -> None:
    """List catalog controls."""

    async def action(state: CliState):
        return await state.store.list_controls()

    found = sort_controls(_run(ctx, action))
    if prefix:
        found = controls_by_prefix(found, prefix)
    if search:
        found = search_controls(found, search)

    if as_json:
        _echo_json([c.model_dump() for c in found])
        return

    for domain, domain_controls in controls_by_domain(found).items():
        table = Table(title=f"{escape(domain)} ({len(domain_controls)})")
        table.add_column("Reference", style="cyan", no_wrap=True)
        table.add_column("Description")
        for control in domain_controls:
            table.add_row(control.reference, escape(control.description))
        console.print(table)


# -- statement of applicability -------------------------------------------


@isms_cli.group()
def soa() -> None:
    """Statement of Applicability decisions and assessments."""


@soa.command("set")
@click.argument("boundary_id")
@click.argument("control_id")
@click.option("--applicable/--not-applicable", default=True)
@click.option("--reason", "-r", required=True, help="Justification for the decision")
@click.option("--implementation-status", type=str)
@click.pass_context
def soa_set(
    ctx: click.Context,
    boundary_id: str,
    control_id: str,
    applicable: bool,
    reason: str,
    implementation_status: str | None,
) -> None:
    """Decide whether a control applies to a boundary."""

    async def action(state: CliState):
        return await ApplicabilityMatrix(state.store).set_applicability(
            boundary_id, control_id, applicable, reason,
            user_id=state.user_id, implementation_status=implementation_status,
        )

    cell = _run(ctx, action)
    label = "applicable" if cell.is_applicable else "excluded"
    console.print(f"  [green]OK[/green] {control_id} {label} ({cell.id})")


@soa.command("assess")
@click.argument("cell_id")
@click.argument("status", type=click.Choice([s.value for s in ComplianceStatus], case_sensitive=False))
@click.option("--date", "assessed_on", type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option("--notes", type=str)
@click.pass_context
def soa_assess(ctx: click.Context, cell_id: str, status: str, assessed_on, notes: str | None) -> None:
    """Record the compliance assessment of an applicable control."""
    assessment_date: Optional[date] = assessed_on.date() if assessed_on else None

    async def action(state: CliState):
        return await ApplicabilityMatrix(state.store).record_assessment(
            cell_id, status, assessment_date, notes
        )

    cell = _run(ctx, action)
    console.print(f"  [green]OK[/green] {cell.id}: {cell.compliance_status.value}")


@soa.command("move")
@click.argument("control_id")
@click.argument("source_boundary_id")
@click.argument("target_boundary_id")
@click.option("--reason", "-r", required=True, help="Inclusion reason on the target")
@click.option(
    "--source-applicable/--source-not-applicable",
    default=None,
    help="Also record a decision on the source boundary",
)
@click.option("--source-reason", type=str)
@click.pass_context
def soa_move(
    ctx: click.Context,
    control_id: str,
    source_boundary_id: str,
    target_boundary_id: str,
    reason: str,
    source_applicable: bool | None,
    source_reason: str | None,
) -> None:
    """Apply a control to another boundary, optionally re-deciding the source."""

    async def action(state: CliState):
        return await ApplicabilityMatrix(state.store).move_control(
            control_id, source_boundary_id, target_boundary_id, reason,
            user_id=state.user_id,
            source_applicable=source_applicable,
            source_reason=source_reason,
        )

    target, source = _run(ctx, action)
    console.print(f"  [green]OK[/green] {control_id} applicable on {target_boundary_id} ({target.id})")
    if source is not None:
        label = "applicable" if source.is_applicable else "excluded"
        console.print(f"  [green]OK[/green] {control_id} {label} on {source_boundary_id} ({source.id})")


@soa.command("matrix")
@click.option("--boundary", "-b", "boundary_id", type=str, help="Only this boundary")
@click.option("--summary", is_flag=True, help="Per-domain counts instead of rows")
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def soa_matrix(ctx: click.Context, boundary_id: str | None, summary: bool, as_json: bool) -> None:
    """Show the applicability matrix."""

    async def action(state: CliState):
        matrix = ApplicabilityMatrix(state.store)
        if boundary_id:
            return await matrix.list_for_boundary(boundary_id)
        return await matrix.list_for_project(state.project_id)

    rows = _run(ctx, action)

    if summary:
        domains = summarize_by_domain(rows)
        if as_json:
            _echo_json({name: d.model_dump() for name, d in domains.items()})
            return
        table = Table(title="SoA coverage by domain")
        for column in ("Domain", "Controls", "Decided", "Applicable", "Compliant", "Coverage"):
            table.add_column(column)
        for d in domains.values():
            table.add_row(
                escape(d.name), str(d.total), str(d.decided),
                str(d.applicable), str(d.compliant), f"{d.coverage}%",
            )
        console.print(table)
        return

    if as_json:
        _echo_json([r.model_dump(mode="json") for r in rows])
        return

    table = Table(title="Statement of Applicability")
    table.add_column("Boundary")
    table.add_column("Control", style="cyan", no_wrap=True)
    table.add_column("Applicable")
    table.add_column("Compliance")
    table.add_column("Gaps", justify="right")
    table.add_column("Evidence", justify="right")
    table.add_column("Cell", style="dim")
    for r in rows:
        table.add_row(
            escape(r.boundary_name),
            r.reference,
            _applicable_label(r.is_applicable),
            r.compliance_status.value if r.is_applicable else "",
            str(r.open_gap_count),
            str(r.evidence_count),
            r.cell_id or "",
        )
    console.print(table)


@soa.command("undecided")
@click.argument("boundary_id")
@click.pass_context
def soa_undecided(ctx: click.Context, boundary_id: str) -> None:
    """List controls still awaiting a decision on a boundary."""

    async def action(state: CliState):
        return await ApplicabilityMatrix(state.store).undecided_controls(boundary_id)

    remaining = _run(ctx, action)
    if not remaining:
        console.print("  [green]OK[/green] Every control has a decision")
        return
    console.print(f"  {len(remaining)} undecided control(s):")
    for control in remaining:
        console.print(f"    [cyan]{control.reference}[/cyan] {escape(control.description)}")


# -- evidence and gaps ----------------------------------------------------


@isms_cli.group()
def evidence() -> None:
    """Attach and list evidence."""


@evidence.command("add")
@click.argument("cell_id")
@click.argument("title")
@click.option("--file-ref", type=str, help="Reference to the stored file")
@click.option("--description", "-d", type=str)
@click.pass_context
def evidence_add(ctx: click.Context, cell_id: str, title: str, file_ref: str | None, description: str | None) -> None:
    """Attach evidence to a matrix cell."""

    async def action(state: CliState):
        return await EvidenceGapLedger(state.store).add_evidence(
            cell_id, title, uploaded_by=state.user_id, file_ref=file_ref, description=description
        )

    created = _run(ctx, action)
    console.print(f"  [green]OK[/green] Evidence {created.id}")


@evidence.command("list")
@click.argument("cell_id")
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def evidence_list(ctx: click.Context, cell_id: str, as_json: bool) -> None:
    """List evidence on a matrix cell."""

    async def action(state: CliState):
        return await EvidenceGapLedger(state.store).list_evidence(cell_id)

    items = _run(ctx, action)
    if as_json:
        _echo_json([e.model_dump(mode="json") for e in items])
        return
    table = Table(title="Evidence")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("File")
    table.add_column("Uploaded by")
    for e in items:
        table.add_row(e.id, escape(e.title), escape(e.file_ref or ""), escape(e.uploaded_by))
    console.print(table)


@evidence.command("remove")
@click.argument("evidence_id")
@click.pass_context
def evidence_remove(ctx: click.Context, evidence_id: str) -> None:
    """Delete an evidence record."""

    async def action(state: CliState):
        await EvidenceGapLedger(state.store).remove_evidence(evidence_id)

    _run(ctx, action)
    console.print(f"  [green]OK[/green] Removed {evidence_id}")


@isms_cli.group()
def gap() -> None:
    """Open and progress compliance gaps."""


@gap.command("open")
@click.argument("cell_id")
@click.argument("description")
@click.option(
    "--severity", "-s",
    type=click.Choice([s.value for s in GapSeverity], case_sensitive=False),
    default=GapSeverity.MEDIUM.value,
)
@click.option("--title", "-t", type=str)
@click.pass_context
def gap_open(ctx: click.Context, cell_id: str, description: str, severity: str, title: str | None) -> None:
    """Record a gap on a matrix cell."""

    async def action(state: CliState):
        return await EvidenceGapLedger(state.store).open_gap(
            cell_id, description, severity, identified_by=state.user_id, title=title
        )

    created = _run(ctx, action)
    console.print(f"  [green]OK[/green] Gap {created.id} {escape(f'[{created.severity.value}]')}")


@gap.command("move")
@click.argument("gap_id")
@click.argument("status", type=click.Choice([s.value for s in GapStatus], case_sensitive=False))
@click.option(
    "--expected",
    type=click.Choice([s.value for s in GapStatus], case_sensitive=False),
    help="Status you last saw; the move fails if it changed since",
)
@click.pass_context
def gap_move(ctx: click.Context, gap_id: str, status: str, expected: str | None) -> None:
    """Move a gap along its lifecycle."""

    async def action(state: CliState):
        return await EvidenceGapLedger(state.store).transition_gap(
            gap_id, status, expected_status=expected
        )

    updated = _run(ctx, action)
    console.print(f"  [green]OK[/green] Gap {gap_id}: {updated.status.value}")


@gap.command("list")
@click.argument("cell_id")
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def gap_list(ctx: click.Context, cell_id: str, as_json: bool) -> None:
    """List gaps on a matrix cell, oldest first."""

    async def action(state: CliState):
        return await EvidenceGapLedger(state.store).gaps_by_boundary_control(cell_id)

    gaps = _run(ctx, action)
    if as_json:
        _echo_json([g.model_dump(mode="json") for g in gaps])
        return
    table = Table(title="Gaps")
    table.add_column("ID", style="dim")
    table.add_column("Severity")
    table.add_column("Status")
    table.add_column("Description")
    for g in gaps:
        table.add_row(g.id, g.severity.value, g.status.value, escape(g.description))
    console.print(table)


# -- questionnaire and readiness ------------------------------------------


@isms_cli.group()
def questionnaire() -> None:
    """Readiness questionnaire."""


@questionnaire.command("answer")
@click.argument("question_id")
@click.argument("status", type=click.Choice(list(ANSWER_STATUSES), case_sensitive=False))
@click.option("--notes", type=str, help="Evidence notes")
@click.pass_context
def questionnaire_answer(ctx: click.Context, question_id: str, status: str, notes: str | None) -> None:
    """Answer a questionnaire item for the active project."""

    async def action(state: CliState):
        return await record_answer(
            state.store, state.project_id, question_id, status,
            user_id=state.user_id, evidence_notes=notes,
        )

    answer = _run(ctx, action)
    console.print(f"  [green]OK[/green] {question_id}: {answer.answer_status}")


@questionnaire.command("show")
@click.pass_context
def questionnaire_show(ctx: click.Context) -> None:
    """Show questions and answers for the active project."""

    async def action(state: CliState):
        return await asyncio.gather(
            state.store.list_questions(),
            state.store.list_answers(state.project_id),
        )

    questions, answers = _run(ctx, action)
    by_question = {a.question_id: a for a in answers}
    table = Table(title="Questionnaire")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Domain")
    table.add_column("Question")
    table.add_column("Answer")
    for q in questions:
        answer = by_question.get(q.id)
        table.add_row(
            q.id, escape(q.domain or ""), escape(q.text),
            escape(answer.answer_status) if answer and answer.answer_status else "[dim]-[/dim]",
        )
    console.print(table)
    for domain, (answered, total) in answers_by_domain(questions, answers).items():
        console.print(f"  {escape(domain)}: {answered}/{total}")


@isms_cli.command()
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def readiness(ctx: click.Context, as_json: bool) -> None:
    """Show the active project's readiness."""

    async def action(state: CliState):
        return await ReadinessAggregator(state.store).readiness(state.project_id)

    view = _run(ctx, action)
    if as_json:
        _echo_json(view.model_dump(mode="json"))
        return

    color = STATUS_COLORS.get(view.status.value, "white")
    console.print()
    console.print(f"  [bold]Readiness[/bold] [{color}]{view.status.value}[/{color}] {view.completion_percentage}%")
    console.print()
    for module, score, hint in explain(view):
        line = f"    {module:<14} {score * 100:5.1f}%"
        if hint:
            line += f"  [dim]{hint}[/dim]"
        console.print(line)


def main() -> None:
    isms_cli()


if __name__ == "__main__":
    main()
