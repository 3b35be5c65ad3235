"""Statement-of-Applicability matrix.

Owns the per-(boundary, control) decision: whether the control applies,
the justification for that decision, and the compliance assessment of
applicable controls. Exclusion is a decision (is_applicable=False), never
a row removal.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import date
from typing import Optional

from ..catalog.query import reference_sort_key
from ..models.catalog import Control
from ..models.matrix import ApplicabilityCell, ComplianceStatus, DomainSummary, MatrixRow
from ..models.scope import Boundary
from ..store.base import ComplianceStore
from .checks import coerce_enum
from .errors import InvalidStateError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class ApplicabilityMatrix:
    def __init__(self, store: ComplianceStore):
        self.store = store

    async def set_applicability(
        self,
        boundary_id: str,
        control_id: str,
        is_applicable: bool,
        reason: Optional[str],
        *,
        user_id: str,
        implementation_status: Optional[str] = None,
    ) -> ApplicabilityCell:
        """Record (or replace) the decision for one boundary/control pair.

        The reason lands in reason_inclusion or reason_exclusion depending on
        the branch; the other is cleared. Excluding a control clears its
        assessment but leaves any open gaps on the cell untouched.
        """
        if not isinstance(is_applicable, bool):
            raise ValidationError("is_applicable must be true or false", field="is_applicable")

        reason_field = "reason_inclusion" if is_applicable else "reason_exclusion"
        if not isinstance(reason, str) or not reason.strip():
            kind = "An inclusion" if is_applicable else "An exclusion"
            raise ValidationError(
                f"{kind} reason is required for control {control_id} on boundary {boundary_id}",
                field=reason_field,
            )
        reason_text = reason.strip()

        boundary, control = await asyncio.gather(
            self.store.get_boundary(boundary_id),
            self.store.get_control(control_id),
        )
        if boundary is None:
            raise NotFoundError("boundary", boundary_id)
        if control is None:
            raise NotFoundError("control", control_id)

        existing = await self.store.find_cell(boundary_id, control_id)
        keep_assessment = bool(existing and existing.is_applicable and is_applicable)

        cell = ApplicabilityCell(
            boundary_id=boundary_id,
            control_id=control_id,
            is_applicable=is_applicable,
            reason_inclusion=reason_text if is_applicable else None,
            reason_exclusion=None if is_applicable else reason_text,
            implementation_status=(
                implementation_status
                if implementation_status is not None
                else (existing.implementation_status if existing else None)
            ),
            compliance_status=existing.compliance_status if keep_assessment else None,
            assessment_date=existing.assessment_date if keep_assessment else None,
            assessment_notes=existing.assessment_notes if keep_assessment else None,
            owner_id=existing.owner_id if existing else user_id,
        )
        saved = await self.store.upsert_cell(cell)

        if existing and existing.is_applicable and not is_applicable:
            open_gaps = [g for g in await self.store.list_gaps(saved.id) if g.is_open]
            if open_gaps:
                logger.info(
                    "Control %s excluded on boundary %s with %d open gap(s) left open",
                    control.reference, boundary_id, len(open_gaps),
                )

        logger.info(
            "SoA %s on %s: %s",
            control.reference, boundary.name, "applicable" if is_applicable else "excluded",
        )
        return saved

    async def record_assessment(
        self,
        cell_id: str,
        compliance_status: ComplianceStatus | str,
        assessment_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> ApplicabilityCell:
        """Record the compliance assessment of an applicable control."""
        cell = await self.store.get_cell(cell_id)
        if cell is None:
            raise NotFoundError("cell", cell_id)
        if not cell.is_applicable:
            raise InvalidStateError(
                cell_id,
                current_state="not applicable",
                attempted="record an assessment",
            )

        status = coerce_enum(ComplianceStatus, compliance_status, "compliance_status")
        updated = await self.store.update_cell(
            cell_id,
            {
                "compliance_status": status,
                "assessment_date": assessment_date or date.today(),
                "assessment_notes": notes,
            },
        )
        logger.info("Assessed cell %s as %s", cell_id, status.value)
        return updated

    async def get_cell(self, cell_id: str) -> ApplicabilityCell:
        cell = await self.store.get_cell(cell_id)
        if cell is None:
            raise NotFoundError("cell", cell_id)
        return cell

    async def cell_for(self, boundary_id: str, control_id: str) -> Optional[ApplicabilityCell]:
        """The decided cell for a pair, or None while it is still undecided."""
        return await self.store.find_cell(boundary_id, control_id)

    async def move_control(
        self,
        control_id: str,
        source_boundary_id: str,
        target_boundary_id: str,
        reason: str,
        *,
        user_id: str,
        source_applicable: Optional[bool] = None,
        source_reason: Optional[str] = None,
    ) -> tuple[ApplicabilityCell, Optional[ApplicabilityCell]]:
        """Drag a control onto another boundary.

        The target gets an applicable decision. The source is only touched
        when the caller supplies its own decision for it; nothing is removed
        from the source implicitly.
        """
        target = await self.set_applicability(
            target_boundary_id, control_id, True, reason, user_id=user_id
        )
        source = None
        if source_applicable is not None:
            source = await self.set_applicability(
                source_boundary_id, control_id, source_applicable, source_reason, user_id=user_id
            )
        return target, source

    async def list_for_boundary(self, boundary_id: str) -> list[MatrixRow]:
        boundary = await self.store.get_boundary(boundary_id)
        if boundary is None:
            raise NotFoundError("boundary", boundary_id)
        controls, cells = await asyncio.gather(
            self.store.list_controls(),
            self.store.list_cells_for_boundary(boundary_id),
        )
        return await self._build_rows([boundary], controls, cells)

    async def list_for_project(self, project_id: str) -> list[MatrixRow]:
        """Full grid for every in-scope boundary of a project."""
        project = await self.store.get_project(project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        boundaries, controls, cells = await asyncio.gather(
            self.store.list_boundaries(project_id),
            self.store.list_controls(),
            self.store.list_cells(project_id),
        )
        in_scope = [b for b in boundaries if b.included]
        return await self._build_rows(in_scope, controls, cells)

    async def undecided_controls(self, boundary_id: str) -> list[Control]:
        """Catalog controls with no decision yet for this boundary."""
        boundary = await self.store.get_boundary(boundary_id)
        if boundary is None:
            raise NotFoundError("boundary", boundary_id)
        controls, cells = await asyncio.gather(
            self.store.list_controls(),
            self.store.list_cells_for_boundary(boundary_id),
        )
        decided = {c.control_id for c in cells}
        remaining = [c for c in controls if c.id not in decided]
        return sorted(remaining, key=lambda c: reference_sort_key(c.reference))

    async def _build_rows(
        self,
        boundaries: list[Boundary],
        controls: list[Control],
        cells: list[ApplicabilityCell],
    ) -> list[MatrixRow]:
        by_key = {c.key: c for c in cells}
        ordered_controls = sorted(controls, key=lambda c: reference_sort_key(c.reference))

        # Ledger counts only exist for decided cells
        boundary_ids = {b.id for b in boundaries}
        decided = [c for c in cells if c.boundary_id in boundary_ids]
        gap_lists, evidence_lists = await asyncio.gather(
            asyncio.gather(*(self.store.list_gaps(c.id) for c in decided)),
            asyncio.gather(*(self.store.list_evidence(c.id) for c in decided)),
        )
        open_gaps = {
            c.id: sum(1 for g in gaps if g.is_open) for c, gaps in zip(decided, gap_lists)
        }
        evidence_counts = {c.id: len(ev) for c, ev in zip(decided, evidence_lists)}

        rows: list[MatrixRow] = []
        for boundary in boundaries:
            for control in ordered_controls:
                cell = by_key.get((boundary.id, control.id))
                row = MatrixRow(
                    boundary_id=boundary.id,
                    boundary_name=boundary.name,
                    control_id=control.id,
                    reference=control.reference,
                    description=control.description,
                    domain=control.domain,
                )
                if cell is not None:
                    row.cell_id = cell.id
                    row.is_applicable = cell.is_applicable
                    if cell.is_applicable and cell.compliance_status:
                        row.compliance_status = cell.compliance_status
                    row.open_gap_count = open_gaps.get(cell.id, 0)
                    row.evidence_count = evidence_counts.get(cell.id, 0)
                rows.append(row)
        return rows


def summarize_by_domain(rows: list[MatrixRow]) -> dict[str, DomainSummary]:
    """Per-domain decision and compliance counts over a set of matrix rows."""
    grouped: dict[str, list[MatrixRow]] = defaultdict(list)
    for row in rows:
        grouped[row.domain].append(row)

    summary: dict[str, DomainSummary] = {}
    for domain, domain_rows in grouped.items():
        total = len(domain_rows)
        decided = sum(1 for r in domain_rows if r.is_applicable is not None)
        summary[domain] = DomainSummary(
            name=domain,
            total=total,
            decided=decided,
            applicable=sum(1 for r in domain_rows if r.is_applicable),
            compliant=sum(
                1 for r in domain_rows
                if r.is_applicable and r.compliance_status == ComplianceStatus.COMPLIANT
            ),
            coverage=round((decided / total) * 100, 1) if total > 0 else 0.0,
        )
    return summary
