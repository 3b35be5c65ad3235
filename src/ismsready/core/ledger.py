"""Evidence and gap ledger.

Evidence and gaps hang off an applicability cell. Gaps follow a forward
lifecycle with a single backward move for disputed findings:

    Identified -> InReview -> Confirmed -> Remediated -> Closed
                     ^____________|
"""

from __future__ import annotations

import logging
from typing import Optional

from ..models.ledger import Evidence, Gap, GapSeverity, GapStatus
from ..store.base import ComplianceStore
from .checks import coerce_enum, require_text
from .errors import ConcurrentModificationError, InvalidTransitionError, NotFoundError

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[GapStatus, frozenset[GapStatus]] = {
    GapStatus.IDENTIFIED: frozenset({GapStatus.IN_REVIEW}),
    GapStatus.IN_REVIEW: frozenset({GapStatus.CONFIRMED}),
    GapStatus.CONFIRMED: frozenset({GapStatus.REMEDIATED, GapStatus.IN_REVIEW}),
    GapStatus.REMEDIATED: frozenset({GapStatus.CLOSED}),
    GapStatus.CLOSED: frozenset(),
}


def can_transition(current: GapStatus, next_status: GapStatus) -> bool:
    return next_status in ALLOWED_TRANSITIONS.get(current, frozenset())


class EvidenceGapLedger:
    def __init__(self, store: ComplianceStore):
        self.store = store

    async def _require_cell(self, cell_id: str) -> None:
        if await self.store.get_cell(cell_id) is None:
            raise NotFoundError("cell", cell_id)

    # -- evidence ----------------------------------------------------------

    async def add_evidence(
        self,
        cell_id: str,
        title: str,
        *,
        uploaded_by: str,
        file_ref: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Evidence:
        """Attach evidence to a cell, applicable or not (exemption memos count)."""
        title_text = require_text(title, "title", "Evidence title is required")
        await self._require_cell(cell_id)
        evidence = await self.store.add_evidence(Evidence(
            boundary_control_id=cell_id,
            title=title_text,
            description=description,
            file_ref=file_ref,
            uploaded_by=uploaded_by,
        ))
        logger.info("Evidence %s added to cell %s", evidence.id, cell_id)
        return evidence

    async def list_evidence(self, cell_id: str) -> list[Evidence]:
        await self._require_cell(cell_id)
        evidence = await self.store.list_evidence(cell_id)
        return sorted(evidence, key=lambda e: e.created_at)

    async def remove_evidence(self, evidence_id: str) -> None:
        await self.store.delete_evidence(evidence_id)
        logger.info("Evidence %s removed", evidence_id)

    # -- gaps --------------------------------------------------------------

    async def open_gap(
        self,
        cell_id: str,
        description: str,
        severity: GapSeverity | str,
        *,
        identified_by: str,
        title: Optional[str] = None,
    ) -> Gap:
        text = require_text(description, "description", "Gap description is required")
        level = coerce_enum(GapSeverity, severity, "severity")
        await self._require_cell(cell_id)
        gap = await self.store.add_gap(Gap(
            boundary_control_id=cell_id,
            title=title.strip() if title else None,
            description=text,
            severity=level,
            status=GapStatus.IDENTIFIED,
            identified_by=identified_by,
        ))
        logger.info("Gap %s opened on cell %s [%s]", gap.id, cell_id, level.value)
        return gap

    async def transition_gap(
        self,
        gap_id: str,
        next_status: GapStatus | str,
        *,
        expected_status: Optional[GapStatus | str] = None,
    ) -> Gap:
        """Move a gap along its lifecycle.

        The move is checked against the persisted status and committed with a
        compare-and-set, so a caller working from a stale copy gets
        ConcurrentModificationError instead of resurrecting a closed gap.
        """
        target = coerce_enum(GapStatus, next_status, "status")
        gap = await self.store.get_gap(gap_id)
        if gap is None:
            raise NotFoundError("gap", gap_id)

        if expected_status is not None:
            expected = coerce_enum(GapStatus, expected_status, "expected_status")
            if expected != gap.status:
                raise ConcurrentModificationError(gap_id, expected.value, gap.status.value)

        if not can_transition(gap.status, target):
            raise InvalidTransitionError(gap_id, gap.status.value, target.value)

        updated = await self.store.compare_and_set_gap_status(gap_id, gap.status, target)
        logger.info("Gap %s: %s -> %s", gap_id, gap.status.value, target.value)
        return updated

    async def update_gap_details(
        self,
        gap_id: str,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        severity: Optional[GapSeverity | str] = None,
    ) -> Gap:
        """Edit a gap's non-lifecycle fields."""
        if await self.store.get_gap(gap_id) is None:
            raise NotFoundError("gap", gap_id)
        changes: dict = {}
        if title is not None:
            changes["title"] = title.strip() or None
        if description is not None:
            changes["description"] = require_text(description, "description", "Gap description is required")
        if severity is not None:
            changes["severity"] = coerce_enum(GapSeverity, severity, "severity")
        if not changes:
            return await self.store.get_gap(gap_id)
        return await self.store.update_gap(gap_id, changes)

    async def gaps_by_boundary_control(self, cell_id: str) -> list[Gap]:
        """Gaps for a cell, oldest first."""
        await self._require_cell(cell_id)
        gaps = await self.store.list_gaps(cell_id)
        return sorted(gaps, key=lambda g: g.identified_at)
