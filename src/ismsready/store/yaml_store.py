"""File-backed store: MemoryStore semantics persisted to a YAML document.

Each mutation holds an inter-process file lock, reloads the document,
applies the change to the fresh state and rewrites the whole document
(temp file, then atomic replace). Compare-and-set therefore checks what is
on disk at commit time, so several processes can share one workspace.
Reads serve the state as of the last load or commit. Controls are not
persisted; they come from the catalog.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import yaml
from filelock import FileLock, Timeout
from pydantic import ValidationError as SchemaError

from ..core.errors import BackendUnavailable
from ..models.catalog import Control
from ..models.ledger import Evidence, Gap
from ..models.matrix import ApplicabilityCell
from ..models.questionnaire import Answer, Question
from ..models.scope import Boundary, Objective, Project, Stakeholder
from .memory import MemoryStore

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class YamlStore(MemoryStore):
    name = "yaml"

    def __init__(
        self,
        path: str | Path,
        controls: Optional[list[Control]] = None,
        store_config: Optional[dict] = None,
        questions: Optional[list[Question]] = None,
    ):
        super().__init__(controls=controls, store_config=store_config, questions=questions)
        self.path = Path(path)
        self._bundled_questions = dict(self.questions)
        self._file_lock = FileLock(str(self.path) + ".lock", timeout=self.timeout)
        self._load()

    def _read(self) -> dict:
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8-sig")) or {}
        except OSError as e:
            raise BackendUnavailable(f"Cannot read state file {self.path.name}: {e}", backend=self.name) from e
        except yaml.YAMLError as e:
            raise BackendUnavailable(f"State file {self.path.name} is corrupt: {e}", backend=self.name) from e
        if not isinstance(data, dict):
            raise BackendUnavailable(
                f"State file {self.path.name} is corrupt: expected a mapping, got {type(data).__name__}",
                backend=self.name,
            )
        return data

    def _load(self) -> None:
        """Replace the in-memory tables with the document on disk.

        Nothing is swapped in unless the whole document validates.
        """
        if not self.path.exists():
            return
        data = self._read()

        def rows(key: str) -> list:
            return data.get(key) or []

        try:
            projects = {p.id: p for p in map(Project.model_validate, rows("projects"))}
            boundaries = {b.id: b for b in map(Boundary.model_validate, rows("boundaries"))}
            stakeholders = {s.id: s for s in map(Stakeholder.model_validate, rows("stakeholders"))}
            objectives = {o.id: o for o in map(Objective.model_validate, rows("objectives"))}
            cells = {c.id: c for c in map(ApplicabilityCell.model_validate, rows("cells"))}
            evidence = {e.id: e for e in map(Evidence.model_validate, rows("evidence"))}
            gaps = {g.id: g for g in map(Gap.model_validate, rows("gaps"))}
            questions = dict(self._bundled_questions)
            questions.update({q.id: q for q in map(Question.model_validate, rows("questions"))})
            answers = {
                (a.project_id, a.question_id): a
                for a in map(Answer.model_validate, rows("answers"))
            }
        except (SchemaError, TypeError) as e:
            raise BackendUnavailable(
                f"State file {self.path.name} does not match the expected schema: {e}",
                backend=self.name,
            ) from e

        self.projects = projects
        self.boundaries = boundaries
        self.stakeholders = stakeholders
        self.objectives = objectives
        self.cells = cells
        self.cell_index = {c.key: c.id for c in cells.values()}
        self.evidence = evidence
        self.gaps = gaps
        self.questions = questions
        self.answers = answers

        logger.debug(
            "Loaded %s: %d boundaries, %d cells, %d gaps",
            self.path.name, len(self.boundaries), len(self.cells), len(self.gaps),
        )

    def _snapshot(self) -> dict:
        def dump(records) -> list[dict]:
            return [r.model_dump(mode="json") for r in records]

        return {
            "version": STATE_VERSION,
            "projects": dump(self.projects.values()),
            "boundaries": dump(self.boundaries.values()),
            "stakeholders": dump(self.stakeholders.values()),
            "objectives": dump(self.objectives.values()),
            "cells": dump(self.cells.values()),
            "evidence": dump(self.evidence.values()),
            "gaps": dump(self.gaps.values()),
            "questions": dump(self.questions.values()),
            "answers": dump(self.answers.values()),
        }

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[None]:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file_lock.acquire()
        except Timeout as e:
            raise BackendUnavailable(
                f"State file {self.path.name} is locked by another process", backend=self.name
            ) from e
        except OSError as e:
            raise BackendUnavailable(f"Cannot lock state file {self.path.name}: {e}", backend=self.name) from e
        try:
            async with super()._write():
                yield
        finally:
            self._file_lock.release()

    async def _refresh(self) -> None:
        self._load()

    async def _committed(self) -> None:
        content = yaml.dump(
            self._snapshot(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            width=120,
        )
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise BackendUnavailable(f"Cannot write state file {self.path.name}: {e}", backend=self.name) from e
