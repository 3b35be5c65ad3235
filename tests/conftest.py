"""Shared fixtures for ismsready tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from ismsready.models.catalog import Control
from ismsready.models.questionnaire import Question
from ismsready.models.scope import Boundary, BoundaryType, Project
from ismsready.store.memory import MemoryStore

USER = "user-1"


@pytest.fixture
def controls() -> list[Control]:
    """A small catalog slice, deliberately out of natural order."""
    return [
        Control(id="A.5.10", reference="A.5.10", description="Acceptable use of information", domain="Organizational controls"),
        Control(id="A.5.1", reference="A.5.1", description="Policies for information security", domain="Organizational controls"),
        Control(id="A.8.1", reference="A.8.1", description="User endpoint devices", domain="Technological controls"),
        Control(id="A.5.2", reference="A.5.2", description="Information security roles", domain="Organizational controls"),
    ]


@pytest.fixture
def questions() -> list[Question]:
    return [
        Question(id="q1", text="Is the ISMS scope documented?", domain="Context"),
        Question(id="q2", text="Is there an approved policy?", domain="Leadership"),
    ]


@pytest.fixture
def store(controls: list[Control], questions: list[Question]) -> MemoryStore:
    return MemoryStore(controls=controls, questions=questions)


@pytest.fixture
def project(store: MemoryStore) -> Project:
    record = Project(name="Acme ISMS", owner_id=USER)
    store.projects[record.id] = record
    return record


@pytest.fixture
def boundaries(store: MemoryStore, project: Project) -> list[Boundary]:
    """Two in-scope boundaries for the project."""
    records = [
        Boundary(project_id=project.id, name="Finance", type=BoundaryType.DEPARTMENT, owner_id=USER),
        Boundary(project_id=project.id, name="Payments API", type=BoundaryType.SYSTEM, owner_id=USER),
    ]
    for record in records:
        store.boundaries[record.id] = record
    return records


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Workspace directory with an .isms config using the file store."""
    path = tmp_path / "acme"
    isms_dir = path / ".isms"
    isms_dir.mkdir(parents=True)
    (isms_dir / "config.yaml").write_text(
        'project:\n  name: "acme"\n\nstore:\n  backend: yaml\n',
        encoding="utf-8",
    )
    return path
