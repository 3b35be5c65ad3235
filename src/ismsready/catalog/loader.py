"""Control catalog YAML loading.

Catalogs ship as package data under ismsready/data/catalogs; a workspace
may add its own directory of catalogs which takes precedence.
"""

from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path
from typing import Optional

import yaml

from ..core.errors import NotFoundError
from ..models.catalog import Control
from ..models.questionnaire import Question
from .query import get_all_controls

logger = logging.getLogger(__name__)


def bundled_catalogs_dir() -> Path:
    return Path(str(resources.files("ismsready.data.catalogs")))


def get_available_catalogs(catalogs_dir: Path) -> list[dict]:
    """Get list of all control catalogs in a directory."""
    catalogs: list[dict] = []

    if not catalogs_dir.exists():
        return catalogs

    for yaml_file in sorted(catalogs_dir.rglob("*.yaml")):
        try:
            content = yaml.safe_load(yaml_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            logger.warning("Skipping unreadable catalog %s: %s", yaml_file.name, e)
            continue
        if content and content.get("id"):
            catalogs.append({
                "id": content["id"],
                "name": content.get("name", ""),
                "version": str(content.get("version", "")),
                "description": content.get("description", ""),
                "path": str(yaml_file),
            })

    return catalogs


def get_catalog_by_id(catalog_id: str, extra_dir: Optional[Path] = None) -> Optional[dict]:
    """Load a catalog by ID, checking the extra directory before bundled data."""
    search_dirs = [d for d in (extra_dir, bundled_catalogs_dir()) if d]
    for catalogs_dir in search_dirs:
        match = next(
            (c for c in get_available_catalogs(catalogs_dir) if c["id"] == catalog_id),
            None,
        )
        if match:
            return yaml.safe_load(Path(match["path"]).read_text(encoding="utf-8"))
    return None


def load_catalog_controls(config: dict) -> list[Control]:
    """Resolve the configured catalog and return its controls."""
    catalog_config = config.get("catalog") or {}
    catalog_id = catalog_config.get("id", "iso27001-2022")
    extra = catalog_config.get("path")
    catalog = get_catalog_by_id(catalog_id, Path(extra) if extra else None)
    if catalog is None:
        raise NotFoundError("catalog", catalog_id)
    controls = get_all_controls(catalog)
    logger.debug("Loaded %d controls from catalog %s", len(controls), catalog_id)
    return controls


def load_bundled_questions() -> list[Question]:
    """Questions from the bundled readiness questionnaire."""
    source = resources.files("ismsready.data").joinpath("questionnaire.yaml")
    content = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
    return [Question.model_validate(row) for row in content.get("questions", []) or []]
