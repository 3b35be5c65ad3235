"""Read-only catalog queries: extraction, prefix lookup and free-text search."""

from __future__ import annotations

import re

from ..models.catalog import Control


def reference_sort_key(reference: str) -> tuple:
    """Natural sort key so A.5.2 orders before A.5.10."""
    parts = re.split(r"(\d+)", reference)
    return tuple((0, int(p)) if p.isdigit() else (1, p.lower()) for p in parts if p)


def get_all_controls(catalog: dict) -> list[Control]:
    """Extract all controls from a catalog document.

    Handles both grouped catalogs (domains -> controls) and flat ones where
    each control names its own domain.
    """
    controls: list[Control] = []

    for domain in catalog.get("domains", []) or []:
        for ctrl in domain.get("controls", []) or []:
            controls.append(Control(
                id=str(ctrl.get("id") or ctrl["reference"]),
                reference=str(ctrl["reference"]),
                description=ctrl.get("description", ""),
                domain=domain.get("name", ""),
            ))

    for ctrl in catalog.get("controls", []) or []:
        controls.append(Control(
            id=str(ctrl.get("id") or ctrl["reference"]),
            reference=str(ctrl["reference"]),
            description=ctrl.get("description", ""),
            domain=ctrl.get("domain", ""),
        ))

    return sort_controls(controls)


def sort_controls(controls: list[Control]) -> list[Control]:
    return sorted(controls, key=lambda c: reference_sort_key(c.reference))


def controls_by_prefix(controls: list[Control], prefix: str) -> list[Control]:
    """Controls whose reference starts with prefix, e.g. "A.8" for technological controls."""
    needle = prefix.strip().lower()
    return [c for c in controls if c.reference.lower().startswith(needle)]


def search_controls(controls: list[Control], term: str) -> list[Control]:
    """Case-insensitive substring match on reference or description."""
    needle = term.strip().lower()
    if not needle:
        return list(controls)
    return [
        c for c in controls
        if needle in c.reference.lower() or needle in c.description.lower()
    ]


def controls_by_domain(controls: list[Control]) -> dict[str, list[Control]]:
    """Group controls by domain, keeping first-seen domain order."""
    grouped: dict[str, list[Control]] = {}
    for ctrl in controls:
        grouped.setdefault(ctrl.domain, []).append(ctrl)
    return grouped
