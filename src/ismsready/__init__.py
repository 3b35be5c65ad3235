"""ismsready - ISMS applicability and readiness engine."""

__version__ = "1.0.0"
