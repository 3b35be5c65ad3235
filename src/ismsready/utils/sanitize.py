"""Error message sanitization to prevent credential leakage from backends."""

from __future__ import annotations

import os
import re


def sanitize_error(message: str) -> str:
    """Redact API keys, bearer tokens and home paths from backend error text."""
    if not message:
        return message

    sanitized = message
    sanitized = re.sub(r"Bearer\s+\S+", "Bearer [REDACTED]", sanitized)
    sanitized = re.sub(r"(?i)apikey[:=]\s*\S+", "apikey: [REDACTED]", sanitized)
    sanitized = re.sub(r"(?i)authorization:\s*\S+", "Authorization: [REDACTED]", sanitized)
    # Supabase/PostgREST keys are JWTs
    sanitized = re.sub(
        r"eyJ[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+",
        "[REDACTED_KEY]",
        sanitized,
    )

    home = os.environ.get("USERPROFILE") or os.environ.get("HOME") or ""
    if home and len(home) > 1:
        sanitized = sanitized.replace(home, "[USER_HOME]")

    return sanitized
