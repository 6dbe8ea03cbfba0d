"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Maximum size for a single uploaded image (post background, avatar, cover, taxonomy art).
# Configured via .env: CARDWALL_IMAGE_SIZE_LIMIT=5242880  (5 MiB)
CARDWALL_IMAGE_SIZE_LIMIT_BYTES: int = _int_env("CARDWALL_IMAGE_SIZE_LIMIT", 5 * 1024 * 1024)

# Public URL prefix under which vault files are served.
VAULT_PUBLIC_PREFIX: str = os.getenv("VAULT_PUBLIC_PREFIX", "/vault")

# Number of characters of comment/reply text copied into a notification (at most 197).
CARDWALL_SNIPPET_LENGTH: int = _int_env("CARDWALL_SNIPPET_LENGTH", 100)

# Attempts for a post/user delete cascade when the store reports a transient error.
CARDWALL_CASCADE_ATTEMPTS: int = max(1, _int_env("CARDWALL_CASCADE_ATTEMPTS", 2))

# Tags accepted on a single post.
CARDWALL_MAX_TAGS_PER_POST: int = _int_env("CARDWALL_MAX_TAGS_PER_POST", 30)
