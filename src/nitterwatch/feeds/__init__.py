"""Nitter feed access.

Shared utilities for feed identities.
"""

from __future__ import annotations

import re

from nitterwatch.errors import InvalidIdentity

# Nitter user names: letters, digits, underscores; hyphens and dots for lists and mirrors
_SAFE_IDENTITY_PATTERN = re.compile(r"^[A-Za-z0-9_\-.]+$")

# Max length for identities used in URL paths
_MAX_IDENTITY_LENGTH = 64


def strip_identity(value: str) -> str:
    """Drop surrounding whitespace and a leading ``@``."""
    return value.strip().removeprefix("@")


def normalize_identity(value: str) -> str:
    """Validate and normalize a feed identity typed by a user.

    Strips whitespace and a leading ``@`` so ``@alice`` and ``alice`` name the
    same feed.

    Raises:
        InvalidIdentity: The value is empty, too long, or contains characters
            that are unsafe in a URL path.
    """
    value = strip_identity(value)

    if not value:
        raise InvalidIdentity(value, "empty")

    if len(value) > _MAX_IDENTITY_LENGTH:
        raise InvalidIdentity(value, f"longer than {_MAX_IDENTITY_LENGTH} characters")

    if not _SAFE_IDENTITY_PATTERN.match(value) or value in {".", ".."}:
        raise InvalidIdentity(value, "only letters, digits, '_', '-' and '.' are allowed")

    return value
