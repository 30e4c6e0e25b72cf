"""Opaque id generation for todos and categories."""

from __future__ import annotations

import uuid


def generate_id() -> str:
    """Return a new unique, opaque id string."""
    return str(uuid.uuid4())
