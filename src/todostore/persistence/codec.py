"""Encoding and decoding of the persisted AppState payload.

The payload is ``AppState`` serialized structurally as JSON with camelCase
field names, tagged with ``meta.schemaVersion``:

    {"todos": [...], "categories": [...],
     "filter": {"status": "all", "categoryId": "all", "search": ""},
     "ui": {"editingTodoId": null}, "meta": {"schemaVersion": 1}}

Decoding is lenient about staleness (dangling references, missing fallback
category, old or missing schema version are left for the Normalizer to
repair) but rejects payloads that are not valid JSON or do not have the
expected shape.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from todostore.state.models import SCHEMA_VERSION, AppState, MetaState

logger = logging.getLogger(__name__)


def encode_state(state: AppState) -> str:
    """Serialize a state to the persisted JSON payload.

    Args:
        state: State to serialize

    Returns:
        JSON string stamped with the current schema version
    """
    stamped = state.model_copy(update={"meta": MetaState(schema_version=SCHEMA_VERSION)})
    return stamped.model_dump_json(by_alias=True)


def decode_state(raw: str | bytes | None) -> AppState | None:
    """Parse a persisted payload.

    Args:
        raw: JSON payload, or None if nothing is stored

    Returns:
        Parsed (not yet normalized) AppState, or None if the payload is
        empty, not valid JSON, or has the wrong shape
    """
    if not raw:
        return None

    try:
        data = json.loads(raw)
    except ValueError as e:
        logger.warning("Discarding unparsable state payload: %s", e)
        return None

    if not isinstance(data, dict):
        logger.warning("Discarding state payload: expected an object, got %s", type(data).__name__)
        return None

    try:
        state = AppState.model_validate(data)
    except ValidationError as e:
        logger.warning("Discarding invalid state payload (%d error(s))", e.error_count())
        return None

    if state.meta.schema_version != SCHEMA_VERSION:
        logger.info(
            "Loaded state with schema version %d (current: %d)",
            state.meta.schema_version,
            SCHEMA_VERSION,
        )
    return state
