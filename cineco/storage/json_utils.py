"""JSON codec for list-valued decision columns.

Bad stored values decode to an empty list with a warning; the record's
other fields stay readable.
"""

import json
from typing import Iterable

from cineco.logging import get_logger

logger = get_logger(__name__)


def encode_int_list(values: Iterable[int] | None) -> str:
    """Serialize integer IDs as a compact JSON array."""
    if not values:
        return "[]"
    return json.dumps([int(v) for v in values], separators=(",", ":"))


def decode_int_list(text: str | None) -> list[int]:
    """Parse a JSON array of integer IDs.

    Args:
        text: Stored column value

    Returns:
        Parsed IDs, or an empty list for missing or malformed values
    """
    if not text:
        return []

    try:
        value = json.loads(text)
        if not isinstance(value, list):
            raise ValueError(f"expected a list, got {type(value).__name__}")
        return [int(v) for v in value]
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to decode ID list {text[:50]!r}: {e}")
        return []
