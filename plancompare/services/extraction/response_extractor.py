"""Recover the quote object from a raw model response."""

from typing import Any, Dict

from plancompare.core.exceptions import ResponseShapeError
from plancompare.utils.json_parser import parse_json_safely
from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)

ROOT_KEYS = frozenset({"metadata", "coverages", "planNotes"})


def extract_json_payload(text: str) -> Any:
    """Return the JSON value embedded in ``text``.

    Raises:
        ParseError: If no JSON can be recovered
    """
    return parse_json_safely(text)


def extract_quote_payload(text: str) -> Dict[str, Any]:
    """Parse a model response and enforce the quote root object.

    The root must be an object with exactly the keys ``metadata`` (object),
    ``coverages`` (array) and ``planNotes`` (array).

    Args:
        text: Raw model response

    Returns:
        The parsed root object

    Raises:
        ParseError: If no JSON can be recovered
        ResponseShapeError: If the JSON does not have the required root shape
    """
    payload = extract_json_payload(text)

    if not isinstance(payload, dict):
        raise ResponseShapeError(
            f"Model response root must be an object, got {type(payload).__name__}"
        )

    keys = set(payload)
    if keys != ROOT_KEYS:
        missing = sorted(ROOT_KEYS - keys)
        unexpected = sorted(keys - ROOT_KEYS)
        LOGGER.error(
            "Model response root has unexpected keys",
            extra={"missing": missing, "unexpected": unexpected},
        )
        raise ResponseShapeError(
            f"Model response root must have exactly metadata, coverages and planNotes "
            f"(missing: {missing}, unexpected: {unexpected})"
        )

    if not isinstance(payload["metadata"], dict):
        raise ResponseShapeError("'metadata' must be an object")
    for key in ("coverages", "planNotes"):
        if not isinstance(payload[key], list):
            raise ResponseShapeError(f"'{key}' must be an array")

    LOGGER.debug(
        "Extracted quote payload",
        extra={"coverage_count": len(payload["coverages"]), "note_count": len(payload["planNotes"])},
    )
    return payload
