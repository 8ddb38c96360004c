"""JSON recovery for model responses."""

import json
import re
from typing import Any

from plancompare.core.exceptions import ParseError
from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)

# First fenced block, with or without a language tag
FENCED_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def parse_json_safely(text: str) -> Any:
    """Recover a JSON value from free-form model output.

    Two attempts are made, in order: the interior of the first fenced
    code block, then the whole text. No further repair is attempted.

    Args:
        text: Raw model response text

    Returns:
        The parsed JSON value

    Raises:
        ParseError: If neither attempt yields valid JSON
    """
    if not text or not text.strip():
        raise ParseError("Model response is empty")

    match = FENCED_BLOCK_PATTERN.search(text)
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError as e:
            LOGGER.debug(
                "Fenced block is not valid JSON, trying whole text",
                extra={"error": str(e)},
            )

    try:
        return json.loads(text.strip())
    except json.JSONDecodeError as e:
        LOGGER.error(
            "Failed to parse JSON from model response",
            extra={"preview": text[:200], "error": str(e)},
        )
        raise ParseError("Could not parse JSON from model response", original_error=e) from e
