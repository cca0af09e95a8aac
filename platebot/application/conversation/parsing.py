"""Parsing of free-text weight replies and list-row ids."""

import math
import re

from platebot.application.conversation.messages import EDIT_ITEM_PREFIX
from platebot.domain.shared.errors import InvalidSelectionError, InvalidWeightError

_UNIT_SUFFIX = re.compile(r"\s*(gramas|grama|gr|g)\.?$", re.IGNORECASE)


def parse_weight(text: str) -> float:
    """
    Parse a weight reply in grams.

    Accepts ``.`` or ``,`` as decimal separator, surrounding whitespace and
    an optional unit suffix (``g``, ``gr``, ``gramas``).

    Args:
        text: Raw message body

    Returns:
        Weight in grams (non-negative, finite)

    Raises:
        InvalidWeightError: Not a number, negative or not finite

    Example:
        >>> parse_weight(" 120,5 g ")
        120.5
    """
    cleaned = _UNIT_SUFFIX.sub("", (text or "").strip()).strip().replace(",", ".")
    if not cleaned:
        raise InvalidWeightError(f"Empty weight: {text!r}")

    try:
        value = float(cleaned)
    except ValueError as e:
        raise InvalidWeightError(f"Not a number: {text!r}") from e

    if not math.isfinite(value) or value < 0:
        raise InvalidWeightError(f"Weight out of range: {text!r}")

    return value


def is_edit_item_id(reply_id: str) -> bool:
    return reply_id.startswith(EDIT_ITEM_PREFIX)


def parse_edit_index(reply_id: str) -> int:
    """
    Extract the item index from an ``edit_item_<i>`` row id.

    Raises:
        InvalidSelectionError: Prefix missing or index not a non-negative integer
    """
    if not is_edit_item_id(reply_id):
        raise InvalidSelectionError(f"Not an edit row: {reply_id!r}")

    raw = reply_id[len(EDIT_ITEM_PREFIX):]
    if not (raw.isascii() and raw.isdigit()):
        raise InvalidSelectionError(f"Invalid item index: {reply_id!r}")

    return int(raw)
