"""
Order number formatting and generation.

Order numbers have the shape ``PREFIX-NNNNNN``: ``DRAFT`` while the order is
a draft, otherwise the first three letters of the client name upper-cased.
The numeric part is shared across prefixes and grows monotonically.
"""

import re
from typing import Iterable, Optional

DRAFT_PREFIX = "DRAFT"
DEFAULT_PREFIX = "ORD"
FIRST_ORDER_NUMBER = 1200
NUMBER_WIDTH = 6

_NAN_ARTEFACT = re.compile(r"000NaN|NaN")
_NUMERIC_SUFFIX = re.compile(r"-(\d{6})$")


def format_order_number(order_number: Optional[str]) -> str:
    """
    Normalise an order number for display.

    Strips ``NaN`` artefacts left by earlier number generators and zero-pads
    the numeric part to six digits. Numbers that are not ``PREFIX-NUMBER``
    are returned cleaned but otherwise untouched.
    """
    if not order_number:
        return "N/A"

    cleaned = _NAN_ARTEFACT.sub("", order_number)
    parts = cleaned.split("-")
    if len(parts) != 2:
        return cleaned

    prefix, number = parts
    return f"{prefix}-{number.zfill(NUMBER_WIDTH)}"


def is_draft_order_number(order_number: Optional[str]) -> bool:
    return bool(order_number) and order_number.startswith(f"{DRAFT_PREFIX}-")


def client_prefix(client_name: Optional[str]) -> str:
    """Three-letter upper-case prefix derived from a client name."""
    if not client_name or not client_name.strip():
        return DEFAULT_PREFIX
    return client_name.strip()[:3].upper()


def convert_draft_order_number(order_number: str, client_name: str) -> str:
    """
    Swap the draft prefix for the client prefix, keeping the number.

    Example: ``DRAFT-001203`` for client "Halcyon" becomes ``HAL-001203``.
    Non-draft numbers are returned unchanged.
    """
    if not is_draft_order_number(order_number):
        return order_number
    number = order_number.split("-", 1)[1]
    return f"{client_prefix(client_name)}-{number}"


def extract_sequence(order_number: Optional[str]) -> int:
    """Numeric part of a well-formed order number, 0 otherwise."""
    if not order_number:
        return 0
    match = _NUMERIC_SUFFIX.search(order_number)
    return int(match.group(1)) if match else 0


def next_order_number(
    existing: Iterable[Optional[str]],
    is_draft: bool,
    client_name: Optional[str] = None,
) -> str:
    """
    Generate the next sequential order number.

    Args:
        existing: Order numbers already issued (any prefix)
        is_draft: Whether the new order starts as a draft
        client_name: Client name used for the prefix of non-draft orders

    Returns:
        Order number one above the highest existing sequence, starting at
        1200 when none exist
    """
    numbers = [n for n in (extract_sequence(o) for o in existing) if n > 0]
    next_number = max(numbers) + 1 if numbers else FIRST_ORDER_NUMBER

    prefix = DRAFT_PREFIX if is_draft else client_prefix(client_name)
    return f"{prefix}-{str(next_number).zfill(NUMBER_WIDTH)}"
