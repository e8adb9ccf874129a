"""Decimal department identifier arithmetic.

Digit position encodes depth: a node whose id ends in ``z`` zero digits keeps
its children in the digit just above the last zero, i.e. at offsets
``i * 10**(z-1)``. ``900`` (z=2) owns ``910..980``; ``910`` (z=1) owns
``911..918``; ``911`` has no trailing zero and therefore no children.
"""

from __future__ import annotations


def trailing_zeros(value: int) -> int:
    """Count trailing zero digits of a positive id (``0`` for ``1234``)."""
    if value <= 0:
        raise ValueError(f"id must be positive, got {value}")
    count = 0
    while value % 10 == 0:
        value //= 10
        count += 1
    return count


def can_have_children(parent_id: int) -> bool:
    return parent_id > 0 and parent_id % 10 == 0


def child_increment(parent_id: int) -> int:
    """Distance between consecutive child slots of ``parent_id``."""
    if not can_have_children(parent_id):
        raise ValueError(f"department {parent_id} has no trailing zero and cannot own children")
    return 10 ** (trailing_zeros(parent_id) - 1)


def child_candidates(parent_id: int, slots: int) -> tuple[int, ...]:
    """Ordered child slots ``parent + i * increment`` for ``i = 1..slots``."""
    increment = child_increment(parent_id)
    return tuple(parent_id + i * increment for i in range(1, slots + 1))


def next_root_id(max_id: int) -> int:
    """Round ``max_id`` up to the start of the next leading-digit bucket.

    ``2345 -> 3000``, ``999 -> 1000``, ``9000 -> 10000``.
    """
    if max_id <= 0:
        raise ValueError(f"max_id must be positive, got {max_id}")
    digits = len(str(max_id))
    increment = 10 ** (digits - 1)
    highest_digit = (max_id // increment) * increment
    return highest_digit + increment


def is_valid_id(value: int, max_id_num: int) -> bool:
    return 0 < value < max_id_num


__all__ = [
    "can_have_children",
    "child_candidates",
    "child_increment",
    "is_valid_id",
    "next_root_id",
    "trailing_zeros",
]
