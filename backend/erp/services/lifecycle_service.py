# Overview: Pure status-transition tables for sales, purchases and returns.

"""
Order lifecycle state machines.

Each order kind has an explicit adjacency map: current status -> the set of
statuses it may move to. Terminal statuses map to an empty set. Anything
not listed is rejected, so the tables are total by construction.

    SALE:     pending -> confirmed -> shipped -> delivered
              (any non-terminal status may also go to cancelled)

    PURCHASE: pending -> approved -> ordered -> partial -> received
              ordered -> received directly when fully received
              (any non-terminal status may also go to cancelled)

    RETURN:   pending -> approved -> completed
              (pending and approved may also go to cancelled)

This module has no persistence dependency; services call it before
touching any rows.
"""

from __future__ import annotations

from typing import Literal

from ..errors import InvalidTransitionError, ValidationError

OrderKind = Literal["sale", "purchase", "return"]

SALE_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered", "cancelled"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}

PURCHASE_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"approved", "cancelled"}),
    "approved": frozenset({"ordered", "cancelled"}),
    "ordered": frozenset({"partial", "received", "cancelled"}),
    "partial": frozenset({"received", "cancelled"}),
    "received": frozenset(),
    "cancelled": frozenset(),
}

RETURN_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"approved", "cancelled"}),
    "approved": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}

TRANSITIONS: dict[str, dict[str, frozenset[str]]] = {
    "sale": SALE_TRANSITIONS,
    "purchase": PURCHASE_TRANSITIONS,
    "return": RETURN_TRANSITIONS,
}


def statuses(kind: OrderKind) -> list[str]:
    """All statuses known for an order kind, in table order."""
    return list(_table(kind).keys())


def _table(kind: str) -> dict[str, frozenset[str]]:
    try:
        return TRANSITIONS[kind]
    except KeyError:
        raise ValueError(f"Unknown order kind '{kind}'") from None


def validate_status(kind: OrderKind, status) -> str:
    """
    Validate that a status value is one of the allowed states.

    Raises:
        ValidationError: If status is not a known state for this kind
    """
    table = _table(kind)
    if not isinstance(status, str) or status not in table:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(table.keys())}"
        )
    return status


def can_transition(kind: OrderKind, current: str, requested: str) -> bool:
    """Return True only if (current -> requested) is listed for this kind."""
    return requested in _table(kind).get(current, frozenset())


def is_terminal(kind: OrderKind, status: str) -> bool:
    return not _table(kind).get(status)


def require_transition(kind: OrderKind, current: str, requested: str) -> None:
    """
    Raise InvalidTransitionError unless the move is allowed.

    Unknown requested statuses are a ValidationError, not a transition error.
    """
    validate_status(kind, requested)
    if not can_transition(kind, current, requested):
        raise InvalidTransitionError(
            f"Cannot transition {kind} from '{current}' to '{requested}'",
            details={
                "current_status": current,
                "requested_status": requested,
                "allowed": sorted(_table(kind).get(current, frozenset())),
            },
        )
