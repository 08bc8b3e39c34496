"""
Order lifecycle state machine.

Defines the canonical order states, the terminal subset, and the table of
allowed transitions. The table is the only source of truth: a pair that is
not listed is invalid, self-transitions are always invalid, and nothing
leaves a terminal state.

Everything here is pure and side-effect free.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from agri_rental.core.enums import OrderStatus

INITIAL_STATE: OrderStatus = OrderStatus.DRAFT

# Terminal order states: retained for audit, never left.
TERMINAL_STATES: frozenset[OrderStatus] = frozenset(
    {
        OrderStatus.CLOSED,
        OrderStatus.REJECTED,
        OrderStatus.CANCELLED,
    }
)


# Key   : current state
# Value : set of allowed next states
ORDER_ALLOWED_TRANSITIONS: Mapping[OrderStatus, frozenset[OrderStatus]] = MappingProxyType(
    {
        OrderStatus.DRAFT: frozenset({OrderStatus.INTEREST_RAISED}),

        OrderStatus.INTEREST_RAISED: frozenset(
            {
                OrderStatus.UNDER_REVIEW,
                OrderStatus.ACCEPTED,
                OrderStatus.REJECTED,
                OrderStatus.CANCELLED,
            }
        ),

        OrderStatus.UNDER_REVIEW: frozenset(
            {
                OrderStatus.ACCEPTED,
                OrderStatus.REJECTED,
            }
        ),

        OrderStatus.ACCEPTED: frozenset({OrderStatus.PICKUP_SCHEDULED}),

        OrderStatus.PICKUP_SCHEDULED: frozenset({OrderStatus.ACTIVE}),

        OrderStatus.ACTIVE: frozenset({OrderStatus.COMPLETED}),

        OrderStatus.COMPLETED: frozenset({OrderStatus.CLOSED}),
    }
)


def is_terminal_state(state: OrderStatus) -> bool:
    """Return True if the given state is terminal."""
    return state in TERMINAL_STATES


def allowed_next_states(current: OrderStatus | None) -> frozenset[OrderStatus]:
    """Return the states reachable in one step from ``current``."""
    if current is None or is_terminal_state(current):
        return frozenset()
    return ORDER_ALLOWED_TRANSITIONS.get(current, frozenset())


def can_transition(current: OrderStatus | None, requested: OrderStatus | None) -> bool:
    """Return True if the transition current -> requested is allowed."""
    if current is None or requested is None:
        return False
    if current == requested:
        return False
    return requested in allowed_next_states(current)


class OrderStateMachine:
    """Read-only facade over the transition table, injectable into services."""

    transitions = ORDER_ALLOWED_TRANSITIONS
    terminal_states = TERMINAL_STATES
    initial_state = INITIAL_STATE

    @staticmethod
    def can_transition(current: OrderStatus | None, requested: OrderStatus | None) -> bool:
        return can_transition(current, requested)

    @staticmethod
    def allowed_next_states(current: OrderStatus | None) -> frozenset[OrderStatus]:
        return allowed_next_states(current)

    @staticmethod
    def is_terminal(state: OrderStatus) -> bool:
        return is_terminal_state(state)
