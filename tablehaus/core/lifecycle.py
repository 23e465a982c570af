"""
Order lifecycle state machine.

Single source of truth for which statuses exist per channel, which of them
are active (occupy a table and show up under a customer's current orders),
the display ordinal used by progress trackers, and whether staff may export
the proof of payment.
"""

import enum
from typing import Dict, FrozenSet, List, Optional, Tuple


class Channel(str, enum.Enum):
    """Service channel"""
    DINE_IN = "dine_in"
    PICKUP = "pickup"


class OrderStatus(str, enum.Enum):
    """Every status a reservation can hold, across both channels"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    VOID = "void"


TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.REJECTED,
    OrderStatus.VOID,
})

ACTIVE_STATUSES: FrozenSet[OrderStatus] = frozenset(OrderStatus) - TERMINAL_STATUSES

INITIAL_STATUS = OrderStatus.PENDING

# Happy path per channel, in display order
MAIN_PATH: Dict[Channel, Tuple[OrderStatus, ...]] = {
    Channel.DINE_IN: (
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.SEATED,
        OrderStatus.COMPLETED,
    ),
    Channel.PICKUP: (
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.COMPLETED,
    ),
}

# Exits reachable from any non-terminal status
ABORT_STATUSES: Dict[Channel, Tuple[OrderStatus, ...]] = {
    Channel.DINE_IN: (OrderStatus.CANCELLED,),
    Channel.PICKUP: (OrderStatus.CANCELLED, OrderStatus.REJECTED, OrderStatus.VOID),
}

ACTIVE_POLL_SECONDS = 15
IDLE_POLL_SECONDS = 45


def _build_transitions(channel: Channel) -> Dict[OrderStatus, Tuple[OrderStatus, ...]]:
    path = MAIN_PATH[channel]
    table: Dict[OrderStatus, Tuple[OrderStatus, ...]] = {}
    for index, status in enumerate(path):
        if status in TERMINAL_STATUSES:
            table[status] = ()
        else:
            table[status] = (path[index + 1],) + ABORT_STATUSES[channel]
    for status in ABORT_STATUSES[channel]:
        table[status] = ()
    return table


ALLOWED_TRANSITIONS: Dict[Channel, Dict[OrderStatus, Tuple[OrderStatus, ...]]] = {
    channel: _build_transitions(channel) for channel in Channel
}


def statuses_for(channel: Channel) -> List[OrderStatus]:
    """All statuses that exist for a channel"""
    return list(ALLOWED_TRANSITIONS[Channel(channel)])


def is_active(status: OrderStatus) -> bool:
    """Whether a status still occupies its table / counts as a current order"""
    return OrderStatus(status) in ACTIVE_STATUSES


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def allowed_transitions(channel: Channel, current: OrderStatus) -> Tuple[OrderStatus, ...]:
    """Statuses reachable in one step, empty for terminal or foreign statuses"""
    return ALLOWED_TRANSITIONS[Channel(channel)].get(OrderStatus(current), ())


def can_transition(channel: Channel, current: OrderStatus, new: OrderStatus) -> bool:
    return OrderStatus(new) in allowed_transitions(channel, current)


def display_ordinal(channel: Channel, status: OrderStatus) -> Optional[int]:
    """Zero-based position on the channel's progress bar, None when off the main path"""
    path = MAIN_PATH[Channel(channel)]
    status = OrderStatus(status)
    if status not in path:
        return None
    return path.index(status)


def progress_steps(channel: Channel) -> List[OrderStatus]:
    """Statuses rendered as progress-bar steps"""
    return list(MAIN_PATH[Channel(channel)])


def proof_export_allowed(channel: Channel, status: OrderStatus) -> bool:
    """Proof of payment may be downloaded once the reservation is confirmed or further along"""
    ordinal = display_ordinal(channel, status)
    if ordinal is None:
        return False
    return ordinal >= display_ordinal(channel, OrderStatus.CONFIRMED)


def polling_interval(status: OrderStatus) -> int:
    """Seconds between tracking refreshes; faster while the order is still moving"""
    return ACTIVE_POLL_SECONDS if is_active(status) else IDLE_POLL_SECONDS
