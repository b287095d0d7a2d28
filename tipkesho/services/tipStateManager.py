r"""
Tip State Manager
=================

Finite state machine governing tip ledger status transitions. Every status
change the ledger persists is one of the transitions listed here.

State machine overview::

    initiated --> awaiting_provider --> settled
                                   \--> failed_initiation
                                   \--> error_initiation

    initiated --> settled            (direct-ledger path, no provider call)
    initiated --> error_initiation   (provider call never completed)

``settled``, ``failed_initiation`` and ``error_initiation`` are terminal: a
tip never regresses from, or moves between, terminal states.
"""

from __future__ import annotations

from dataclasses import dataclass

from tipkesho.models.tip import TipStatus


@dataclass(frozen=True)
class TransitionResult:
    """Result of a transition validation attempt."""
    allowed: bool
    reason: str | None = None


VALID_TRANSITIONS: dict[TipStatus, set[TipStatus]] = {
    TipStatus.INITIATED: {
        TipStatus.AWAITING_PROVIDER,
        TipStatus.SETTLED,
        TipStatus.FAILED_INITIATION,
        TipStatus.ERROR_INITIATION,
    },
    TipStatus.AWAITING_PROVIDER: {
        TipStatus.SETTLED,
        TipStatus.FAILED_INITIATION,
        TipStatus.ERROR_INITIATION,
    },
    TipStatus.SETTLED: set(),
    TipStatus.FAILED_INITIATION: set(),
    TipStatus.ERROR_INITIATION: set(),
}

TERMINAL_STATUSES: frozenset[TipStatus] = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)

# Statuses a conditional ledger UPDATE may move out of
OPEN_STATUSES: frozenset[TipStatus] = frozenset(
    status for status in TipStatus if status not in TERMINAL_STATUSES
)


def is_terminal(status: TipStatus) -> bool:
    return status in TERMINAL_STATUSES


def sources_for(target: TipStatus) -> frozenset[TipStatus]:
    """Return every status from which ``target`` can be reached directly."""
    return frozenset(
        status for status, targets in VALID_TRANSITIONS.items() if target in targets
    )


def validate_transition(current: TipStatus, new: TipStatus) -> TransitionResult:
    """Validate whether a tip status transition is allowed.

    Returns a ``TransitionResult`` with ``allowed=True`` if the transition is
    permitted, or ``allowed=False`` with a human-readable ``reason``.
    """
    allowed_targets = VALID_TRANSITIONS.get(current, set())
    if new in allowed_targets:
        return TransitionResult(allowed=True)

    if is_terminal(current):
        reason = f"Tip is already in terminal status '{current.value}'."
    else:
        reason = (
            f"Invalid transition: '{current.value}' -> '{new.value}'. "
            f"Allowed transitions from '{current.value}': "
            f"{', '.join(s.value for s in sorted(allowed_targets, key=lambda s: s.value))}."
        )
    return TransitionResult(allowed=False, reason=reason)
