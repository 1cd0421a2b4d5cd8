"""
Finite state machine for the payment step.

Every payment attempt follows an explicit path through the state graph.
Each transition replaces the whole state at once; there are no partial
flag updates such as "loading" next to "show instructions".

Usage:
    sm = PaymentStateMachine()
    sm.transition(PaymentTrigger.SUBMIT)
    sm.transition(PaymentTrigger.REDIRECT_REQUIRED)
    assert sm.current_state == PaymentState.REDIRECTING
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class PaymentState(str, Enum):
    """All possible states of a payment attempt."""
    SELECTING_METHOD = "selecting_method"
    SUBMITTING = "submitting"
    REDIRECTING = "redirecting"
    SUCCEEDED = "succeeded"
    AWAITING_MANUAL_CONFIRMATION = "awaiting_manual_confirmation"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentTrigger(str, Enum):
    """Events that cause state transitions."""
    SUBMIT = "submit"
    SUBMIT_REJECTED = "submit_rejected"
    REDIRECT_REQUIRED = "redirect_required"
    PAYMENT_SUCCEEDED = "payment_succeeded"
    MANUAL_CONFIRMATION_REQUIRED = "manual_confirmation_required"
    PAYMENT_FAILED = "payment_failed"
    CANCEL = "cancel"
    RETRY = "retry"


@dataclass(frozen=True)
class Transition:
    """A single valid state transition."""
    from_state: PaymentState
    to_state: PaymentState
    trigger: PaymentTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: PaymentState
    entered_at: datetime
    trigger: Optional[PaymentTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


_OPEN_STATES = (
    PaymentState.SELECTING_METHOD,
    PaymentState.SUBMITTING,
    PaymentState.REDIRECTING,
    PaymentState.AWAITING_MANUAL_CONFIRMATION,
)

TERMINAL_STATES = frozenset(
    {PaymentState.SUCCEEDED, PaymentState.FAILED, PaymentState.CANCELLED}
)


class PaymentStateMachine:
    """
    Deterministic state machine for one payment attempt.

    Any transition missing from the table is rejected with the list of
    triggers that are valid from the current state.
    """

    TRANSITIONS: list[Transition] = [
        # --- Submission ---
        Transition(PaymentState.SELECTING_METHOD, PaymentState.SUBMITTING,
                   PaymentTrigger.SUBMIT),
        Transition(PaymentState.SUBMITTING, PaymentState.SELECTING_METHOD,
                   PaymentTrigger.SUBMIT_REJECTED),

        # --- Server outcomes ---
        Transition(PaymentState.SUBMITTING, PaymentState.REDIRECTING,
                   PaymentTrigger.REDIRECT_REQUIRED),
        Transition(PaymentState.SUBMITTING, PaymentState.SUCCEEDED,
                   PaymentTrigger.PAYMENT_SUCCEEDED),
        Transition(PaymentState.SUBMITTING, PaymentState.AWAITING_MANUAL_CONFIRMATION,
                   PaymentTrigger.MANUAL_CONFIRMATION_REQUIRED),

        # --- Resolution after redirect-return or manual payment ---
        Transition(PaymentState.REDIRECTING, PaymentState.SUCCEEDED,
                   PaymentTrigger.PAYMENT_SUCCEEDED),
        Transition(PaymentState.AWAITING_MANUAL_CONFIRMATION, PaymentState.SUCCEEDED,
                   PaymentTrigger.PAYMENT_SUCCEEDED),

        # --- Retry after failure ---
        Transition(PaymentState.FAILED, PaymentState.SELECTING_METHOD,
                   PaymentTrigger.RETRY),
    ] + [
        # --- Failure and cancellation from any open state ---
        Transition(state, PaymentState.FAILED, PaymentTrigger.PAYMENT_FAILED)
        for state in _OPEN_STATES
    ] + [
        Transition(state, PaymentState.CANCELLED, PaymentTrigger.CANCEL)
        for state in _OPEN_STATES + (PaymentState.FAILED,)
    ]

    def __init__(self) -> None:
        self._current_state = PaymentState.SELECTING_METHOD
        self._history: list[StateEntry] = [
            StateEntry(state=PaymentState.SELECTING_METHOD, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> PaymentState:
        return self._current_state

    def transition(self, trigger: PaymentTrigger) -> PaymentState:
        """
        Execute a state transition.

        Args:
            trigger: The event triggering the transition.

        Returns:
            The new payment state.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Payment transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def can(self, trigger: PaymentTrigger) -> bool:
        return trigger in self.get_valid_triggers()

    def get_valid_triggers(self) -> list[PaymentTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES
