from ticketflow.payment.orchestrator import (
    PaymentOrchestrator,
    PaymentOutcome,
    open_in_browser,
)
from ticketflow.payment.poller import (
    DisplayStatus,
    PaymentStatusPoller,
    PaymentStatusView,
    ViewState,
)
from ticketflow.payment.state_machine import (
    InvalidTransitionError,
    PaymentState,
    PaymentStateMachine,
    PaymentTrigger,
)

__all__ = [
    "PaymentOrchestrator",
    "PaymentOutcome",
    "open_in_browser",
    "PaymentStatusPoller",
    "PaymentStatusView",
    "DisplayStatus",
    "ViewState",
    "PaymentStateMachine",
    "PaymentState",
    "PaymentTrigger",
    "InvalidTransitionError",
]
