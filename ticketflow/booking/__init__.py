from ticketflow.booking.orchestrator import BookingFlowState, BookingOrchestrator

__all__ = ["BookingOrchestrator", "BookingFlowState"]
