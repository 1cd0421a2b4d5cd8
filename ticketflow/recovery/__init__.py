from ticketflow.recovery.store import RecoveryStore

__all__ = ["RecoveryStore"]
