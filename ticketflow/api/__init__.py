from ticketflow.api.client import ApiClient, TokenProvider

__all__ = ["ApiClient", "TokenProvider"]
