from ticketflow.seats.board import SeatBoard
from ticketflow.seats.channel import ChannelState, SeatAvailabilityChannel

__all__ = ["SeatBoard", "SeatAvailabilityChannel", "ChannelState"]
