"""
Command-line entry point for the booking orchestration core.

Usage:
    python main.py search --origin 1 --destination 2 --date 2024-06-01
    python main.py search --origin 1 --destination 2 --date 2024-06-01 --time-of-day morning --sort price
    python main.py status TXN-123
    python main.py booking BK20241201123456ABCD --phone 0788123456
    python main.py resume
"""

import argparse
import asyncio
import logging
import sys

from ticketflow.config import settings
from ticketflow.errors import TicketflowError
from ticketflow.payment.poller import PaymentStatusView, ViewState
from ticketflow.search.engine import ScheduleView
from ticketflow.search.filters import SortOrder, TimeOfDay
from ticketflow.session import BookingSession


def _token() -> str:
    return settings.api.token


def _format_schedule(view: ScheduleView) -> str:
    schedule = view.schedule
    agency = schedule.agency_route.agency
    return (
        f"#{schedule.id}  {schedule.departure_time.strftime('%H:%M')}  "
        f"{schedule.origin.name} -> {schedule.destination.name}  "
        f"{schedule.price:.0f} {settings.payment.currency}  "
        f"{view.available_seats} seats"
        f"{'' if view.bookable else '  (not bookable)'}"
        f"{'  ' + agency.agency_name if agency and agency.agency_name else ''}"
    )


def _format_status(view: PaymentStatusView) -> str:
    if view.state == ViewState.NO_REFERENCE:
        return "No payment reference to check."
    if view.state == ViewState.ERROR:
        return f"Error: {view.error}"
    transaction = view.transaction
    lines = [
        f"Reference: {transaction.transaction_reference}",
        f"Status:    {view.display_status.value} ({view.display_status.message})",
    ]
    if transaction.amount is not None:
        lines.append(f"Amount:    {transaction.amount:.0f} {transaction.currency or ''}".rstrip())
    if transaction.instructions:
        lines.append(f"Instructions: {transaction.instructions}")
    if transaction.failure_reason:
        lines.append(f"Reason:    {transaction.failure_reason}")
    return "\n".join(lines)


async def _search(args: argparse.Namespace) -> int:
    async with BookingSession(token_provider=_token) as session:
        result = await session.search(args.origin, args.destination, args.date)
        if result.no_matches:
            sys.stdout.write("No schedules found for this route and date.\n")
            return 0
        schedules = result.refine(args.time_of_day, args.sort)
        if not schedules:
            sys.stdout.write("No schedules match the selected filters.\n")
            return 0
        for view in session.search_engine.overlay(schedules):
            sys.stdout.write(_format_schedule(view) + "\n")
    return 0


async def _status(args: argparse.Namespace) -> int:
    async with BookingSession(token_provider=_token) as session:
        view = await session.poller.check_status(args.reference)
    sys.stdout.write(_format_status(view) + "\n")
    return 1 if view.state == ViewState.ERROR else 0


async def _lookup(args: argparse.Namespace) -> int:
    async with BookingSession(token_provider=_token) as session:
        booking = await session.bookings.find_by_reference(
            args.reference, phone_number=args.phone, email=args.email
        )
    sys.stdout.write(
        f"Booking:   {booking.booking_reference} ({booking.status.value})\n"
        f"Route:     {booking.schedule.origin.name} -> {booking.schedule.destination.name}  "
        f"{booking.schedule.departure_date}\n"
        f"Seats:     {booking.number_of_seats}  total {booking.total_amount:.0f} {settings.payment.currency}\n"
    )
    return 0


async def _resume(args: argparse.Namespace) -> int:
    async with BookingSession(token_provider=_token) as session:
        resumed = await session.resume_after_redirect()
    if resumed.booking is not None:
        sys.stdout.write(
            f"Booking:   {resumed.booking.booking_reference} ({resumed.booking.status.value})\n"
        )
    elif resumed.record is not None:
        sys.stdout.write(f"Booking:   {resumed.record.booking_reference}\n")
    if resumed.booking_error:
        sys.stdout.write(f"Booking lookup failed: {resumed.booking_error}\n")
    sys.stdout.write(_format_status(resumed.view) + "\n")
    return 1 if resumed.view.state == ViewState.ERROR else 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Search bus schedules and follow up on payments."
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging output.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Search schedules for a route and date.")
    search.add_argument("--origin", required=True, help="Origin district id.")
    search.add_argument("--destination", required=True, help="Destination district id.")
    search.add_argument("--date", required=True, help="Departure date (YYYY-MM-DD).")
    search.add_argument(
        "--time-of-day",
        choices=[t.value for t in TimeOfDay],
        default=None,
        help="Only show departures in this part of the day.",
    )
    search.add_argument(
        "--sort",
        choices=[s.value for s in SortOrder],
        default=None,
        help="Sort order (default: server order).",
    )
    search.set_defaults(handler=_search)

    status = commands.add_parser("status", help="Check a payment by transaction reference.")
    status.add_argument("reference", help="Transaction reference.")
    status.set_defaults(handler=_status)

    lookup = commands.add_parser("booking", help="Find a booking by reference.")
    lookup.add_argument("reference", help="Booking reference.")
    contact = lookup.add_mutually_exclusive_group(required=True)
    contact.add_argument("--phone", default=None, help="Phone number used when booking.")
    contact.add_argument("--email", default=None, help="Email used when booking.")
    lookup.set_defaults(handler=_lookup)

    resume = commands.add_parser("resume", help="Resume after a payment redirect.")
    resume.set_defaults(handler=_resume)

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        code = asyncio.run(args.handler(args))
    except TicketflowError as exc:
        sys.stdout.write(f"Error: {exc.message}\n")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
