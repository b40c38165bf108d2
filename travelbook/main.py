"""Command line entry point for the travelbook booking core."""

import asyncio
import os
import sys

from travelbook.config import get_settings
from travelbook.exceptions import TravelbookError
from travelbook.models.reservation import Reservation, ServiceType, parse_booking_date
from travelbook.models.service import get_profile
from travelbook.services.aggregator import BookingAggregator, BookingList, BookingTab
from travelbook.services.backend_client import TravelBackendClient
from travelbook.services.pricing import duration_days, quote
from travelbook.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

USAGE = """Usage: python -m travelbook.main <command> [args]

Commands:
  bookings [type] [tab]     List my bookings (type: all|hotel|vehicle|..., tab: all|upcoming|past|cancelled)
  requests [type]           List reservation requests for my services
  quote <type> <price> [start] [end] [party] [--driver]
                            Price a booking
  test                      Check the backend connection
"""


def _client() -> TravelBackendClient:
    settings = get_settings()
    return TravelBackendClient(
        base_url=settings.backend_base_url,
        token=os.getenv("TRAVELBOOK_TOKEN"),
        timeout=settings.backend.timeout_seconds,
        settings=settings.backend,
    )


def _print_bookings(title: str, bookings: BookingList, records: list[Reservation]) -> None:
    print("\n" + "=" * 60)
    print(f"{title} ({len(records)})")
    print("=" * 60)

    if bookings.notice:
        print(f"⚠️  {bookings.notice}")

    if not records:
        print("No bookings found")

    for r in records:
        period = f"{r.period.check_in_date.isoformat()}"
        if not r.period.is_single_day:
            period += f" → {r.period.check_out_date.isoformat()}"
        print(
            f"[{r.status.value:>9}] {r.service_type.value:<10} "
            f"{(r.service_name or r.service_id or '-'):<28} {period:<25} "
            f"Rs. {r.total_amount:,}"
        )
        if r.rejection_reason:
            print(f"            reason: {r.rejection_reason}")

    print("=" * 60 + "\n")


# =============================================================================
# CLI Commands
# =============================================================================


async def cmd_bookings(service_type: str = "all", tab: str = "all") -> None:
    """List the customer's merged bookings."""
    async with _client() as client:
        aggregator = BookingAggregator(client)
        bookings = await aggregator.fetch_customer_bookings()

    records = bookings.filter(service_type, BookingTab(tab))
    _print_bookings("📋 My Bookings", bookings, records)


async def cmd_requests(service_type: str = "all") -> None:
    """List reservation requests for the provider's services."""
    async with _client() as client:
        aggregator = BookingAggregator(client)
        bookings = await aggregator.fetch_provider_requests(service_type)

    _print_bookings("📥 Reservation Requests", bookings, bookings.sorted())


def cmd_quote(args: list[str]) -> None:
    """Print the total for a booking."""
    needs_driver = "--driver" in args
    args = [a for a in args if a != "--driver"]
    if len(args) < 2:
        print(USAGE)
        sys.exit(1)

    profile = get_profile(ServiceType(args[0]))
    start = parse_booking_date(args[2]) if len(args) > 2 else None
    end = parse_booking_date(args[3]) if len(args) > 3 else start
    party = int(args[4]) if len(args) > 4 else 1

    total = quote(
        profile,
        args[1],
        start_date=start,
        end_date=end,
        party_size=party,
        rooms=party,
        needs_driver=needs_driver,
        driver_fee_per_day=get_settings().driver_fee_per_day,
    )

    print(f"\n💰 {profile.service_type.value} quote")
    print(f"   Days:  {duration_days(start, end)}")
    print(f"   Party: {party}")
    print(f"   Total: Rs. {total:,}\n")


async def cmd_test_connection() -> None:
    """Test the connection to the booking backend."""
    settings = get_settings()
    print(f"\n🔍 Testing backend at {settings.backend_base_url} ...\n")

    try:
        async with _client() as client:
            records = await client.list_reservations(
                settings.backend.customer_service_reservations_path
            )
        print(f"   ✅ Backend reachable, {len(records)} reservations visible")
    except TravelbookError as e:
        print(f"   ❌ Backend check failed: {e.user_message}")


# =============================================================================
# Main
# =============================================================================


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    setup_logging(settings.app.log_level, settings.app.log_format)

    command = sys.argv[1] if len(sys.argv) > 1 else "help"
    args = sys.argv[2:]

    try:
        if command == "bookings":
            asyncio.run(cmd_bookings(*args[:2]))
        elif command == "requests":
            asyncio.run(cmd_requests(*args[:1]))
        elif command == "quote":
            cmd_quote(args)
        elif command == "test":
            asyncio.run(cmd_test_connection())
        else:
            print(USAGE)
            sys.exit(0 if command == "help" else 1)
    except TravelbookError as e:
        logger.error("command_failed", command=command, error=e.user_message)
        print(f"❌ {e.user_message}")
        sys.exit(1)
    except ValueError as e:
        print(f"❌ Invalid argument: {e}")
        print(USAGE)
        sys.exit(1)


if __name__ == "__main__":
    main()
