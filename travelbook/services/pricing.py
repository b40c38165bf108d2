"""Booking price calculation.

All functions here are pure: same inputs, same total, no I/O.
"""

import math
from datetime import date, datetime
from decimal import Decimal

from travelbook.models.service import RateVariant, ServiceTypeProfile

SECONDS_PER_DAY = 24 * 60 * 60


def _to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def duration_days(
    start_date: date | datetime | None,
    end_date: date | datetime | None,
) -> int:
    """
    Number of billable days between two dates.

    Whole days are rounded up and the result is never below 1, so a
    same-day booking counts as one day. Missing dates count as one day.
    """
    if start_date is None or end_date is None:
        return 1

    if isinstance(start_date, datetime) and isinstance(end_date, datetime):
        seconds = abs((end_date - start_date).total_seconds())
        days = math.ceil(seconds / SECONDS_PER_DAY)
    else:
        start = start_date.date() if isinstance(start_date, datetime) else start_date
        end = end_date.date() if isinstance(end_date, datetime) else end_date
        days = abs((end - start).days)

    return max(days, 1)


def calculate_total(
    unit_price: Decimal | int | float | str | None,
    start_date: date | datetime | None = None,
    end_date: date | datetime | None = None,
    party_size: int | None = None,
    flat_fee_per_day: Decimal | int | float | None = None,
) -> Decimal:
    """
    Total cost of a booking.

    total = (unit_price + flat_fee_per_day) * duration_days * party_size

    Missing multiplicands count as 1 and a missing unit price yields 0.
    The result is never negative.
    """
    if unit_price is None or unit_price == "":
        return Decimal("0")

    rate = _to_decimal(unit_price) + _to_decimal(flat_fee_per_day)
    days = duration_days(start_date, end_date)
    quantity = party_size if party_size and party_size > 0 else 1

    total = rate * days * quantity
    return max(total, Decimal("0"))


def quote(
    profile: ServiceTypeProfile,
    unit_price: Decimal | int | float | str | None,
    start_date: date | None = None,
    end_date: date | None = None,
    party_size: int | None = None,
    rooms: int | None = None,
    needs_driver: bool = False,
    driver_fee_per_day: Decimal | int = 0,
) -> Decimal:
    """
    Price a booking according to its service type's rate variant.

    Vehicles are billed per day (plus the driver fee when requested),
    tours/restaurants/trains/flights per person, events per person per
    day and hotels per room per day.
    """
    variant = profile.rate_variant
    fee = driver_fee_per_day if needs_driver else None

    if variant == RateVariant.PER_DAY:
        return calculate_total(unit_price, start_date, end_date, flat_fee_per_day=fee)
    if variant == RateVariant.PER_PERSON:
        return calculate_total(unit_price, party_size=party_size, flat_fee_per_day=fee)
    if variant == RateVariant.PER_ROOM_PER_DAY:
        return calculate_total(
            unit_price, start_date, end_date, party_size=rooms, flat_fee_per_day=fee
        )
    return calculate_total(
        unit_price, start_date, end_date, party_size=party_size, flat_fee_per_day=fee
    )
