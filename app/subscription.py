"""API subscription quote.

The form takes a number of months; the price is ``months × unit price``.
Invalid input is rejected here, before anything goes over the network.
"""

from app.config import API_UNIT_PRICE


class SubscriptionError(ValueError):
    pass


def validate_months(raw: str | int | None) -> int:
    value = "" if raw is None else str(raw).strip()
    if not value or not value.isdecimal() or int(value) <= 0:
        raise SubscriptionError("Please enter a valid number of months")
    return int(value)


def quote(months: int, unit_price: float = API_UNIT_PRICE) -> dict:
    return {
        "months": months,
        "unit_price": unit_price,
        "total": f"{unit_price * months:.2f}",
        "currency": "MATIC",
    }
