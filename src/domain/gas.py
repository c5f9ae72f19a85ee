from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, localcontext
from enum import StrEnum

# ETH Gas Station reports prices in tenths of gwei:
# (raw / 10) => gwei, gwei * 1e9 => wei, which simplifies to raw * 1e8 => wei.
WEI_PER_GAS_STATION_UNIT = 10**8


class GasPriority(StrEnum):
    """Priority tiers reported by ETH Gas Station.

    Values match the field names of the oracle's JSON payload.
    """

    # mined in less than 2 minutes
    FAST = "fast"
    # mined in less than 30 seconds
    FASTEST = "fastest"
    # cheapest price mined in less than 30 minutes
    SAFE_LOW = "safeLow"
    # mined in less than 5 minutes
    AVERAGE = "average"


class UnknownGasPriorityError(ValueError):
    def __init__(self, priority: object) -> None:
        super().__init__(f"unknown/unsupported gas priority: {priority!r}")
        self.priority = priority


class NonIntegralGasPriceError(ValueError):
    def __init__(self, raw: Decimal) -> None:
        super().__init__(f"unable to represent gas price {raw} as an integer amount of wei")
        self.raw = raw


@dataclass(frozen=True)
class GasPriceQuotes:
    """Snapshot of raw oracle quotes, one per priority tier."""

    fast: Decimal
    fastest: Decimal
    safe_low: Decimal
    average: Decimal

    def raw_price(self, priority: GasPriority | str) -> Decimal:
        match _resolve_priority(priority):
            case GasPriority.FAST:
                return self.fast
            case GasPriority.FASTEST:
                return self.fastest
            case GasPriority.SAFE_LOW:
                return self.safe_low
            case GasPriority.AVERAGE:
                return self.average
        raise UnknownGasPriorityError(priority)


def gas_station_units_to_wei(raw: Decimal | int | float | str) -> int:
    """Convert a raw ETH Gas Station quote into wei.

    The multiplication is exact; a quote carrying more precision than one
    hundred-millionth of a unit raises NonIntegralGasPriceError instead of
    being rounded.
    """
    value = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    if not value.is_finite():
        raise NonIntegralGasPriceError(value)

    # enough precision for the product to be exact
    with localcontext() as ctx:
        ctx.prec = len(value.as_tuple().digits) + 9
        wei = value * WEI_PER_GAS_STATION_UNIT
    if wei != wei.to_integral_value():
        raise NonIntegralGasPriceError(value)
    return int(wei)


def suggested_wei(priority: GasPriority | str, quotes: GasPriceQuotes) -> int:
    return gas_station_units_to_wei(quotes.raw_price(priority))


def _resolve_priority(priority: GasPriority | str) -> GasPriority:
    if isinstance(priority, GasPriority):
        return priority
    if not isinstance(priority, str):
        raise UnknownGasPriorityError(priority)
    try:
        return GasPriority(priority)
    except ValueError as exc:
        raise UnknownGasPriorityError(priority) from exc


__all__ = [
    "WEI_PER_GAS_STATION_UNIT",
    "GasPriceQuotes",
    "GasPriority",
    "NonIntegralGasPriceError",
    "UnknownGasPriorityError",
    "gas_station_units_to_wei",
    "suggested_wei",
]
