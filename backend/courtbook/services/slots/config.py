# backend/courtbook/services/slots/config.py
"""
Booking configuration for slot generation, matching and pricing.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Optional

from ..civil_time import minutes_to_time_str, time_str_to_minutes

__all__ = [
    "BookingConfig",
    "DEFAULT_SERVICE_PRICES",
    "get_booking_config",
    "time_str_to_minutes",
    "minutes_to_time_str",
]


DEFAULT_SERVICE_PRICES: Mapping[str, float] = MappingProxyType({
    "Stroke Clinic": 99.99,
    "Boot Camp": 149.99,
    "Private Lessons": 149.99,
    "Private Lesson": 149.99,
    "UTR Points": 149.99,
    "UTR Points Play": 149.99,
})


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the booking/slots system.

    Attributes:
        slot_step_minutes: Slot granularity in minutes (fixed at 30)
        default_capacity: Capacity of a slot when none is given
        sibling_tolerance_seconds: Window for re-identifying sibling rows
        service_prices: Flat price per booking, keyed by service label
        default_price: Price for unknown or missing service labels
        refresh_horizon_days: How far ahead the status refresher looks
    """
    slot_step_minutes: int = 30
    default_capacity: int = 10
    sibling_tolerance_seconds: int = 1
    service_prices: Mapping[str, float] = field(default_factory=lambda: DEFAULT_SERVICE_PRICES)
    default_price: float = 149.99
    refresh_horizon_days: int = 14

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes != 30:
            raise ValueError(f"slot_step_minutes is fixed at 30, got {self.slot_step_minutes}")
        if self.default_capacity < 1:
            raise ValueError(f"default_capacity must be positive, got {self.default_capacity}")
        if self.sibling_tolerance_seconds < 0:
            raise ValueError("sibling_tolerance_seconds must not be negative")

    @property
    def slots_per_day(self) -> int:
        """Number of slots in a civil day (48 at 30 minutes)."""
        return (24 * 60) // self.slot_step_minutes

    def price_for(self, service_name: Optional[str]) -> float:
        """Flat price for one booking of the given service label."""
        if service_name and service_name in self.service_prices:
            return float(self.service_prices[service_name])
        return float(self.default_price)


@lru_cache
def get_booking_config() -> BookingConfig:
    """
    Get booking configuration (singleton).

    Pricing and capacity defaults are deployment constants, not settings.
    """
    return BookingConfig()
