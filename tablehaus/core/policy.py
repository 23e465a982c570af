"""Booking policy derived from settings and restaurant data"""

from datetime import date, timedelta
from typing import Dict, FrozenSet, Iterable

from pydantic import BaseModel, Field

from tablehaus.config import Settings
from tablehaus.core.lifecycle import Channel


class BookingPolicy(BaseModel):
    """Rules the commit protocol enforces"""
    timezone: str = "Asia/Bangkok"
    duration_minutes: Dict[Channel, int] = Field(
        default_factory=lambda: {Channel.DINE_IN: 120, Channel.PICKUP: 30}
    )
    # Per person, compared with the pre-discount subtotal
    min_spend: Dict[Channel, int] = Field(default_factory=dict)
    blocked_dates: FrozenSet[date] = frozenset()
    tracking_token_ttl_hours: int = 24

    @classmethod
    def from_settings(cls, settings: Settings, blocked_dates: Iterable[date] = ()) -> "BookingPolicy":
        return cls(
            timezone=settings.restaurant_timezone,
            duration_minutes={
                Channel.DINE_IN: settings.dine_in_duration_minutes,
                Channel.PICKUP: settings.pickup_duration_minutes,
            },
            min_spend={
                Channel.DINE_IN: settings.min_spend_dine_in,
                Channel.PICKUP: settings.min_spend_pickup,
            },
            blocked_dates=frozenset(blocked_dates),
            tracking_token_ttl_hours=settings.tracking_token_ttl_hours,
        )

    @property
    def durations(self) -> Dict[Channel, timedelta]:
        return {channel: timedelta(minutes=minutes) for channel, minutes in self.duration_minutes.items()}

    def duration(self, channel: Channel) -> timedelta:
        return timedelta(minutes=self.duration_minutes[Channel(channel)])

    def required_spend(self, channel: Channel, party_size: int) -> int:
        return self.min_spend.get(Channel(channel), 0) * party_size

    def is_blocked(self, day: date) -> bool:
        return day in self.blocked_dates
