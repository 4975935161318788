# padelbot/models/types.py
"""
Tipos de domínio lidos pelo núcleo de sincronização.

São dataclasses imutáveis montadas a partir das linhas do SQLite em
padelbot.models.bookings. O núcleo (renderer/synchronizer) só lê.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple

PLAYERS_PER_COURT = 4
DEFAULT_SKILL_LEVEL = "E"


def parse_ts(value: str | datetime) -> datetime:
    """ISO-8601 (aceita sufixo 'Z') -> datetime com tz (UTC se vier sem)."""
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class Location:
    id: int
    name: str
    url: Optional[str] = None


@dataclass(frozen=True)
class User:
    id: int
    first_name: str
    username: Optional[str] = None
    skill_level: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"@{self.username}" if self.username else self.first_name


@dataclass(frozen=True)
class Booking:
    id: int
    location: Location
    start_time: datetime
    end_time: datetime
    price: float
    courts: int
    note: Optional[str] = None
    cancelled: bool = False

    @property
    def capacity(self) -> int:
        return max(0, int(self.courts)) * PLAYERS_PER_COURT

    @property
    def status(self) -> str:
        return "cancelled" if self.cancelled else "open"


@dataclass(frozen=True)
class Registration:
    id: int
    booking_id: int
    user: User
    created_at: str


@dataclass(frozen=True)
class BookingSnapshot:
    booking: Booking
    registrations: Tuple[Registration, ...] = field(default_factory=tuple)

    def ordered_registrations(self) -> Tuple[Registration, ...]:
        # ordem de chegada; empate resolvido pelo id
        return tuple(sorted(self.registrations, key=lambda r: (parse_ts(r.created_at), r.id)))

    def is_registered(self, user_id: int) -> bool:
        return any(r.user.id == user_id for r in self.registrations)
