# tests/factories/booking_factory.py
"""
Helpers para semear reservas no SQLite de teste e montar snapshots em memória.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Tuple

from padelbot.models import (
    add_registration,
    create_booking,
    create_location,
    ensure_user,
)
from padelbot.models.types import Booking, BookingSnapshot, Location, Registration, User

CLUB = "SANDDUNE PADEL CLUB Al Qouz"
CLUB_URL = "https://maps.app.goo.gl/GZgQCpsX1uyvFwLB7"

# (id, first_name, username, skill)
Player = Tuple[int, str, Optional[str], Optional[str]]


def future_start(hours: float = 72) -> datetime:
    # hora cheia para títulos previsíveis
    base = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
    return base + timedelta(hours=hours)


def seed_booking(
    db_path: str,
    *,
    start: Optional[datetime] = None,
    duration_hours: float = 2,
    courts: int = 1,
    price: float = 65,
    note: Optional[str] = None,
    players: Iterable[Player] = (),
) -> int:
    start = start or future_start()
    location_id = create_location(db_path, name=CLUB, url=CLUB_URL)
    booking_id = create_booking(
        db_path,
        location_id=location_id,
        start_time=start,
        end_time=start + timedelta(hours=duration_hours),
        price=price,
        courts=courts,
        note=note,
    )
    for user_id, first_name, username, skill in players:
        register(db_path, booking_id, user_id, first_name, username, skill)
    return booking_id


def register(
    db_path: str,
    booking_id: int,
    user_id: int,
    first_name: str = "Player",
    username: Optional[str] = None,
    skill: Optional[str] = None,
) -> bool:
    ensure_user(db_path, id=user_id, first_name=first_name, username=username, skill_level=skill)
    return add_registration(db_path, booking_id, user_id)


def make_snapshot(
    *,
    start: Optional[datetime] = None,
    courts: int = 1,
    price: float = 65,
    note: Optional[str] = None,
    cancelled: bool = False,
    url: Optional[str] = CLUB_URL,
    players: Iterable[Player] = (),
) -> BookingSnapshot:
    """Snapshot em memória (sem banco), para testes do renderer."""
    start = start or datetime(2025, 1, 14, 15, 0, tzinfo=timezone.utc)
    booking = Booking(
        id=1,
        location=Location(id=1, name=CLUB, url=url),
        start_time=start,
        end_time=start + timedelta(hours=2),
        price=price,
        courts=courts,
        note=note,
        cancelled=cancelled,
    )
    regs = []
    for i, (user_id, first_name, username, skill) in enumerate(players, start=1):
        created = (start - timedelta(days=3) + timedelta(minutes=i)).isoformat()
        regs.append(
            Registration(
                id=i,
                booking_id=1,
                created_at=created,
                user=User(id=user_id, first_name=first_name, username=username, skill_level=skill),
            )
        )
    return BookingSnapshot(booking=booking, registrations=tuple(regs))
