# padelbot/models/bookings.py
"""
Colaborador "reservas": o mínimo de leitura/escrita que o bot precisa.

- get_booking_snapshot(): reserva + inscrições ordenadas (lido pelo Synchronizer)
- mutações usadas pelos endpoints de reserva e pelos botões do chat
  (criar/cancelar/restaurar reserva, inscrever/desinscrever, garantir usuário)

O CRUD completo de reservas vive fora deste serviço.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from .storage import get_conn, iso_now
from .types import (
    DEFAULT_SKILL_LEVEL,
    Booking,
    BookingSnapshot,
    Location,
    Registration,
    User,
    parse_ts,
)


def _ts(value: str | datetime) -> str:
    return parse_ts(value).isoformat()


# ---------- locations / users ----------

def create_location(db_path: str, *, name: str, url: Optional[str] = None) -> int:
    with get_conn(db_path) as conn:
        cur = conn.execute(
            "INSERT INTO locations (name, url, created_at) VALUES (?,?,?)",
            (name, url, iso_now()),
        )
        return int(cur.lastrowid)

def ensure_user(
    db_path: str,
    *,
    id: int,
    first_name: str,
    username: Optional[str] = None,
    skill_level: Optional[str] = None,
) -> User:
    """
    Cria o usuário se não existir (nível padrão "E"); se existir, devolve
    como está. Nível de jogo é editado nas configurações, não aqui.
    """
    with get_conn(db_path) as conn:
        conn.execute(
            """INSERT OR IGNORE INTO users (id, username, first_name, skill_level, created_at)
               VALUES (?,?,?,?,?)""",
            (int(id), username, first_name or username or "Unknown",
             skill_level or DEFAULT_SKILL_LEVEL, iso_now()),
        )
        row = conn.execute("SELECT * FROM users WHERE id=?", (int(id),)).fetchone()
    return User(
        id=row["id"],
        username=row["username"],
        first_name=row["first_name"],
        skill_level=row["skill_level"],
    )


# ---------- bookings ----------

def create_booking(
    db_path: str,
    *,
    location_id: int,
    start_time: str | datetime,
    end_time: str | datetime,
    price: float,
    courts: int,
    note: Optional[str] = None,
) -> int:
    now = iso_now()
    with get_conn(db_path) as conn:
        cur = conn.execute(
            """INSERT INTO bookings
               (location_id, start_time, end_time, price, courts, note, cancelled, created_at, updated_at)
               VALUES (?,?,?,?,?,?,0,?,?)""",
            (int(location_id), _ts(start_time), _ts(end_time), float(price), int(courts), note, now, now),
        )
        return int(cur.lastrowid)

def set_booking_cancelled(db_path: str, booking_id: int, cancelled: bool) -> bool:
    with get_conn(db_path) as conn:
        cur = conn.execute(
            "UPDATE bookings SET cancelled=?, updated_at=? WHERE id=?",
            (1 if cancelled else 0, iso_now(), int(booking_id)),
        )
        return cur.rowcount > 0

def booking_exists(db_path: str, booking_id: int) -> bool:
    with get_conn(db_path) as conn:
        row = conn.execute("SELECT 1 FROM bookings WHERE id=?", (int(booking_id),)).fetchone()
        return bool(row)


# ---------- registrations ----------

def add_registration(db_path: str, booking_id: int, user_id: int) -> bool:
    """
    Inscreve o usuário. Idempotente: se já estiver inscrito mantém a
    posição original (reentregas do webhook não mandam ninguém pro fim da fila).
    Devolve True quando uma inscrição nova foi criada.
    """
    with get_conn(db_path) as conn:
        cur = conn.execute(
            "INSERT OR IGNORE INTO registrations (booking_id, user_id, created_at) VALUES (?,?,?)",
            (int(booking_id), int(user_id), iso_now()),
        )
        return cur.rowcount > 0

def remove_registration(db_path: str, booking_id: int, user_id: int) -> bool:
    with get_conn(db_path) as conn:
        cur = conn.execute(
            "DELETE FROM registrations WHERE booking_id=? AND user_id=?",
            (int(booking_id), int(user_id)),
        )
        return cur.rowcount > 0


# ---------- snapshot ----------

def get_booking_snapshot(db_path: str, booking_id: int) -> Optional[BookingSnapshot]:
    with get_conn(db_path) as conn:
        row = conn.execute(
            """SELECT b.*, l.name AS location_name, l.url AS location_url
               FROM bookings b JOIN locations l ON l.id = b.location_id
               WHERE b.id=?""",
            (int(booking_id),),
        ).fetchone()
        if not row:
            return None
        reg_rows = conn.execute(
            """SELECT r.id, r.booking_id, r.created_at,
                      u.id AS user_id, u.username, u.first_name, u.skill_level
               FROM registrations r JOIN users u ON u.id = r.user_id
               WHERE r.booking_id=?
               ORDER BY r.created_at, r.id""",
            (int(booking_id),),
        ).fetchall()

    booking = Booking(
        id=row["id"],
        location=Location(id=row["location_id"], name=row["location_name"], url=row["location_url"]),
        start_time=parse_ts(row["start_time"]),
        end_time=parse_ts(row["end_time"]),
        price=row["price"],
        courts=row["courts"],
        note=row["note"],
        cancelled=bool(row["cancelled"]),
    )
    registrations = tuple(
        Registration(
            id=r["id"],
            booking_id=r["booking_id"],
            created_at=r["created_at"],
            user=User(
                id=r["user_id"],
                username=r["username"],
                first_name=r["first_name"],
                skill_level=r["skill_level"],
            ),
        )
        for r in reg_rows
    )
    return BookingSnapshot(booking=booking, registrations=registrations)
