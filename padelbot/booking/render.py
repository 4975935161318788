# padelbot/booking/render.py
"""
Booking Renderer: snapshot -> texto do anúncio + teclado inline.

Módulo **puro** e determinístico: mesmo snapshot e mesmas opções produzem
exatamente o mesmo texto, o mesmo teclado e o mesmo `content_hash`.
Nada de relógio, rede ou banco aqui.

Layout (HTML parse mode, textos em russo como o clube usa no chat):

    🎾 <b>Вторник, 14.01, 19:00-21:00</b>

    📍 <b>Место:</b> <a href="...">Clube</a>
    💵 <b>Цена:</b> 65 aed/чел
    🏟️ <b>Забронировано кортов:</b> 2
    [nota]
    [❗️<b>ОТМЕНА</b>❗️]
    📅 <a href="...">Добавить в Google Calendar</a>
    ⚙️ <a href="...">Open Settings</a>

    <b>Записавшиеся игроки:</b>
    1. @ana (C)
    2. -

    ⏳ <b>Waitlist:</b>
    ---
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from html import escape
from typing import Any, Dict, List, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo

from ..models.types import DEFAULT_SKILL_LEVEL, BookingSnapshot, Registration

DEFAULT_TZ = "Asia/Dubai"
DEFAULT_SETTINGS_URL = "https://t.me/padel_dubai_bot?startapp"

JOIN_CALLBACK = "join_game"
LEAVE_CALLBACK = "leave_game"

WEEKDAYS_RU = (
    "Понедельник",
    "Вторник",
    "Среда",
    "Четверг",
    "Пятница",
    "Суббота",
    "Воскресенье",
)

RULES_URL = "https://t.me/PadDXB/602"


@dataclass(frozen=True)
class RenderedMessage:
    text: str
    reply_markup: Optional[Dict[str, Any]] = None

    @property
    def content_hash(self) -> str:
        canonical = json.dumps(
            {"text": self.text, "reply_markup": self.reply_markup},
            sort_keys=True,
            ensure_ascii=False,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def format_price(price: float) -> str:
    value = float(price)
    return str(int(value)) if value.is_integer() else str(value)


def format_title(start: datetime, end: datetime, tz: str = DEFAULT_TZ) -> str:
    zone = ZoneInfo(tz)
    s = start.astimezone(zone)
    e = end.astimezone(zone)
    return f"{WEEKDAYS_RU[s.weekday()]}, {s:%d.%m}, {s:%H:%M}-{e:%H:%M}"


def calendar_link(start: datetime, end: datetime, club: str) -> str:
    def _utc(dt: datetime) -> str:
        return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    title = quote(f"Padel - {club}", safe="")
    location = quote(club, safe="")
    return (
        "https://calendar.google.com/calendar/render?action=TEMPLATE"
        f"&text={title}&dates={_utc(start)}/{_utc(end)}&location={location}"
    )


def _player_line(position: int, reg: Registration) -> str:
    skill = reg.user.skill_level or DEFAULT_SKILL_LEVEL
    return f"{position}. {escape(reg.user.display_name, quote=False)} ({escape(skill, quote=False)})"


def _player_slots(players: List[Registration], capacity: int) -> str:
    lines = []
    for i in range(capacity):
        if i < len(players):
            lines.append(_player_line(i + 1, players[i]))
        else:
            lines.append(f"{i + 1}. -")
    return "\n".join(lines)


def _waitlist(waitlist: List[Registration]) -> str:
    if not waitlist:
        return "⏳ <b>Waitlist:</b>\n---"
    body = "\n".join(_player_line(i + 1, r) for i, r in enumerate(waitlist))
    return f"⏳ <b>Waitlist:</b>\n{body}"


def booking_keyboard(settings_url: str = DEFAULT_SETTINGS_URL) -> Dict[str, Any]:
    return {
        "inline_keyboard": [
            [
                {"text": "✅ Записаться", "callback_data": JOIN_CALLBACK},
                {"text": "❌ Не приду", "callback_data": LEAVE_CALLBACK},
            ],
            [{"text": "Open Settings", "url": settings_url}],
        ]
    }


# ------------------------------------------------------------
# Render
# ------------------------------------------------------------
def render_booking(
    snapshot: BookingSnapshot,
    *,
    tz: str = DEFAULT_TZ,
    settings_url: str = DEFAULT_SETTINGS_URL,
) -> RenderedMessage:
    booking = snapshot.booking
    location = booking.location

    name = escape(location.name, quote=False)
    location_link = f'<a href="{escape(location.url)}">{name}</a>' if location.url else name

    cal = calendar_link(booking.start_time, booking.end_time, location.name)
    settings_link = f'<a href="{escape(settings_url)}">Open Settings</a>'

    ordered = list(snapshot.ordered_registrations())
    capacity = booking.capacity
    players, waitlist = ordered[:capacity], ordered[capacity:]

    text = (
        f"🎾 <b>{format_title(booking.start_time, booking.end_time, tz)}</b>\n"
        "\n"
        f"📍 <b>Место:</b> {location_link}\n"
        f"💵 <b>Цена:</b> {format_price(booking.price)} aed/чел\n"
        f"🏟️ <b>Забронировано кортов:</b> {booking.courts}"
    )

    note = (booking.note or "").strip()
    if note:
        text += f"\n\n{escape(note, quote=False)}"

    if booking.cancelled:
        text += "\n\n❗️<b>ОТМЕНА</b>❗️"

    # sem nota fica uma quebra só antes do calendário
    text += "\n\n" if note else "\n"
    text += f'📅 <a href="{escape(cal)}">Добавить в Google Calendar</a>\n⚙️ {settings_link}\n\n'

    header = "<b>Игра отменена. Waitlist:</b>" if booking.cancelled else "<b>Записавшиеся игроки:</b>"
    text += f"{header}\n{_player_slots(players, capacity)}\n\n{_waitlist(waitlist)}"

    markup = None if booking.cancelled else booking_keyboard(settings_url)
    return RenderedMessage(text=text, reply_markup=markup)


# ------------------------------------------------------------
# Outros textos enviados ao chat
# ------------------------------------------------------------
def welcome_text(first_name: Optional[str]) -> str:
    name = escape((first_name or "").strip() or "друг", quote=False)
    return (
        f"Привет {name} 🎾!\n"
        "Добро пожаловать в наш padel чат!\n"
        "У нас дружелюбная команда, и мы всегда рады новым участникам\n"
        "\n"
        "🏓 Немного о нас:\n"
        "— Играем несколько раз в неделю в лучших клубах Дубая\n"
        "— Атмосфера лёгкая, без негатива, играем с удовольствием\n"
        "— Отношение друг к другу уважительное и поддерживающее\n"
        "— Есть разные уровни игры, чтобы всем было комфортно и интересно\n"
        "\n"
        "🎯 Перед первой игрой, пожалуйста, ознакомься с нашими правилами:\n"
        f'<a href="{RULES_URL}">Ссылка на правила</a>\n'
        "\n"
        "💬 Если есть вопросы, не стесняйся писать в чат или в личку.\n"
        "\n"
        "До встречи на корте! 🏆"
    )


def leave_notice(name: str) -> str:
    return f"{escape(name, quote=False)} отменил участие"
