# padelbot/flows/router.py
"""
Regras de roteamento para eventos decodificados (ver updates.py).

Este módulo é **puro** (sem Flask/current_app): recebe o evento e devolve
decisões simples (qual handler, qual ação do botão, se é menção ao bot,
se a desistência é em cima da hora). O blueprint do webhook executa.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

Event = Dict[str, Any]

# handlers conhecidos pelo webhook
HANDLE_CALLBACK = "callback"
HANDLE_WELCOME = "welcome"
HANDLE_JOKE = "joke"
HANDLE_IGNORE = "ignore"

JOIN = "join"
LEAVE = "leave"

DEFAULT_LATE_CANCEL_HOURS = 24.0

CALLBACK_MESSAGES = {
    "joining": "Записываем вас на игру...",
    "not_coming": "Жаль, что не сможете прийти на эту игру!",
    "game_not_found": "Не удалось загрузить игру",
    "game_cancelled": "Эта игра отменена",
    "not_registered": "Вы не записаны на эту игру",
    "error": "Что-то пошло не так, попробуйте ещё раз",
}


# ------------------------------------------------------------
# Textos
# ------------------------------------------------------------
def late_cancellation_warning(hours_remaining: float, limit_hours: float = DEFAULT_LATE_CANCEL_HOURS) -> str:
    return (
        f"⚠️ ВНИМАНИЕ! До игры осталось {hours_remaining:.1f} часов.\n"
        "\n"
        f"Согласно правилам группы, отмена менее чем за {limit_hours:g} часа до игры "
        "влечет штрафные санкции.\n"
        "\n"
        "Подробности в правилах участия в группе."
    )


def display_name(sender: Optional[Dict[str, Any]]) -> str:
    """"@username" quando houver; senão first_name; senão "Unknown"."""
    s = sender or {}
    if s.get("username"):
        return f"@{s['username']}"
    return str(s.get("first_name") or "").strip() or "Unknown"


def clean_name(name: str) -> str:
    """Tira "@" e tags <a> de um nome exibido (usado no aviso de desistência)."""
    return re.sub(r"@|<a[^>]*>|</a>", "", name or "").strip()


# ------------------------------------------------------------
# Botões
# ------------------------------------------------------------
def parse_callback_action(data: Optional[str]) -> Optional[str]:
    """
    join_game / leave_game -> join / leave
    Botões antigos de nível: skill_not_coming -> leave; skill_<nível> -> join.
    Qualquer outra coisa -> None.
    """
    d = (data or "").strip()
    if d == "join_game":
        return JOIN
    if d == "leave_game":
        return LEAVE
    if d == "skill_not_coming":
        return LEAVE
    if d.startswith("skill_") and len(d) > len("skill_"):
        return JOIN
    return None


def is_late_cancellation(
    start_time: datetime,
    now: datetime,
    hours: float = DEFAULT_LATE_CANCEL_HOURS,
) -> Tuple[bool, Optional[float]]:
    """
    (é_tardia, horas_restantes). Jogo já começado não conta como tardio
    e devolve horas_restantes=None.
    """
    remaining = (start_time - now).total_seconds() / 3600.0
    if remaining <= 0:
        return False, None
    return remaining < hours, remaining


# ------------------------------------------------------------
# Menções
# ------------------------------------------------------------
def is_bot_mention(event: Event, bot_username: Optional[str]) -> bool:
    if event.get("type") != "text" or not bot_username:
        return False
    name = bot_username.lstrip("@").lower()
    text = str(event.get("text") or "").lower()
    if re.search(rf"@{re.escape(name)}\b", text):
        return True
    return is_reply_to_bot(event, name)


def is_reply_to_bot(event: Event, bot_username: Optional[str]) -> bool:
    reply = event.get("reply_to") or {}
    if not reply or not bot_username:
        return False
    name = bot_username.lstrip("@").lower()
    return (
        str(reply.get("from_username") or "").lower() == name
        or str(reply.get("via_bot_username") or "").lower() == name
    )


def joke_prompt(event: Event, bot_username: Optional[str]) -> str:
    text = str(event.get("text") or "")
    reply = event.get("reply_to") or {}
    if is_reply_to_bot(event, bot_username) and reply.get("text"):
        return f"Предыдущее сообщение: {reply['text']}\nОтвет игрока: {text}"
    return text


# ------------------------------------------------------------
# Decisor
# ------------------------------------------------------------
def route(event: Event, bot_username: Optional[str]) -> str:
    """
    Escolhe UM handler para o evento:
    - callback                       -> HANDLE_CALLBACK
    - members_joined (algum humano)  -> HANDLE_WELCOME
    - texto mencionando o bot        -> HANDLE_JOKE
    - resto (pinned, other, ...)     -> HANDLE_IGNORE
    """
    etype = event.get("type")
    if etype == "callback":
        return HANDLE_CALLBACK
    if etype == "members_joined":
        if any(not m.get("is_bot") for m in event.get("members") or []):
            return HANDLE_WELCOME
        return HANDLE_IGNORE
    if etype == "text":
        sender = event.get("from") or {}
        if sender.get("is_bot"):
            return HANDLE_IGNORE
        if is_bot_mention(event, bot_username):
            return HANDLE_JOKE
    return HANDLE_IGNORE
