# tests/factories/__init__.py
"""
Atalhos para importar factories nos testes.

Exemplo de uso:
    from tests.factories import update_factory as f
    payload = f.make_text_update("@padel_dubai_bot oi")
"""

from .update_factory import *  # noqa: F401,F403
from .fake_telegram import FakeTelegramClient  # noqa: F401
from .booking_factory import seed_booking, register, make_snapshot, future_start  # noqa: F401

__all__ = [
    "CHAT_ID",
    "BOT_USERNAME",
    "make_user",
    "make_message",
    "make_update",
    "make_text_update",
    "make_reply_update",
    "make_callback_update",
    "make_members_joined_update",
    "make_pinned_update",
    "FakeTelegramClient",
    "seed_booking",
    "register",
    "make_snapshot",
    "future_start",
]
