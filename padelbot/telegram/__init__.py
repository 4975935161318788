# padelbot/telegram/__init__.py
from .client import (
    TelegramClient,
    TelegramError,
    classify_error,
    NOT_FOUND,
    RATE_LIMITED,
    FORBIDDEN,
    TRANSIENT,
    UNKNOWN,
)
from .bot import BotState
