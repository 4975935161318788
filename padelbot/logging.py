# padelbot/logging.py
"""
Logger estruturado (JSON por linha) para o bot.

Objetivo:
- Cada linha de log é um objeto JSON com ts, level, msg, logger e os
  campos passados via extra={...}.
- Em exceções, incluir apenas um resumo curto ("exc_short") apontando o
  frame do nosso código (arquivo, linha, função) e a mensagem do erro.
- Nunca quebrar por causa de um extra não serializável (cai para repr).
"""

from __future__ import annotations

import json
import linecache
import logging
import os
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple


def _now_iso() -> str:
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


# chaves do LogRecord que não devem ir para o JSON
_RESERVED_KEYS = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs",
    "relativeCreated", "thread", "threadName", "processName", "process", "message",
    "taskName",
}

Frame = Tuple[str, int, str]


def _is_library_frame(filename: str) -> bool:
    return "site-packages" in filename or "/lib/python" in filename


def _pick_frame(frames: List[Frame]) -> Optional[Frame]:
    """
    Prefere o último frame do projeto (dentro do cwd e fora de libs);
    senão o último frame que não seja de biblioteca; senão o último.
    """
    if not frames:
        return None
    cwd = os.getcwd()
    for frame in reversed(frames):
        if frame[0].startswith(cwd) and not _is_library_frame(frame[0]):
            return frame
    for frame in reversed(frames):
        if not _is_library_frame(frame[0]):
            return frame
    return frames[-1]


def exc_short(exc_type, exc_value, tb) -> Optional[str]:
    """
    Resumo de uma linha de código + erro:

        File "padelbot/sync/synchronizer.py", line 120, in _create
            message_id = self.client.send_message(...)
        TelegramError: [transient] timeout
    """
    try:
        frames = [(fr.filename, fr.lineno or 0, fr.name) for fr in traceback.extract_tb(tb)]
        chosen = _pick_frame(frames)
        type_name = getattr(exc_type, "__name__", str(exc_type))
        if not chosen:
            return f"{type_name}: {exc_value}"
        filename, lineno, funcname = chosen
        code = linecache.getline(filename, lineno).strip() or "<source not available>"
        return f'File "{filename}", line {lineno}, in {funcname}\n    {code}\n{type_name}: {exc_value}'
    except Exception:
        return None


class JsonFormatter(logging.Formatter):
    """Formata o LogRecord como JSON enxuto (ver docstring do módulo)."""

    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": _now_iso(),
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }

        for k, v in record.__dict__.items():
            if k in _RESERVED_KEYS or k.startswith("_"):
                continue
            base[k] = v

        if record.exc_info and record.exc_info[0] is not None:
            short = exc_short(*record.exc_info)
            if short:
                base["exc_short"] = short
            else:
                base["exc_in_formatter_error"] = True

        return json.dumps(base, ensure_ascii=False, default=repr)


# -------------------------
# Config global
# -------------------------
def configure_logging(level: str = "INFO") -> None:
    """
    Configura o logger raiz para usar JsonFormatter.
    Deve ser chamado uma única vez na inicialização do app.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root.handlers.clear()
    root.addHandler(handler)

    # urllib3 loga cada retry em WARNING; o HttpClient já loga o necessário
    logging.getLogger("urllib3").setLevel(logging.ERROR)

    logging.getLogger(__name__).info("logging configured: JsonFormatter active")


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name or "padelbot")
