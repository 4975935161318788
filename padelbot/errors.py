# padelbot/errors.py
"""
Erros de requisição dos blueprints internos.

- AuthFailure        → segredo/token ausente ou inválido (rejeita antes de qualquer efeito)
- ValidationFailure  → campos obrigatórios ausentes no corpo (400)
- NotFound           → mensagem/reserva referenciada não existe (404)

Falhas da reconciliação (plataforma, persistência) não viram exceção: saem
em SyncResult.failure e cada endpoint decide o status.
O app converte PadelBotError em JSON {"error": ...} com o status_code.
"""

from __future__ import annotations


class PadelBotError(Exception):
    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthFailure(PadelBotError):
    status_code = 401


class ValidationFailure(PadelBotError):
    status_code = 400


class NotFound(PadelBotError):
    status_code = 404
