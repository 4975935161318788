# gunicorn_config.py
# uso: gunicorn -c gunicorn_config.py run:app

import multiprocessing
import os
from padelbot.settings import load_settings

try:
    settings = load_settings()
    PORT = int(settings.get("PORT", os.getenv("PORT", 3000)))
    CONFIG_NAME = settings.get("CONFIG_NAME", os.getenv("CONFIG_NAME"))
except (OSError, ValueError):
    PORT = int(os.getenv("PORT", 3000))
    CONFIG_NAME = os.getenv("CONFIG_NAME")

bind = f"0.0.0.0:{PORT}"
workers = multiprocessing.cpu_count() * 2 + 1
worker_class = "gthread"      # threads por worker; o lease no SQLite serializa por reserva
threads = 4
timeout = 60                  # maior que TELEGRAM_TIMEOUT + OPENAI_TIMEOUT
keepalive = 5
errorlog = "-"
accesslog = "-"
loglevel = "info"

# reload automático apenas em desenvolvimento
reload = CONFIG_NAME == "dev"
