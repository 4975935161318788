# padelbot/http.py
"""
Módulo utilitário para requisições HTTP (baseado em requests.Session).

Oferece uma sessão compartilhada com:
- retry/backoff limitado (configurável por cliente)
- timeout padrão (com possibilidade de override por chamada)
- log de requisições sem vazar a URL com token do bot
- base para padelbot.telegram.client e padelbot.jokes
"""

from __future__ import annotations

import time
import uuid
from typing import Any, Dict, Iterable, Optional
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from padelbot.logging import get_logger

logger = get_logger(__name__)


class HttpClient:
    """
    Cliente HTTP com sessão persistente e retry básico.

    - `status_forcelist` vazio desliga retry por status (o chamador decide).
    - `retry_reads=False` evita repetir uma requisição que já chegou ao
      servidor (um POST repetido pode duplicar uma mensagem no chat).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        status_forcelist: Iterable[int] = (429, 500, 502, 503, 504),
        retry_reads: bool = True,
        log_name: str = "http",
    ):
        self.base_url = base_url or ""
        self.timeout = timeout
        self.log_name = log_name

        self.session = requests.Session()
        retries = Retry(
            total=max_retries,
            read=None if retry_reads else 0,
            backoff_factor=backoff_factor,
            status_forcelist=list(status_forcelist),
            allowed_methods={"GET", "POST", "PUT", "DELETE", "PATCH"},
            respect_retry_after_header=True,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Executa uma requisição HTTP com logs e tempo de execução.
        Permite override de timeout por chamada via kwargs['timeout'].
        Só o `path` vai para o log (a base pode conter o token do bot).
        """
        url = self._url(path)
        rid = str(uuid.uuid4())
        started = time.perf_counter()

        try:
            logger.debug(f"{self.log_name}.request", extra={"rid": rid, "method": method, "path": path})
            timeout = kwargs.pop("timeout", self.timeout)
            resp = self.session.request(method, url, timeout=timeout, **kwargs)
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            logger.info(
                f"{self.log_name}.response",
                extra={
                    "rid": rid,
                    "path": path,
                    "status": resp.status_code,
                    "elapsed_ms": elapsed_ms,
                    "snippet": resp.text[:200],
                },
            )
            return resp
        except requests.RequestException as e:
            logger.warning(
                f"{self.log_name}.error",
                extra={"rid": rid, "path": path, "error_type": type(e).__name__},
            )
            raise

    def post_json(self, path: str, payload: Dict[str, Any], **kwargs) -> requests.Response:
        """
        Faz POST com corpo JSON e devolve a Response (o chamador interpreta o corpo).
        """
        headers = kwargs.pop("headers", {})
        headers.setdefault("Accept", "application/json")
        return self.request("POST", path, headers=headers, json=payload, **kwargs)
