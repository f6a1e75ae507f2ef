from __future__ import annotations

import re
import threading
from typing import Callable, Optional

import requests

from .exceptions import ApiError
from .logger import log
from .models import CsrfSession
from .parser import parse_csrf_token

_PHPSESSID_RE = re.compile(r"PHPSESSID=([^;,\s]*)")

FetchUnknownPage = Callable[[], requests.Response]


def parse_phpsessid(set_cookie: Optional[str]) -> str:
    m = _PHPSESSID_RE.search(set_cookie or "")
    if m is None or not m.group(1):
        raise ApiError("В ответе нет Set-Cookie с PHPSESSID")
    return m.group(1)


class CredentialSession:
    """
    csrf-token + PHPSESSID одного golden_key.

    Пара хранится как неизменяемый CsrfSession и подменяется целиком под
    замком, поэтому никто не увидит свежий токен рядом со старым PHPSESSID.
    Несколько потоков могут обновить пару одновременно: это лишние запросы,
    но не ошибка.
    """

    def __init__(self, fetch_unknown_page: FetchUnknownPage) -> None:
        self._fetch_unknown_page = fetch_unknown_page
        self._lock = threading.Lock()
        self._pair: CsrfSession | None = None
        self.refresh_count = 0

    def current(self) -> CsrfSession | None:
        with self._lock:
            return self._pair

    def set(self, csrf_token: str, phpsessid: str) -> CsrfSession:
        pair = CsrfSession(csrf_token=csrf_token, phpsessid=phpsessid)
        with self._lock:
            self._pair = pair
        return pair

    def refresh(self) -> CsrfSession:
        """
        Запрашивает /unknown/: FunPay рендерит на него самую маленькую
        страницу (404), но в ней уже есть data-app-data с csrf-token,
        а в Set-Cookie приходит PHPSESSID.
        """
        response = self._fetch_unknown_page()
        pair = CsrfSession(
            csrf_token=parse_csrf_token(response.text),
            phpsessid=parse_phpsessid(response.headers.get("Set-Cookie")),
        )
        with self._lock:
            self._pair = pair
            self.refresh_count += 1
        log("SESSION: обновлены csrf-token и PHPSESSID")
        return pair

    def ensure(self) -> CsrfSession:
        pair = self.current()
        if pair is None:
            return self.refresh()
        return pair
