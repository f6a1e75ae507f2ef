"""Общие фикстуры: изолированный config.json и подменённый транспорт.

В сеть тесты не ходят: session.request отдаёт заранее собранные
requests.Response, а config.json и лог пишутся во временный каталог.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional

import pytest
import requests
from pytest_mock import MockerFixture

GOLDEN_KEY = "0123456789abcdefghijklmnopqrstuv"


@pytest.fixture(autouse=True)
def funpay_home(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """config.json и funpay_api.log каждого теста живут в tmp_path."""
    monkeypatch.setenv("FUNPAY_API_HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def make_response() -> Callable[..., requests.Response]:
    def _make(
        body: Any = "",
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        if not isinstance(body, str):
            body = json.dumps(body, ensure_ascii=False)
        r = requests.Response()
        r.status_code = status_code
        r._content = body.encode("utf-8")
        r.encoding = "utf-8"
        r.headers.update(headers or {})
        r.url = "https://funpay.com/"
        return r

    return _make


@pytest.fixture
def http_session(mocker: MockerFixture):
    """Настоящая requests.Session с подменённым request()."""
    session = requests.Session()
    mocker.patch.object(session, "request")
    return session


def csrf_page(token: str = "csrf-1") -> str:
    app_data = json.dumps({"csrf-token": token, "userId": 1}).replace('"', "&quot;")
    return f'<html><body data-app-data="{app_data}"><div class="page-content"></div></body></html>'


def sent_form(call) -> Dict[str, str]:
    """Поля multipart-формы из вызова session.request."""
    return {name: value for name, (_, value) in call.kwargs["files"]}


def sent_form_names(call):
    return [name for name, _ in call.kwargs["files"]]
