"""Разбор дат, которые FunPay пишет в разметке.

Три грамматики: дата регистрации ("сегодня, 14:02", "12 марта 2023, 18:00"),
"был в сети" ("Был вчера в 09:10 (2 дня назад)") и дата отзыва
("12 марта в 18:00"). Месяцы берутся из своей таблицы, а не из локали
системы, поэтому результат одинаковый на любой машине. Английские варианты
("today", "12 March, 18:00") понимаются как синонимы.
"""
from __future__ import annotations

import re
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional

from .exceptions import DateFormatError

MONTHS: Dict[str, int] = {
    "января": 1,
    "февраля": 2,
    "марта": 3,
    "апреля": 4,
    "мая": 5,
    "июня": 6,
    "июля": 7,
    "августа": 8,
    "сентября": 9,
    "октября": 10,
    "ноября": 11,
    "декабря": 12,
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
}

YESTERDAY_WORDS = ("вчера", "yesterday")

NEVER_VISITED = "После регистрации на сайт не заходил"
ONLINE = "Онлайн"

_TIME = r"(?P<hour>\d{1,2}):(?P<minute>\d{2})"
_RELATIVE = r"(?P<relative>сегодня|вчера|today|yesterday)"
_ABSOLUTE = r"(?P<day>\d{1,2})\s+(?P<month>[^\W\d_]+)(?:\s+(?P<year>\d{4}))?"
_AT = r"\s+(?:в|at)\s+"

_REGISTRATION_RE = re.compile(
    rf"^(?:{_RELATIVE}|{_ABSOLUTE}),\s*{_TIME}$", re.IGNORECASE
)
_REVIEW_RE = re.compile(
    rf"^(?:{_RELATIVE},\s*|{_ABSOLUTE}(?:,\s*|{_AT})){_TIME}$", re.IGNORECASE
)
_LAST_SEEN_RE = re.compile(
    rf"(?:{_RELATIVE}|{_ABSOLUTE}){_AT}{_TIME}", re.IGNORECASE
)
_PARENTHETICAL_RE = re.compile(r"\(.*\)")


class DateKind(Enum):
    REGISTRATION = "registration"
    LAST_SEEN = "last_seen"
    REVIEW = "review"


def _build(match: re.Match, text: str, now: datetime) -> datetime:
    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    relative = match.group("relative")

    if relative:
        day = now
        if relative.lower() in YESTERDAY_WORDS:
            day = now - timedelta(days=1)
        try:
            return day.replace(hour=hour, minute=minute, second=0, microsecond=0)
        except ValueError as e:
            raise DateFormatError(text) from e

    month = MONTHS.get(match.group("month").lower())
    if month is None:
        raise DateFormatError(text)
    year = int(match.group("year")) if match.group("year") else now.year
    try:
        return datetime(year, month, int(match.group("day")), hour, minute)
    except ValueError as e:
        # 31 февраля, 25:00 и т.п.
        raise DateFormatError(text) from e


def parse_registration_date(text: str, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now()
    cleaned = " ".join(text.split())
    match = _REGISTRATION_RE.match(cleaned)
    if match is None:
        raise DateFormatError(text)
    return _build(match, text, now)


def parse_review_date(text: str, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now()
    cleaned = " ".join(text.split())
    match = _REVIEW_RE.match(cleaned)
    if match is None:
        raise DateFormatError(text)
    return _build(match, text, now)


def parse_last_seen_date(
    text: str,
    registered_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> datetime:
    """
    "Был сегодня в 14:02 (2 часа назад)" -> datetime.

    Если пользователь после регистрации не заходил, возвращается дата
    регистрации, если он онлайн, то текущее время.
    """
    now = now or datetime.now()
    if NEVER_VISITED in text:
        if registered_at is None:
            raise DateFormatError(text)
        return registered_at
    if ONLINE in text:
        return now

    cleaned = " ".join(_PARENTHETICAL_RE.sub("", text, count=1).split())
    match = _LAST_SEEN_RE.search(cleaned)
    if match is None:
        raise DateFormatError(text)
    return _build(match, text, now)


def parse_date(
    kind: DateKind,
    text: str,
    now: Optional[datetime] = None,
    registered_at: Optional[datetime] = None,
) -> datetime:
    if kind is DateKind.REGISTRATION:
        return parse_registration_date(text, now)
    if kind is DateKind.REVIEW:
        return parse_review_date(text, now)
    return parse_last_seen_date(text, registered_at, now)
