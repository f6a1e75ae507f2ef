"""Ошибки funpay_api.

Всё, что долетает до вызывающего кода, наследуется от FunPayError:
сырые исключения requests и json наружу не выходят.
"""
from __future__ import annotations

from typing import Any, Optional


class FunPayError(Exception):
    """Базовая ошибка библиотеки."""


class ApiError(FunPayError):
    """Сеть, неожиданный статус или ответ, который не удалось разобрать."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExtractionError(ApiError):
    """Страница не того вида, который ожидает парсер."""

    def __init__(self, page: str, reason: str) -> None:
        super().__init__(f"Не удалось разобрать страницу '{page}': {reason}")
        self.page = page
        self.reason = reason


class NotFoundError(ApiError):
    entity = "entity"

    def __init__(self, entity_id: Any) -> None:
        super().__init__(f"{self.entity.capitalize()} with id {entity_id} does not found")
        self.entity_id = entity_id


class LotNotFoundError(NotFoundError):
    entity = "lot"


class OfferNotFoundError(NotFoundError):
    entity = "offer"


class UserNotFoundError(NotFoundError):
    # /users/reviews отдаёт 404 и для несуществующего пользователя,
    # и для пользователя-не-продавца: различить их по ответу нельзя
    entity = "user"


class OrderNotFoundError(NotFoundError):
    entity = "order"


class InvalidGoldenKeyError(ApiError):
    """golden_key отклонён (HTTP 403). Обновление csrf тут не поможет."""

    def __init__(self, message: str = "goldenKey is invalid") -> None:
        super().__init__(message, status_code=403)


class StaleSessionTokenError(ApiError):
    """csrf-token или PHPSESSID протухли на стороне FunPay."""

    def __init__(self, message: str = "csrf token or PHPSESSID is invalid") -> None:
        super().__init__(message, status_code=400)


class SessionRefreshError(ApiError):
    """Токен отклонён повторно даже после обновления сессии."""


class OfferAlreadyRaisedError(ApiError):
    def __init__(self, message: str = "Offer already raised") -> None:
        super().__init__(message)


class OfferSaveError(ApiError):
    """FunPay не принял форму лота (done: false)."""

    def __init__(self, error: Any, errors: Any) -> None:
        super().__init__(f"Offer was not saved: {error} {errors}")
        self.error = error
        self.errors = errors


class DateFormatError(FunPayError, ValueError):
    def __init__(self, text: str) -> None:
        super().__init__(f"Unrecognized date format: {text}")
        self.text = text
