from .api import AuthorizedFunPayClient, FunPayClient
from .exceptions import (
    ApiError,
    ExtractionError,
    FunPayError,
    InvalidGoldenKeyError,
    NotFoundError,
    SessionRefreshError,
)

__all__ = [
    "ApiError",
    "AuthorizedFunPayClient",
    "ExtractionError",
    "FunPayClient",
    "FunPayError",
    "InvalidGoldenKeyError",
    "NotFoundError",
    "SessionRefreshError",
]
