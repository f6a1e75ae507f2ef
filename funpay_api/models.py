from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union


class UserKind(Enum):
    USER = "user"
    SELLER = "seller"


class ReviewKind(Enum):
    BASIC = "basic"
    ADVANCED = "advanced"


class TransactionStatus(Enum):
    COMPLETED = "completed"
    CANCELED = "canceled"
    WAITING = "waiting"


class TransactionType(Enum):
    # значение уходит в поле filter как есть
    PAYMENT = "replenishment"
    WITHDRAW = "withdraw"
    ORDER = "order"
    OTHER = "other"


@dataclass(frozen=True)
class PreviewUser:
    user_id: int
    username: str
    avatar_photo_link: Optional[str]
    is_online: bool


@dataclass(frozen=True)
class PreviewSeller:
    user_id: int
    username: str
    avatar_photo_link: Optional[str]
    is_online: bool
    review_count: int = 0


@dataclass(frozen=True)
class PreviewOffer:
    offer_id: int
    short_description: str
    price: float
    is_auto_delivery: bool
    is_promo: bool
    seller: PreviewSeller


@dataclass(frozen=True)
class LotCounter:
    lot_id: int
    param: str
    counter: int


@dataclass(frozen=True)
class Lot:
    id: int
    title: str
    description: str
    game_id: int
    lot_counters: List[LotCounter] = field(default_factory=list)
    preview_offers: List[PreviewOffer] = field(default_factory=list)


@dataclass(frozen=True)
class Offer:
    id: int
    short_description: Optional[str]
    detailed_description: Optional[str]
    parameters: Dict[str, str]
    price: float
    attachment_links: List[str]
    is_auto_delivery: bool
    seller: PreviewSeller


@dataclass(frozen=True)
class SellerReview:
    game_title: str
    price: float
    text: str
    stars: int = 0
    seller_reply_text: Optional[str] = None
    kind: ReviewKind = field(default=ReviewKind.BASIC, init=False)


@dataclass(frozen=True)
class AdvancedSellerReview:
    game_title: str
    price: float
    text: str
    stars: int
    seller_reply_text: Optional[str]
    sender_user_id: int
    sender_username: str
    sender_avatar_link: Optional[str]
    order_id: str
    created_at: datetime
    kind: ReviewKind = field(default=ReviewKind.ADVANCED, init=False)


Review = Union[SellerReview, AdvancedSellerReview]


@dataclass(frozen=True)
class User:
    id: int
    username: str
    avatar_photo_link: Optional[str]
    is_online: bool
    badges: List[str]
    registered_at: datetime
    last_seen_at: Optional[datetime]
    kind: UserKind = field(default=UserKind.USER, init=False)


@dataclass(frozen=True)
class Seller:
    id: int
    username: str
    avatar_photo_link: Optional[str]
    is_online: bool
    badges: List[str]
    registered_at: datetime
    last_seen_at: Optional[datetime]
    rating: float
    review_count: int
    preview_offers: List[PreviewOffer] = field(default_factory=list)
    last_reviews: List[Review] = field(default_factory=list)
    kind: UserKind = field(default=UserKind.SELLER, init=False)


Profile = Union[User, Seller]


@dataclass(frozen=True)
class Order:
    id: str
    statuses: List[str]
    short_description: str
    detailed_description: str
    params: Dict[str, str]
    price: Optional[float]
    other: PreviewUser


@dataclass(frozen=True)
class Transaction:
    id: int
    title: str
    price: float
    status: TransactionStatus
    payment_number: Optional[str]
    date: datetime


@dataclass(frozen=True)
class PromoGameCounter:
    lot_id: int
    title: str


@dataclass(frozen=True)
class PromoGame:
    lot_id: int
    title: str
    promo_game_counters: List[PromoGameCounter] = field(default_factory=list)


@dataclass(frozen=True)
class CsrfSession:
    """Пара csrf-token + PHPSESSID: меняется только целиком."""

    csrf_token: str
    phpsessid: str
