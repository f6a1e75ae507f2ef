from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .models import TransactionType


@dataclass
class GetLot:
    lot_id: int


@dataclass
class GetPromoGames:
    query: str


@dataclass
class GetOffer:
    offer_id: int


@dataclass
class GetUser:
    user_id: int


@dataclass
class GetSellerReviews:
    user_id: int
    pages: int = 1
    stars_filter: Optional[int] = None


@dataclass
class GetTransactions:
    user_id: int
    pages: int = 1
    type: Optional[TransactionType] = None


@dataclass
class GetOrder:
    order_id: str


@dataclass
class CreateOffer:
    lot_id: int
    price: Optional[float] = None
    amount: Optional[int] = None
    short_description_ru: Optional[str] = None
    short_description_en: Optional[str] = None
    description_ru: Optional[str] = None
    description_en: Optional[str] = None
    payment_message_ru: Optional[str] = None
    payment_message_en: Optional[str] = None
    fields: Dict[str, str] = field(default_factory=dict)
    is_auto_delivery: bool = False
    is_active: bool = True
    secrets: Optional[List[str]] = None
    image_ids: Optional[List[int]] = None


@dataclass
class EditOffer:
    lot_id: int
    offer_id: int
    price: Optional[float] = None
    amount: Optional[int] = None
    short_description_ru: Optional[str] = None
    short_description_en: Optional[str] = None
    description_ru: Optional[str] = None
    description_en: Optional[str] = None
    payment_message_ru: Optional[str] = None
    payment_message_en: Optional[str] = None
    fields: Dict[str, str] = field(default_factory=dict)
    is_auto_delivery: bool = False
    is_active: bool = True
    secrets: Optional[List[str]] = None
    image_ids: Optional[List[int]] = None


@dataclass
class DeleteOffer:
    lot_id: int
    offer_id: int


@dataclass
class RaiseAllOffers:
    game_id: int
    lot_id: int


@dataclass
class CreateOfferImage:
    image: bytes


@dataclass
class UpdateAvatar:
    new_avatar: bytes


@dataclass
class SaveOfferRequest:
    """Поля формы /lots/offerSave в том виде, в каком их ждёт FunPay."""

    node_id: Optional[int] = None
    offer_id: Optional[int] = None
    summary_ru: Optional[str] = None
    summary_en: Optional[str] = None
    desc_ru: Optional[str] = None
    desc_en: Optional[str] = None
    payment_message_ru: Optional[str] = None
    payment_message_en: Optional[str] = None
    fields: Dict[str, str] = field(default_factory=dict)
    is_auto_delivery: bool = False
    is_active: bool = False
    is_deleted: bool = False
    secrets: Optional[List[str]] = None
    images: Optional[List[int]] = None
    price: Optional[float] = None
    amount: Optional[int] = None

    @classmethod
    def from_offer(cls, command: Union[CreateOffer, EditOffer]) -> "SaveOfferRequest":
        return cls(
            node_id=command.lot_id,
            offer_id=getattr(command, "offer_id", None),
            summary_ru=command.short_description_ru,
            summary_en=command.short_description_en,
            desc_ru=command.description_ru,
            desc_en=command.description_en,
            payment_message_ru=command.payment_message_ru,
            payment_message_en=command.payment_message_en,
            fields=dict(command.fields or {}),
            is_auto_delivery=command.is_auto_delivery,
            is_active=command.is_active,
            secrets=command.secrets,
            images=command.image_ids,
            price=command.price,
            amount=command.amount,
        )
