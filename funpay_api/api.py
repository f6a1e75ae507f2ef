from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import requests

from .commands import (
    CreateOffer,
    CreateOfferImage,
    DeleteOffer,
    EditOffer,
    GetLot,
    GetOffer,
    GetOrder,
    GetPromoGames,
    GetSellerReviews,
    GetTransactions,
    GetUser,
    RaiseAllOffers,
    SaveOfferRequest,
    UpdateAvatar,
)
from .exceptions import (
    ApiError,
    InvalidGoldenKeyError,
    OfferAlreadyRaisedError,
    OfferSaveError,
    SessionRefreshError,
    StaleSessionTokenError,
    UserNotFoundError,
)
from .logger import log
from .models import (
    CsrfSession,
    Lot,
    Offer,
    Order,
    Profile,
    PromoGame,
    Review,
    Transaction,
    TransactionType,
)
from .pagination import paginate
from .parser import (
    parse_lot,
    parse_offer,
    parse_order,
    parse_promo_games,
    parse_seller_reviews_page,
    parse_transactions_page,
    parse_user,
)
from .session import CredentialSession
from .settings import BASE_URL, load_settings

STALE_TOKEN_MESSAGE = "Обновите страницу и повторите попытку."
ALREADY_RAISED_PREFIX = "Подождите"

FormFields = List[Tuple[str, Tuple[Optional[str], Any]]]


def _form(**fields: Any) -> FormFields:
    # multipart без имени файла, как обычные поля формы
    return [(name, (None, "" if value is None else str(value))) for name, value in fields.items()]


class FunPayClient:
    """Анонимный доступ к FunPay: лоты, офферы, профили, отзывы, промо-игры."""

    BASE_URL = BASE_URL

    def __init__(
        self,
        user_agent: str | None = None,
        base_url: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 20,
    ) -> None:
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.user_agent = user_agent or "Mozilla/5.0 (funpay-api)"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"user-agent": self.user_agent})

    @classmethod
    def from_settings(cls, cfg: Dict[str, Any] | None = None) -> "FunPayClient":
        cfg = cfg or load_settings()
        return cls(
            user_agent=cfg.get("user_agent") or None,
            base_url=cfg.get("base_url") or None,
            timeout=cfg.get("timeout") or 20,
        )

    def _absolute_url(self, href: str) -> str:
        if href.startswith("http://") or href.startswith("https://"):
            return href
        if not href:
            return self.base_url
        if not href.startswith("/"):
            href = "/" + href
        return self.base_url + href

    def _cookie(self, phpsessid: str | None = None) -> str | None:
        return None

    def _request(
        self,
        method: str,
        path: str,
        cookie: str | None = None,
        ajax: bool = False,
        **kwargs: Any,
    ) -> requests.Response:
        headers: Dict[str, str] = {}
        if cookie:
            headers["cookie"] = cookie
        if ajax:
            headers["x-requested-with"] = "XMLHttpRequest"
        url = self._absolute_url(path)
        try:
            r = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError(f"{method} {url}: {e}") from e
        if r.status_code >= 500:
            raise ApiError(f"{method} {url}: FunPay ответил {r.status_code}", r.status_code)
        return r

    @staticmethod
    def _json(r: requests.Response) -> Dict[str, Any]:
        try:
            data = json.loads(r.text)
        except ValueError as e:
            raise ApiError(f"Ожидали JSON, получили: {r.text[:200]!r}", r.status_code) from e
        if not isinstance(data, dict):
            raise ApiError(f"Ожидали JSON-объект, получили: {r.text[:200]!r}", r.status_code)
        return data

    # ───────────────────── чтение ─────────────────────

    def get_lot(self, lot_id: int) -> Lot:
        r = self._request("GET", f"/lots/{lot_id}/")
        return parse_lot(r.text, lot_id)

    def get_promo_games(self, query: str) -> List[PromoGame]:
        r = self._request("POST", "/games/promoFilter", ajax=True, files=_form(query=query))
        return parse_promo_games(r.text)

    def get_offer(self, offer_id: int) -> Offer:
        r = self._request("GET", f"/lots/offer?id={offer_id}")
        return parse_offer(r.text, offer_id)

    def get_user(self, user_id: int) -> Profile:
        r = self._request("GET", f"/users/{user_id}/", cookie=self._cookie())
        return parse_user(r.text, user_id)

    def iter_seller_reviews(
        self, user_id: int, pages: int = 1, stars_filter: int | None = None
    ) -> Iterator[Review]:
        """
        Отзывы продавца по страницам ленты /users/reviews.

        404 значит "пользователя нет" или "он не продавец": FunPay их не
        различает, поэтому в обоих случаях UserNotFoundError.
        """

        def fetch(continue_arg: str) -> str:
            r = self._request(
                "POST",
                "/users/reviews",
                cookie=self._cookie(),
                ajax=True,
                files=_form(
                    user_id=user_id,
                    filter="" if stars_filter is None else stars_filter,
                    **{"continue": continue_arg},
                ),
            )
            if r.status_code == 404:
                raise UserNotFoundError(user_id)
            return r.text

        return paginate(fetch, parse_seller_reviews_page, pages)

    def get_seller_reviews(
        self, user_id: int, pages: int = 1, stars_filter: int | None = None
    ) -> List[Review]:
        return list(self.iter_seller_reviews(user_id, pages, stars_filter))

    # ───────────────────── команды ─────────────────────

    def _handlers(self) -> Dict[type, Callable[[Any], Any]]:
        return {
            GetLot: lambda c: self.get_lot(c.lot_id),
            GetPromoGames: lambda c: self.get_promo_games(c.query),
            GetOffer: lambda c: self.get_offer(c.offer_id),
            GetUser: lambda c: self.get_user(c.user_id),
            GetSellerReviews: lambda c: self.get_seller_reviews(c.user_id, c.pages, c.stars_filter),
        }

    def execute(self, command: Any) -> Any:
        handler = self._handlers().get(type(command))
        if handler is None:
            raise TypeError(f"{type(self).__name__} не умеет выполнять {type(command).__name__}")
        return handler(command)


class AuthorizedFunPayClient(FunPayClient):
    """
    Доступ от имени пользователя по golden_key.

    Сохранение/удаление офферов требует пары csrf-token + PHPSESSID. Если
    FunPay отвечает, что пара устарела, она обновляется один раз и форма
    отправляется повторно; второй отказ уже ошибка (SessionRefreshError).
    Один клиент на golden_key можно использовать из нескольких потоков.
    """

    def __init__(
        self,
        golden_key: str,
        user_agent: str | None = None,
        base_url: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 20,
    ) -> None:
        super().__init__(user_agent=user_agent, base_url=base_url, session=session, timeout=timeout)
        self.golden_key = golden_key
        self.credentials = CredentialSession(self._fetch_unknown_page)

    @classmethod
    def from_settings(cls, cfg: Dict[str, Any] | None = None) -> "AuthorizedFunPayClient":
        cfg = cfg or load_settings()
        if not cfg.get("golden_key"):
            raise InvalidGoldenKeyError("golden_key не задан в config.json")
        return cls(
            cfg["golden_key"],
            user_agent=cfg.get("user_agent") or None,
            base_url=cfg.get("base_url") or None,
            timeout=cfg.get("timeout") or 20,
        )

    def _cookie(self, phpsessid: str | None = None) -> str | None:
        cookie = f"golden_key={self.golden_key}"
        if phpsessid:
            cookie += f"; PHPSESSID={phpsessid}"
        return cookie

    def _check_golden_key(self, r: requests.Response) -> None:
        if r.status_code == 403:
            raise InvalidGoldenKeyError()

    # ───────────────────── сессия ─────────────────────

    def _fetch_unknown_page(self) -> requests.Response:
        # несуществующая страница: FunPay отдаёт самый лёгкий 404
        return self._request("GET", "/unknown/", cookie=self._cookie())

    def update_csrf_token_and_session(self) -> CsrfSession:
        return self.credentials.refresh()

    # ───────────────────── чтение ─────────────────────

    def iter_transactions(
        self, user_id: int, pages: int = 1, type: TransactionType | None = None
    ) -> Iterator[Transaction]:
        def fetch(continue_arg: str) -> str:
            r = self._request(
                "POST",
                "/users/transactions",
                cookie=self._cookie(),
                ajax=True,
                files=_form(
                    user_id=user_id,
                    filter="" if type is None else type.value,
                    **{"continue": continue_arg},
                ),
            )
            if r.status_code == 400:
                raise UserNotFoundError(user_id)
            self._check_golden_key(r)
            return r.text

        return paginate(fetch, parse_transactions_page, pages)

    def get_transactions(
        self, user_id: int, pages: int = 1, type: TransactionType | None = None
    ) -> List[Transaction]:
        return list(self.iter_transactions(user_id, pages, type))

    def get_order(self, order_id: str) -> Order:
        r = self._request("GET", f"/orders/{order_id}/", cookie=self._cookie())
        return parse_order(r.text, order_id)

    # ───────────────────── изменения ─────────────────────

    def raise_all_offers(self, game_id: int, lot_id: int) -> str:
        log(f"RAISE: поднимаю офферы game_id={game_id} lot_id={lot_id}")
        r = self._request(
            "POST",
            "/lots/raise",
            cookie=self._cookie(),
            ajax=True,
            files=_form(game_id=game_id, node_id=lot_id),
        )
        self._check_golden_key(r)
        msg = str(self._json(r).get("msg") or "")
        if msg.startswith(ALREADY_RAISED_PREFIX):
            raise OfferAlreadyRaisedError(msg)
        return msg

    def create_offer_image(self, image: bytes) -> int:
        r = self._request(
            "POST",
            "/file/addOfferImage",
            cookie=self._cookie(),
            ajax=True,
            files={"file": ("image.jpg", image)},
        )
        self._check_golden_key(r)
        file_id = self._json(r).get("fileId")
        try:
            return int(file_id)
        except (TypeError, ValueError) as e:
            raise ApiError(f"FunPay не вернул fileId: {r.text[:200]!r}", r.status_code) from e

    def update_avatar(self, new_avatar: bytes) -> None:
        log("AVATAR: обновляю аватар")
        r = self._request(
            "POST",
            "/file/avatar",
            cookie=self._cookie(),
            ajax=True,
            files={"file": ("image.jpg", new_avatar)},
        )
        self._check_golden_key(r)

    def create_offer(self, command: CreateOffer) -> None:
        self.save_offer(SaveOfferRequest.from_offer(command))

    def edit_offer(self, command: EditOffer) -> None:
        self.save_offer(SaveOfferRequest.from_offer(command))

    def delete_offer(self, command: DeleteOffer) -> None:
        self.save_offer(
            SaveOfferRequest(node_id=command.lot_id, offer_id=command.offer_id, is_deleted=True)
        )

    def save_offer(self, request: SaveOfferRequest) -> None:
        log(f"OFFER: сохранение node_id={request.node_id} offer_id={request.offer_id}")
        pair = self.credentials.ensure()
        try:
            self._submit_offer(pair, request)
        except StaleSessionTokenError:
            log("OFFER: csrf-token/PHPSESSID устарели, обновляю и повторяю")
            pair = self.credentials.refresh()
            try:
                self._submit_offer(pair, request)
            except StaleSessionTokenError as e:
                raise SessionRefreshError(
                    "csrf token or PHPSESSID is still invalid after refresh"
                ) from e

    def _offer_form(self, pair: CsrfSession, request: SaveOfferRequest) -> FormFields:
        # имена и порядок полей как у формы на сайте
        form = _form(
            csrf_token=pair.csrf_token,
            offer_id=request.offer_id,
            node_id=request.node_id,
            deleted="1" if request.is_deleted else "",
            auto_delivery="on" if request.is_auto_delivery else "",
            active="on" if request.is_active else "",
            secrets="\n".join(request.secrets) if request.secrets else "",
            **{
                "fields[images]": ",".join(str(i) for i in request.images) if request.images else "",
                "price": request.price,
                "amount": request.amount,
                "form_created_at": int(time.time() * 1000),
                "fields[summary][ru]": request.summary_ru,
                "fields[summary][en]": request.summary_en,
                "fields[desc][ru]": request.desc_ru,
                "fields[desc][en]": request.desc_en,
                "fields[payment_msg][ru]": request.payment_message_ru,
                "fields[payment_msg][en]": request.payment_message_en,
            },
        )
        form.extend(_form(**request.fields))
        return form

    def _submit_offer(self, pair: CsrfSession, request: SaveOfferRequest) -> None:
        r = self._request(
            "POST",
            "/lots/offerSave",
            cookie=self._cookie(pair.phpsessid),
            ajax=True,
            files=self._offer_form(pair, request),
        )
        self._check_golden_key(r)

        data = self._json(r) if r.text.strip() else None
        if r.status_code == 400 and data is not None and data.get("msg") == STALE_TOKEN_MESSAGE:
            raise StaleSessionTokenError()
        if data is not None and not data.get("done"):
            raise OfferSaveError(data.get("error"), data.get("errors"))
        if data is None and r.status_code >= 400:
            raise ApiError(f"offerSave: FunPay ответил {r.status_code}", r.status_code)

    # ───────────────────── команды ─────────────────────

    def _handlers(self) -> Dict[type, Callable[[Any], Any]]:
        handlers = super()._handlers()
        handlers.update(
            {
                GetTransactions: lambda c: self.get_transactions(c.user_id, c.pages, c.type),
                GetOrder: lambda c: self.get_order(c.order_id),
                CreateOffer: self.create_offer,
                EditOffer: self.edit_offer,
                DeleteOffer: self.delete_offer,
                RaiseAllOffers: lambda c: self.raise_all_offers(c.game_id, c.lot_id),
                CreateOfferImage: lambda c: self.create_offer_image(c.image),
                UpdateAvatar: lambda c: self.update_avatar(c.new_avatar),
            }
        )
        return handlers
