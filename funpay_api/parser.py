from __future__ import annotations

import json
import re
from datetime import datetime
from enum import Enum
from html import unescape
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from bs4 import BeautifulSoup, Tag

from .dates import parse_last_seen_date, parse_registration_date, parse_review_date
from .exceptions import (
    DateFormatError,
    ExtractionError,
    LotNotFoundError,
    NotFoundError,
    OfferNotFoundError,
    OrderNotFoundError,
    UserNotFoundError,
)
from .models import (
    AdvancedSellerReview,
    Lot,
    LotCounter,
    Offer,
    Order,
    PreviewOffer,
    PreviewSeller,
    PreviewUser,
    Profile,
    PromoGame,
    PromoGameCounter,
    Review,
    Seller,
    SellerReview,
    Transaction,
    TransactionStatus,
    User,
)

HTML_PARSER = "lxml"
DEFAULT_AVATAR = "/img/layout/avatar.png"
ORDER_AMOUNT_LABELS = ("Сумма", "Amount")

_LOT_HREF_RE = re.compile(r"/lots/(\d+)/?")
_USER_HREF_RE = re.compile(r"/users/(\d+)/?")
_ORDER_HREF_RE = re.compile(r"/orders/([A-Za-z0-9]+)/?")
_OFFER_HREF_RE = re.compile(r"[?&]id=(\d+)")
_STYLE_URL_RE = re.compile(r"url\(\s*(['\"]?)(.*?)\1\s*\)")
_RATING_CLASS_RE = re.compile(r"^rating(\d+)$")
_LEADING_DIGITS_RE = re.compile(r"^\d+")


class PageKind(Enum):
    LOT = "lot"
    OFFER = "offer"
    USER = "user"
    SELLER_REVIEWS = "seller_reviews"
    TRANSACTIONS = "transactions"
    ORDER = "order"
    PROMO_GAMES = "promo_games"
    CSRF_TOKEN = "csrf_token"


# ───────────────────── числа ─────────────────────


def parse_price(text: str) -> float:
    """'от 1111.32 ₽' -> 1111.32 (всё, кроме цифр и точки, выкидываем)."""
    s = re.sub(r"[^0-9.]", "", text)
    return float(s)


def parse_signed_price(text: str) -> float:
    """'−68.52 ₽' -> -68.52 (в транзакциях FunPay пишет типографский минус)."""
    s = text.replace("−", "-")
    return float(re.sub(r"[^0-9.-]", "", s))


def leading_int(text: str) -> int:
    """'219 отзывов за 2 года' -> 219, без цифр в начале 0."""
    m = _LEADING_DIGITS_RE.match(text.strip())
    return int(m.group(0)) if m else 0


# ───────────────────── общие хелперы ─────────────────────


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, HTML_PARSER)


def _text(el: Optional[Tag]) -> str:
    if el is None:
        return ""
    return " ".join(el.get_text(" ").split())


def _children(el: Tag) -> List[Tag]:
    return el.find_all(True, recursive=False)


def _first(node: Tag, selector: str, page: str) -> Tag:
    el = node.select_one(selector)
    if el is None:
        raise ExtractionError(page, f"нет элемента '{selector}'")
    return el


def _nth(items: Sequence[Tag], index: int, page: str, what: str) -> Tag:
    if len(items) <= index:
        raise ExtractionError(page, f"ожидали {what} на позиции {index}, найдено {len(items)}")
    return items[index]


def _number(convert: Callable[[str], Any], text: str, page: str, what: str) -> Any:
    try:
        return convert(text)
    except (ValueError, IndexError) as e:
        raise ExtractionError(page, f"не число в поле '{what}': {text!r}") from e


def _id_from(value: str, pattern: re.Pattern, page: str) -> str:
    m = pattern.search(value or "")
    if m is None:
        raise ExtractionError(page, f"не нашли id в {value!r}")
    return m.group(1)


def _avatar(link: Optional[str]) -> Optional[str]:
    # стандартная заглушка FunPay = аватара нет
    if not link or link == DEFAULT_AVATAR:
        return None
    return link


def _avatar_from_style(style: str) -> Optional[str]:
    m = _STYLE_URL_RE.search(style or "")
    return _avatar(m.group(2) if m else None)


def is_not_found_page(soup: BeautifulSoup) -> bool:
    """Страница "не найдено": .page-content-full и .page-header внутри него.

    Один только .page-content-full встречается и на обычных страницах.
    """
    full = soup.select_one(".page-content-full")
    if full is None:
        return False
    return full.select_one(".page-header") is not None


def _check_found(soup: BeautifulSoup, error: Type[NotFoundError], entity_id: Any) -> None:
    if is_not_found_page(soup):
        raise error(entity_id)


def parse_app_data(soup: BeautifulSoup) -> Dict[str, Any]:
    """В <body data-app-data="..."> лежит JSON с csrf-token и userId."""
    body = soup.select_one("body")
    if not body:
        return {}

    raw = body.get("data-app-data") or ""
    if not raw:
        return {}

    try:
        data = json.loads(unescape(raw))
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def parse_continue_token(soup: BeautifulSoup) -> Optional[str]:
    """Курсор следующей страницы ленты из формы .dyn-table-form.

    Берётся второй input формы (первый из них user_id); пустое значение значит,
    что страниц больше нет.
    """
    form = soup.select_one(".dyn-table-form")
    if form is None:
        return None
    inputs = form.find_all("input")
    if len(inputs) < 2:
        return None
    return inputs[1].get("value") or None


# ───────────────────── лот ─────────────────────


def _parse_lot_preview_offer(a: Tag, page: str) -> PreviewOffer:
    offer_id = int(_id_from(a.get("href", ""), _OFFER_HREF_RE, page))
    price_el = _first(a, ".tc-price", page)
    avatar_el = _first(a, ".avatar-photo", page)
    review_count_el = a.select_one(".rating-mini-count")

    seller = PreviewSeller(
        user_id=int(_id_from(avatar_el.get("data-href", ""), _USER_HREF_RE, page)),
        username=_text(a.select_one(".media-user-name")),
        avatar_photo_link=_avatar_from_style(avatar_el.get("style", "")),
        is_online=a.select_one(".media-user.online") is not None,
        review_count=(
            _number(int, _text(review_count_el), page, "rating-mini-count")
            if review_count_el
            else 0
        ),
    )
    return PreviewOffer(
        offer_id=offer_id,
        short_description=_text(a.select_one(".tc-desc-text")),
        price=_number(float, price_el.get("data-s", ""), page, "tc-price"),
        is_auto_delivery=a.select_one(".auto-dlv-icon") is not None,
        is_promo=a.select_one(".promo-offer-icon") is not None,
        seller=seller,
    )


def parse_lot(html: str, lot_id: int) -> Lot:
    page = "lot"
    soup = _soup(html)
    _check_found(soup, LotNotFoundError, lot_id)

    # первый .container это шапка страницы, витрина лежит во втором
    content_body = _first(soup, "#content-body", page)
    container = _nth(content_body.select(".container"), 1, page, ".container")
    content = _first(soup, ".content-with-cd", page)
    showcase = _first(container, ".content-with-cd-wide.showcase", page)

    counters: List[LotCounter] = []
    counter_list = soup.select_one(".counter-list")
    if counter_list is not None:
        for a in counter_list.select("a"):
            href = a.get("href", "")
            # chips пока не поддерживаются
            if "chips" in href:
                continue
            counter_lot_id = int(_id_from(href, _LOT_HREF_RE, page))
            if counter_lot_id == lot_id:
                continue
            counters.append(
                LotCounter(
                    lot_id=counter_lot_id,
                    param=_text(a.select_one(".counter-param")),
                    counter=_number(int, _text(a.select_one(".counter-value")), page, "counter-value"),
                )
            )

    offers = [
        _parse_lot_preview_offer(a, page)
        for a in _first(container, ".tc", page).select("a.tc-item")
    ]

    return Lot(
        id=lot_id,
        title=_text(_first(content, "h1", page)),
        description=_text(content.select_one("p")),
        game_id=_number(int, showcase.get("data-game", ""), page, "data-game"),
        lot_counters=counters,
        preview_offers=offers,
    )


# ───────────────────── оффер ─────────────────────


def _parse_product_page_user(soup: BeautifulSoup, page: str) -> PreviewUser:
    """Блок продавца/покупателя на странице оффера или заказа."""
    name_link = _first(_first(soup, ".media-user-name", page), "a", page)
    img = _first(_first(soup, ".media-user", page), "img", page)
    return PreviewUser(
        user_id=int(_id_from(name_link.get("href", ""), _USER_HREF_RE, page)),
        username=_text(name_link),
        avatar_photo_link=_avatar(img.get("src")),
        is_online=soup.select_one(".media.media-user.online") is not None,
    )


def parse_offer(html: str, offer_id: int) -> Offer:
    page = "offer"
    soup = _soup(html)
    _check_found(soup, OfferNotFoundError, offer_id)

    # только .param-item, лежащие прямо в .param-list
    param_items = soup.select(".param-list > .param-item")

    short_description = None
    detailed_description = None
    if len(param_items) == 1:
        detailed_description = _text(param_items[0].find("div"))
    elif len(param_items) >= 2:
        short_description = _text(param_items[0].find("div"))
        detailed_description = _text(param_items[1].find("div"))

    attachment_links: List[str] = []
    if len(param_items) > 2:
        for item in param_items[2].select(".attachments-item"):
            link = item.find("a")
            if link is not None and link.get("href"):
                attachment_links.append(link["href"])

    parameters: Dict[str, str] = {}
    param_list = soup.select_one(".param-list")
    row = param_list.select_one(".row") if param_list is not None else None
    if row is not None:
        for col in row.select(".col-xs-6"):
            item = col.select_one(".param-item")
            if item is None:
                continue
            parameters[_text(item.find("h5"))] = _text(item.select_one(".text-bold"))

    # итоговая цена в рублях: первый пункт выбора способа оплаты
    picker = _first(soup, ".form-control.input-lg.selectpicker", page)
    option = _nth(_children(picker), 0, page, "option")
    price = _number(parse_price, option.get("data-content", ""), page, "price")

    reviews_el = soup.select_one(".text-mini.text-light.mb5")
    user = _parse_product_page_user(soup, page)

    return Offer(
        id=offer_id,
        short_description=short_description,
        detailed_description=detailed_description,
        parameters=parameters,
        price=price,
        attachment_links=attachment_links,
        is_auto_delivery=soup.select_one(".offer-header-auto-dlv-label") is not None,
        seller=PreviewSeller(
            user_id=user.user_id,
            username=user.username,
            avatar_photo_link=user.avatar_photo_link,
            is_online=user.is_online,
            review_count=leading_int(_text(reviews_el)),
        ),
    )


# ───────────────────── отзывы ─────────────────────


def _parse_stars(compiled: Tag, page: str) -> int:
    rating = compiled.select_one(".rating")
    if rating is None:
        # отзыв без оценки
        return 0
    star_el = _nth(_children(rating), 0, page, "rating child")
    for cls in star_el.get("class", []):
        m = _RATING_CLASS_RE.match(cls)
        if m:
            return int(m.group(1))
    raise ExtractionError(page, f"нет класса ratingN у {star_el.get('class')}")


def _parse_review(container: Tag, page: str, now: Optional[datetime]) -> Review:
    compiled = _first(container, ".review-compiled-review", page)

    detail = _text(_first(compiled, ".review-item-detail", page)).split(", ")
    game_title = detail[0]
    price = _number(parse_price, detail[-1], page, "review-item-detail")
    text = _text(compiled.select_one(".review-item-text"))
    stars = _parse_stars(compiled, page)

    reply_el = container.select_one(".review-compiled-reply")
    reply = None
    if reply_el is not None:
        reply = " ".join(_text(child) for child in _children(reply_el))

    name_el = compiled.select_one(".media-user-name")
    order_el = compiled.select_one(".review-item-order")
    photo_el = compiled.select_one(".review-item-photo")
    photo_link = _children(photo_el)[0] if photo_el is not None and _children(photo_el) else None

    if name_el is None or order_el is None or photo_link is None or not _children(photo_link):
        return SellerReview(
            game_title=game_title,
            price=price,
            text=text,
            stars=stars,
            seller_reply_text=reply,
        )

    sender_link = _nth(_children(name_el), 0, page, "media-user-name link")
    order_link = _nth(_children(order_el), 0, page, "review-item-order link")
    date_text = _text(_first(compiled, ".review-item-date", page))
    try:
        created_at = parse_review_date(date_text, now)
    except DateFormatError as e:
        raise ExtractionError(page, str(e)) from e

    return AdvancedSellerReview(
        game_title=game_title,
        price=price,
        text=text,
        stars=stars,
        seller_reply_text=reply,
        sender_user_id=int(_id_from(sender_link.get("href", ""), _USER_HREF_RE, page)),
        sender_username=_text(sender_link),
        sender_avatar_link=_avatar(_children(photo_link)[0].get("src")),
        order_id=_id_from(order_link.get("href", ""), _ORDER_HREF_RE, page),
        created_at=created_at,
    )


def _parse_reviews(soup: BeautifulSoup, page: str, now: Optional[datetime]) -> List[Review]:
    return [_parse_review(c, page, now) for c in soup.select(".review-container")]


def parse_seller_reviews_page(
    html: str, now: Optional[datetime] = None
) -> Tuple[List[Review], Optional[str]]:
    """Одна страница ленты /users/reviews: отзывы и курсор следующей."""
    soup = _soup(html)
    return _parse_reviews(soup, "seller_reviews", now), parse_continue_token(soup)


# ───────────────────── пользователь ─────────────────────


def _parse_seller_offers(soup: BeautifulSoup, seller: PreviewSeller, page: str) -> List[PreviewOffer]:
    offers: List[PreviewOffer] = []
    for item in soup.select(".tc-item"):
        price_el = _first(item, ".tc-price", page)
        offers.append(
            PreviewOffer(
                offer_id=int(_id_from(item.get("href", ""), _OFFER_HREF_RE, page)),
                short_description=_text(item.select_one(".tc-desc-text")),
                price=_number(float, price_el.get("data-s", ""), page, "tc-price"),
                is_auto_delivery=price_el.select_one(".auto-dlv-icon") is not None,
                # в профиле промо-отметка не показывается
                is_promo=False,
                seller=seller,
            )
        )
    return offers


def parse_user(html: str, user_id: int, now: Optional[datetime] = None) -> Profile:
    page = "user"
    soup = _soup(html)
    _check_found(soup, UserNotFoundError, user_id)
    now = now or datetime.now()

    header = _first(soup, ".container.profile-header", page)
    profile = _first(soup, ".profile", page)

    username = _text(profile.select_one(".mr4"))
    avatar_photo_link = _avatar_from_style(_first(header, ".avatar-photo", page).get("style", ""))
    is_online = profile.select_one(".mb40.online") is not None

    badges: List[str] = []
    badges_el = profile.select_one(".user-badges")
    if badges_el is not None:
        badges = [_text(b) for b in _children(badges_el)]

    try:
        registered_at = parse_registration_date(_text(_first(profile, ".text-nowrap", page)), now)
    except DateFormatError:
        # аккаунт создан только что ("5 минут назад"), такие строки не разбираем
        registered_at = now.replace(microsecond=0)

    try:
        last_seen_at: Optional[datetime] = parse_last_seen_date(
            _text(profile.select_one(".media-user-status")), registered_at, now
        )
    except DateFormatError:
        last_seen_at = None

    seller_el = soup.select_one(".param-item.mb10")
    if seller_el is None:
        return User(
            id=user_id,
            username=username,
            avatar_photo_link=avatar_photo_link,
            is_online=is_online,
            badges=badges,
            registered_at=registered_at,
            last_seen_at=last_seen_at,
        )

    rating_text = _text(_first(seller_el, ".big", page))
    rating = 0.0 if rating_text == "?" else _number(float, rating_text, page, "rating")
    review_count = leading_int(_text(seller_el.select_one(".text-mini.text-light.mb5")))

    preview_seller = PreviewSeller(
        user_id=user_id,
        username=username,
        avatar_photo_link=avatar_photo_link,
        is_online=is_online,
        review_count=review_count,
    )

    return Seller(
        id=user_id,
        username=username,
        avatar_photo_link=avatar_photo_link,
        is_online=is_online,
        badges=badges,
        registered_at=registered_at,
        last_seen_at=last_seen_at,
        rating=rating,
        review_count=review_count,
        preview_offers=_parse_seller_offers(soup, preview_seller, page),
        last_reviews=_parse_reviews(soup, page, now),
    )


# ───────────────────── транзакции ─────────────────────


def _transaction_status(classes: List[str]) -> TransactionStatus:
    last = classes[-1] if classes else ""
    if last.endswith("complete"):
        return TransactionStatus.COMPLETED
    if last.endswith("cancel"):
        return TransactionStatus.CANCELED
    return TransactionStatus.WAITING


def parse_transactions_page(
    html: str, now: Optional[datetime] = None
) -> Tuple[List[Transaction], Optional[str]]:
    """Одна страница ленты /users/transactions: транзакции и курсор следующей."""
    page = "transactions"
    soup = _soup(html)

    transactions: List[Transaction] = []
    for item in soup.select(".tc-item"):
        date_text = _text(_first(item, ".tc-date-time", page))
        try:
            date = parse_registration_date(date_text, now)
        except DateFormatError as e:
            raise ExtractionError(page, str(e)) from e

        transactions.append(
            Transaction(
                id=_number(int, item.get("data-transaction", ""), page, "data-transaction"),
                title=_text(item.select_one(".tc-title")),
                price=_number(parse_signed_price, _text(_first(item, ".tc-price", page)), page, "tc-price"),
                status=_transaction_status(item.get("class", [])),
                payment_number=_text(item.select_one(".tc-payment-number")) or None,
                date=date,
            )
        )

    return transactions, parse_continue_token(soup)


# ───────────────────── заказ ─────────────────────


def parse_order(html: str, order_id: str) -> Order:
    page = "order"
    soup = _soup(html)
    _check_found(soup, OrderNotFoundError, order_id)

    blocks = _children(_first(soup, ".page-content", page))
    header = _nth(blocks, 0, page, "page-header")
    param_list = _nth(blocks, 1, page, "param-list")

    # первый ребёнок заголовка: номер заказа, дальше статусы
    statuses = [_text(el) for el in _children(header)[1:]]

    params: Dict[str, str] = {}
    price: Optional[float] = None
    for row in param_list.select(".row"):
        for col in _children(row):
            item_children = _children(_first(col, ".param-item", page))
            label = _text(_nth(item_children, 0, page, "param label"))
            value = _nth(item_children, 1, page, "param value")
            if label in ORDER_AMOUNT_LABELS:
                amount = _nth(_children(value), 0, page, "amount")
                price = _number(parse_price, _text(amount), page, label)
            else:
                params[label] = _text(value)

    param_blocks = _children(param_list)
    short_block = _nth(param_blocks, 1, page, "short description")
    detailed_block = _nth(param_blocks, 2, page, "detailed description")

    return Order(
        id=order_id,
        statuses=statuses,
        short_description=_text(_nth(_children(short_block), 1, page, "short description")),
        detailed_description=_text(_nth(_children(detailed_block), 1, page, "detailed description")),
        params=params,
        price=price,
        other=_parse_product_page_user(soup, page),
    )


# ───────────────────── промо-игры ─────────────────────


def parse_promo_games(body: str) -> List[PromoGame]:
    """Ответ /games/promoFilter: JSON, в поле html которого лежит разметка."""
    page = "promo_games"
    try:
        fragment = json.loads(body)["html"]
    except (ValueError, KeyError, TypeError) as e:
        raise ExtractionError(page, f"ожидали JSON с полем html: {e}") from e

    games: List[PromoGame] = []
    for block in _soup(fragment or "").select(".promo-games"):
        title_link = _first(block, ".game-title a", page)
        href = title_link.get("href", "")
        # chips пока не поддерживаются
        if "chips" in href:
            continue
        lot_id = int(_id_from(href, _LOT_HREF_RE, page))

        counters: List[PromoGameCounter] = []
        for li in block.select(".list-inline li"):
            link = li.find("a")
            if link is None or "chips" in link.get("href", ""):
                continue
            counter_lot_id = int(_id_from(link.get("href", ""), _LOT_HREF_RE, page))
            if counter_lot_id == lot_id:
                continue
            counters.append(PromoGameCounter(lot_id=counter_lot_id, title=_text(link)))

        games.append(PromoGame(lot_id=lot_id, title=_text(title_link), promo_game_counters=counters))
    return games


# ───────────────────── csrf ─────────────────────


def parse_csrf_token(html: str) -> str:
    token = parse_app_data(_soup(html)).get("csrf-token")
    if not token:
        raise ExtractionError("csrf_token", "в data-app-data нет csrf-token")
    return str(token)


_EXTRACTORS: Dict[PageKind, Callable[..., Any]] = {
    PageKind.LOT: parse_lot,
    PageKind.OFFER: parse_offer,
    PageKind.USER: parse_user,
    PageKind.SELLER_REVIEWS: parse_seller_reviews_page,
    PageKind.TRANSACTIONS: parse_transactions_page,
    PageKind.ORDER: parse_order,
    PageKind.PROMO_GAMES: parse_promo_games,
    PageKind.CSRF_TOKEN: parse_csrf_token,
}


def extract(kind: PageKind, body: str, **context: Any) -> Any:
    """Разобрать тело страницы нужного вида; context: id и прочее для парсера."""
    return _EXTRACTORS[kind](body, **context)
