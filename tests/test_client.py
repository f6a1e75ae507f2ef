"""Тесты клиентов FunPay с подменённым транспортом."""
import pytest
import requests

from funpay_api.api import AuthorizedFunPayClient, FunPayClient
from funpay_api.commands import (
    CreateOffer,
    CreateOfferImage,
    DeleteOffer,
    EditOffer,
    GetLot,
    GetOrder,
    GetSellerReviews,
    GetTransactions,
    GetUser,
    RaiseAllOffers,
    UpdateAvatar,
)
from funpay_api.exceptions import (
    ApiError,
    InvalidGoldenKeyError,
    OfferAlreadyRaisedError,
    OfferSaveError,
    SessionRefreshError,
    UserNotFoundError,
)
from funpay_api.models import CsrfSession, TransactionStatus, TransactionType, UserKind
from funpay_api.settings import save_settings

from conftest import GOLDEN_KEY, csrf_page, sent_form, sent_form_names
from pages import (
    BASIC_REVIEW,
    LOT_HTML,
    OFFER_HTML,
    ORDER_HTML,
    PROMO_FRAGMENT,
    SELLER_HTML,
    TRANSACTIONS_HTML,
)

STALE = {"msg": "Обновите страницу и повторите попытку."}


@pytest.fixture
def client(http_session) -> FunPayClient:
    return FunPayClient(user_agent="test-agent", session=http_session)


@pytest.fixture
def auth_client(http_session) -> AuthorizedFunPayClient:
    return AuthorizedFunPayClient(GOLDEN_KEY, user_agent="test-agent", session=http_session)


@pytest.fixture
def unknown_page(make_response):
    def _make(token: str = "csrf-1", sessid: str = "sess-1"):
        return make_response(csrf_page(token), 404, {"Set-Cookie": f"PHPSESSID={sessid}; path=/"})

    return _make


def _reviews_page(token: str = "") -> str:
    return (
        f"<html><body>{BASIC_REVIEW}"
        '<form class="dyn-table-form"><input name="user_id" value="777">'
        f'<input name="continue" value="{token}"></form></body></html>'
    )


def _calls(http_session):
    return http_session.request.call_args_list


class TestAnonymousClient:
    def test_user_agent_on_session(self, client, http_session) -> None:
        assert http_session.headers["user-agent"] == "test-agent"

    def test_get_lot(self, client, http_session, make_response) -> None:
        http_session.request.return_value = make_response(LOT_HTML)

        lot = client.get_lot(99)

        assert lot.title == "Robux"
        call = http_session.request.call_args
        assert call.args == ("GET", "https://funpay.com/lots/99/")
        assert "cookie" not in call.kwargs["headers"]
        assert call.kwargs["timeout"] == 20

    def test_get_offer_url(self, client, http_session, make_response) -> None:
        http_session.request.return_value = make_response(OFFER_HTML)

        assert client.get_offer(555).price == 155.37
        assert http_session.request.call_args.args == ("GET", "https://funpay.com/lots/offer?id=555")

    def test_base_url_override(self, http_session, make_response) -> None:
        http_session.request.return_value = make_response(LOT_HTML)
        FunPayClient(base_url="http://localhost:8080/", session=http_session).get_lot(99)
        assert http_session.request.call_args.args[1] == "http://localhost:8080/lots/99/"

    def test_transport_error_becomes_api_error(self, client, http_session) -> None:
        http_session.request.side_effect = requests.ConnectionError("boom")
        with pytest.raises(ApiError):
            client.get_lot(99)

    def test_server_error(self, client, http_session, make_response) -> None:
        http_session.request.return_value = make_response("oops", 502)
        with pytest.raises(ApiError) as exc:
            client.get_lot(99)
        assert exc.value.status_code == 502

    def test_promo_games(self, client, http_session, make_response) -> None:
        http_session.request.return_value = make_response({"html": PROMO_FRAGMENT})

        games = client.get_promo_games("rob")

        assert [g.lot_id for g in games] == [99]
        call = http_session.request.call_args
        assert call.args == ("POST", "https://funpay.com/games/promoFilter")
        assert call.kwargs["headers"]["x-requested-with"] == "XMLHttpRequest"
        assert sent_form(call) == {"query": "rob"}

    def test_seller_reviews_follow_cursor(self, client, http_session, make_response) -> None:
        http_session.request.side_effect = [
            make_response(_reviews_page("c2")),
            make_response(_reviews_page("")),
        ]

        reviews = client.get_seller_reviews(777, pages=5, stars_filter=4)

        assert len(reviews) == 2
        first, second = _calls(http_session)
        assert first.args == ("POST", "https://funpay.com/users/reviews")
        assert sent_form(first) == {"user_id": "777", "filter": "4", "continue": ""}
        assert sent_form(second)["continue"] == "c2"

    def test_seller_reviews_page_cap(self, client, http_session, make_response) -> None:
        http_session.request.side_effect = [make_response(_reviews_page("c2"))]

        assert len(client.get_seller_reviews(777)) == 1
        assert http_session.request.call_count == 1
        assert sent_form(http_session.request.call_args)["filter"] == ""

    def test_seller_reviews_404(self, client, http_session, make_response) -> None:
        http_session.request.return_value = make_response("", 404)
        with pytest.raises(UserNotFoundError):
            client.get_seller_reviews(1)

    def test_execute(self, client, http_session, make_response) -> None:
        http_session.request.return_value = make_response(LOT_HTML)
        assert client.execute(GetLot(99)).game_id == 41

    def test_execute_rejects_authorized_command(self, client) -> None:
        with pytest.raises(TypeError):
            client.execute(GetOrder("ABC"))

    def test_from_settings(self, funpay_home) -> None:
        save_settings({"user_agent": "ua-from-config", "base_url": "http://local", "timeout": 5})
        c = FunPayClient.from_settings()
        assert c.user_agent == "ua-from-config"
        assert c.base_url == "http://local"
        assert c.timeout == 5


class TestAuthorizedReads:
    def test_golden_key_cookie(self, auth_client, http_session, make_response) -> None:
        http_session.request.return_value = make_response(_reviews_page())

        auth_client.execute(GetSellerReviews(777))

        assert http_session.request.call_args.kwargs["headers"]["cookie"] == f"golden_key={GOLDEN_KEY}"

    def test_get_user(self, auth_client, http_session, make_response) -> None:
        http_session.request.return_value = make_response(SELLER_HTML)

        seller = auth_client.execute(GetUser(777))

        assert seller.kind is UserKind.SELLER
        call = http_session.request.call_args
        assert call.args == ("GET", "https://funpay.com/users/777/")
        assert call.kwargs["headers"]["cookie"] == f"golden_key={GOLDEN_KEY}"

    def test_transactions(self, auth_client, http_session, make_response) -> None:
        http_session.request.side_effect = [
            make_response(TRANSACTIONS_HTML),
            make_response(TRANSACTIONS_HTML.replace('value="abc123"', 'value=""')),
        ]

        transactions = auth_client.execute(GetTransactions(777, pages=3, type=TransactionType.WITHDRAW))

        assert len(transactions) == 6
        assert transactions[0].price == -68.52
        assert transactions[1].status is TransactionStatus.WAITING
        first, second = _calls(http_session)
        assert first.args == ("POST", "https://funpay.com/users/transactions")
        assert sent_form(first) == {"user_id": "777", "filter": "withdraw", "continue": ""}
        assert sent_form(second)["continue"] == "abc123"

    def test_transactions_400_is_unknown_user(self, auth_client, http_session, make_response) -> None:
        http_session.request.return_value = make_response("", 400)
        with pytest.raises(UserNotFoundError):
            auth_client.get_transactions(1)

    def test_transactions_403_is_bad_key(self, auth_client, http_session, make_response) -> None:
        http_session.request.return_value = make_response("", 403)
        with pytest.raises(InvalidGoldenKeyError):
            auth_client.get_transactions(1)

    def test_order(self, auth_client, http_session, make_response) -> None:
        http_session.request.return_value = make_response(ORDER_HTML)

        order = auth_client.execute(GetOrder("ABCD1234"))

        assert order.price == 155.37
        call = http_session.request.call_args
        assert call.args == ("GET", "https://funpay.com/orders/ABCD1234/")
        assert call.kwargs["headers"]["cookie"] == f"golden_key={GOLDEN_KEY}"


class TestSaveOffer:
    def test_create_offer_form(self, auth_client, http_session, make_response, unknown_page) -> None:
        http_session.request.side_effect = [unknown_page(), make_response({"done": True})]

        auth_client.execute(
            CreateOffer(
                lot_id=99,
                price=120.5,
                amount=10,
                short_description_ru="Робуксы",
                description_ru="Быстро",
                fields={"fields[method]": "gamepass"},
                is_auto_delivery=True,
                secrets=["code-1", "code-2"],
                image_ids=[11, 12],
            )
        )

        refresh, submit = _calls(http_session)
        assert refresh.args == ("GET", "https://funpay.com/unknown/")
        assert submit.args == ("POST", "https://funpay.com/lots/offerSave")
        assert submit.kwargs["headers"]["cookie"] == f"golden_key={GOLDEN_KEY}; PHPSESSID=sess-1"
        assert submit.kwargs["headers"]["x-requested-with"] == "XMLHttpRequest"

        assert sent_form_names(submit) == [
            "csrf_token",
            "offer_id",
            "node_id",
            "deleted",
            "auto_delivery",
            "active",
            "secrets",
            "fields[images]",
            "price",
            "amount",
            "form_created_at",
            "fields[summary][ru]",
            "fields[summary][en]",
            "fields[desc][ru]",
            "fields[desc][en]",
            "fields[payment_msg][ru]",
            "fields[payment_msg][en]",
            "fields[method]",
        ]
        form = sent_form(submit)
        assert form["csrf_token"] == "csrf-1"
        assert form["offer_id"] == ""
        assert form["node_id"] == "99"
        assert form["deleted"] == ""
        assert form["auto_delivery"] == "on"
        assert form["active"] == "on"
        assert form["secrets"] == "code-1\ncode-2"
        assert form["fields[images]"] == "11,12"
        assert form["price"] == "120.5"
        assert form["amount"] == "10"
        assert form["form_created_at"].isdigit()
        assert form["fields[summary][ru]"] == "Робуксы"
        assert form["fields[summary][en]"] == ""
        assert form["fields[desc][ru]"] == "Быстро"
        assert form["fields[method]"] == "gamepass"

    def test_credentials_are_reused(self, auth_client, http_session, make_response, unknown_page) -> None:
        http_session.request.side_effect = [
            unknown_page(),
            make_response({"done": True}),
            make_response({"done": True}),
        ]

        auth_client.edit_offer(EditOffer(lot_id=99, offer_id=555, price=1.0))
        auth_client.edit_offer(EditOffer(lot_id=99, offer_id=555, price=2.0))

        assert http_session.request.call_count == 3
        assert auth_client.credentials.refresh_count == 1

    def test_stale_token_refreshes_once(self, auth_client, http_session, make_response, unknown_page) -> None:
        http_session.request.side_effect = [
            unknown_page("csrf-1", "sess-1"),
            make_response(STALE, 400),
            unknown_page("csrf-2", "sess-2"),
            make_response({"done": True}),
        ]

        auth_client.execute(EditOffer(lot_id=99, offer_id=555, price=10.0))

        calls = _calls(http_session)
        assert len(calls) == 4
        assert sent_form(calls[1])["csrf_token"] == "csrf-1"
        assert sent_form(calls[3])["csrf_token"] == "csrf-2"
        assert sent_form(calls[3])["offer_id"] == "555"
        assert calls[3].kwargs["headers"]["cookie"].endswith("PHPSESSID=sess-2")
        assert auth_client.credentials.current() == CsrfSession("csrf-2", "sess-2")

    def test_stale_twice_is_fatal(self, auth_client, http_session, make_response, unknown_page) -> None:
        http_session.request.side_effect = [
            unknown_page(),
            make_response(STALE, 400),
            unknown_page("csrf-2", "sess-2"),
            make_response(STALE, 400),
        ]

        with pytest.raises(SessionRefreshError):
            auth_client.execute(DeleteOffer(lot_id=99, offer_id=555))
        assert http_session.request.call_count == 4

    def test_forbidden_does_not_refresh(self, auth_client, http_session, make_response, unknown_page) -> None:
        http_session.request.side_effect = [unknown_page(), make_response("", 403)]

        with pytest.raises(InvalidGoldenKeyError):
            auth_client.execute(EditOffer(lot_id=99, offer_id=555))
        assert http_session.request.call_count == 2
        assert auth_client.credentials.refresh_count == 1

    def test_rejected_form(self, auth_client, http_session, make_response, unknown_page) -> None:
        http_session.request.side_effect = [
            unknown_page(),
            make_response({"done": False, "error": "Ошибка", "errors": {"price": "Слишком мало"}}),
        ]

        with pytest.raises(OfferSaveError) as exc:
            auth_client.execute(CreateOffer(lot_id=99, price=0.01))
        assert exc.value.errors == {"price": "Слишком мало"}

    def test_empty_success_body(self, auth_client, http_session, make_response, unknown_page) -> None:
        http_session.request.side_effect = [unknown_page(), make_response("")]
        auth_client.execute(EditOffer(lot_id=99, offer_id=555))

    def test_delete_offer_form(self, auth_client, http_session, make_response, unknown_page) -> None:
        http_session.request.side_effect = [unknown_page(), make_response({"done": True})]

        auth_client.delete_offer(DeleteOffer(lot_id=99, offer_id=555))

        form = sent_form(http_session.request.call_args)
        assert form["deleted"] == "1"
        assert form["offer_id"] == "555"
        assert form["node_id"] == "99"
        assert form["active"] == ""

    def test_update_csrf_token_and_session(self, auth_client, http_session, unknown_page) -> None:
        http_session.request.return_value = unknown_page("fresh", "fresh-sess")

        assert auth_client.update_csrf_token_and_session() == CsrfSession("fresh", "fresh-sess")
        assert http_session.request.call_args.kwargs["headers"]["cookie"] == f"golden_key={GOLDEN_KEY}"


class TestOtherCommands:
    def test_raise_all_offers(self, auth_client, http_session, make_response) -> None:
        http_session.request.return_value = make_response({"msg": "Предложения подняты.", "error": 0})

        assert auth_client.execute(RaiseAllOffers(game_id=41, lot_id=99)) == "Предложения подняты."
        call = http_session.request.call_args
        assert call.args == ("POST", "https://funpay.com/lots/raise")
        assert sent_form(call) == {"game_id": "41", "node_id": "99"}

    def test_raise_already_raised(self, auth_client, http_session, make_response) -> None:
        http_session.request.return_value = make_response({"msg": "Подождите 4 часа.", "error": 1})
        with pytest.raises(OfferAlreadyRaisedError):
            auth_client.raise_all_offers(41, 99)

    def test_raise_forbidden(self, auth_client, http_session, make_response) -> None:
        http_session.request.return_value = make_response("", 403)
        with pytest.raises(InvalidGoldenKeyError):
            auth_client.raise_all_offers(41, 99)

    def test_create_offer_image(self, auth_client, http_session, make_response) -> None:
        http_session.request.return_value = make_response({"fileId": 4242})

        assert auth_client.execute(CreateOfferImage(b"\xff\xd8jpeg")) == 4242
        call = http_session.request.call_args
        assert call.args == ("POST", "https://funpay.com/file/addOfferImage")
        assert call.kwargs["files"] == {"file": ("image.jpg", b"\xff\xd8jpeg")}

    def test_create_offer_image_without_id(self, auth_client, http_session, make_response) -> None:
        http_session.request.return_value = make_response({"error": "too big"})
        with pytest.raises(ApiError):
            auth_client.create_offer_image(b"x")

    def test_update_avatar(self, auth_client, http_session, make_response) -> None:
        http_session.request.return_value = make_response({})

        auth_client.execute(UpdateAvatar(b"png"))

        assert http_session.request.call_args.args == ("POST", "https://funpay.com/file/avatar")

    def test_update_avatar_forbidden(self, auth_client, http_session, make_response) -> None:
        http_session.request.return_value = make_response("", 403)
        with pytest.raises(InvalidGoldenKeyError):
            auth_client.update_avatar(b"png")


def test_authorized_from_settings_requires_key(funpay_home) -> None:
    with pytest.raises(InvalidGoldenKeyError):
        AuthorizedFunPayClient.from_settings()

    save_settings({"golden_key": GOLDEN_KEY})
    assert AuthorizedFunPayClient.from_settings().golden_key == GOLDEN_KEY
