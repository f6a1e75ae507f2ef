from __future__ import annotations

import os
from typing import List, Optional

from .api import AuthorizedFunPayClient, FunPayClient
from .exceptions import FunPayError
from .logger import log
from .models import (
    AdvancedSellerReview,
    Lot,
    Offer,
    Order,
    Profile,
    PromoGame,
    Review,
    Seller,
    Transaction,
    TransactionType,
)
from .settings import load_settings, save_settings

# ---------- цвета ANSI для CLI ----------

RESET   = "\033[0m"
BOLD    = "\033[1m"
DIM     = "\033[2m"

RED     = "\033[91m"
GREEN   = "\033[92m"
YELLOW  = "\033[93m"
BLUE    = "\033[94m"
MAGENTA = "\033[95m"
CYAN    = "\033[96m"

GOLDEN_KEY_CHARS = "abcdefghijklmnopqrstuvwxyz0123456789"


def _golden_key_looks_valid(gk: str) -> bool:
    return len(gk) >= 32 and all(c in GOLDEN_KEY_CHARS for c in gk)


def _ask_golden_key(prompt: str) -> str:
    while True:
        gk = input(prompt).strip()
        if not gk:
            print("golden_key не может быть пустым.\n")
            continue
        if not _golden_key_looks_valid(gk):
            print("Этот golden_key выглядит странно (слишком короткий или есть лишние символы).")
            confirm = input("Использовать всё равно? [y/N]: ").strip().lower()
            if confirm != "y":
                continue
        return gk


def _ask_int(prompt: str, default: Optional[int] = None) -> Optional[int]:
    while True:
        raw = input(prompt).strip()
        if not raw:
            return default
        if raw.lstrip("-").isdigit():
            return int(raw)
        print("Нужно число.")


# ───────────────────── Первичная настройка ─────────────────────


def initial_setup(cfg: dict) -> dict:
    """Первичный запуск: User-Agent и golden_key."""
    clear_screen()

    print("=== Первичная настройка FunPay API ===")
    print("Без golden_key доступны только лоты, офферы, профили и отзывы.\n")

    if not cfg.get("user_agent"):
        print(
            "Чтобы узнать свой User-Agent, просто вбей в браузере: my user agent\n"
            "И скопируй строку, которую тебе покажет сайт. Enter оставит стандартный."
        )
        cfg["user_agent"] = input("User-Agent: ").strip()

    print(
        "\nКак получить golden_key:\n"
        "  1) Открой funpay.com и войди в аккаунт.\n"
        "  2) Нажми F12, вкладка Network (Сеть).\n"
        "  3) Обнови страницу (F5) и выбери любой запрос к funpay.com.\n"
        "  4) В Cookies найди golden_key и скопируй значение.\n"
    )
    if input("Ввести golden_key сейчас? [Y/n]: ").strip().lower() != "n":
        cfg["golden_key"] = _ask_golden_key("golden_key: ")

    save_settings(cfg)
    return cfg


# ───────────────────── Настройки ─────────────────────


def settings_menu(cfg: dict) -> dict:
    while True:
        print("\n=== Настройки ===")
        print(f"1 - Логи: {'вкл' if cfg.get('log_enabled', True) else 'выкл'}")
        print(f"2 - golden_key: {'задан' if cfg.get('golden_key') else 'не задан'}")
        print(f"3 - User-Agent: {cfg.get('user_agent') or 'стандартный'}")
        print(f"4 - Таймаут запросов: {cfg.get('timeout', 20)} c")
        print("0 - Назад")
        cmd = input("> ").strip()

        if cmd == "1":
            cfg["log_enabled"] = not cfg.get("log_enabled", True)
        elif cmd == "2":
            cfg["golden_key"] = _ask_golden_key("Новый golden_key: ")
        elif cmd == "3":
            cfg["user_agent"] = input("Новый User-Agent (Enter: стандартный): ").strip()
        elif cmd == "4":
            timeout = _ask_int("Таймаут в секундах: ")
            if timeout and timeout > 0:
                cfg["timeout"] = timeout
        elif cmd == "0":
            break
        else:
            print("Не понял.")
            continue

        save_settings(cfg)
        print("Сохранено.")
    return cfg


# ───────────────────── Вывод ─────────────────────


def _stars(stars: int) -> str:
    return "★" * stars + "☆" * (5 - stars)


def show_lot(lot: Lot) -> None:
    print(f"\n{BOLD}{lot.title}{RESET} (lot {lot.id}, game {lot.game_id})")
    if lot.description:
        print(f"{DIM}{lot.description}{RESET}")
    if lot.lot_counters:
        print("\nРазделы игры:")
        for c in lot.lot_counters:
            print(f"  {c.lot_id:>6} | {c.param} ({c.counter})")
    print("\n  offer_id | Цена        | Авто | Продавец")
    print("-" * 80)
    for o in lot.preview_offers:
        auto = "да" if o.is_auto_delivery else "  "
        promo = f"{YELLOW}P{RESET}" if o.is_promo else " "
        print(
            f"{promo} {o.offer_id:>8} | {o.price:>11.2f} | {auto}   | "
            f"{o.seller.username} ({o.seller.review_count})"
        )
        if o.short_description:
            print(f"{DIM}           {o.short_description[:70]}{RESET}")
    print("-" * 80)


def show_offer(offer: Offer) -> None:
    print(f"\n{BOLD}Оффер {offer.id}{RESET}: {offer.short_description or '-'}")
    print(f"Цена: {offer.price:.2f} | Автовыдача: {'да' if offer.is_auto_delivery else 'нет'}")
    print(f"Продавец: {offer.seller.username} (id {offer.seller.user_id}, отзывов {offer.seller.review_count})")
    for k, v in offer.parameters.items():
        print(f"  {k}: {v}")
    if offer.detailed_description:
        print(f"\n{offer.detailed_description}")
    for link in offer.attachment_links:
        print(f"  {BLUE}{link}{RESET}")


def show_review(review: Review) -> None:
    head = f"{YELLOW}{_stars(review.stars)}{RESET} {review.game_title} | {review.price:.2f}"
    if isinstance(review, AdvancedSellerReview):
        head += f" | {review.sender_username} | #{review.order_id} | {review.created_at:%d.%m.%Y %H:%M}"
    print(head)
    print(f"  {review.text}")
    if review.seller_reply_text:
        print(f"  {DIM}Ответ: {review.seller_reply_text}{RESET}")


def show_profile(profile: Profile) -> None:
    status = f"{GREEN}онлайн{RESET}" if profile.is_online else f"{DIM}оффлайн{RESET}"
    print(f"\n{BOLD}{profile.username}{RESET} (id {profile.id}) {status}")
    if profile.badges:
        print(f"Значки: {', '.join(profile.badges)}")
    print(f"Регистрация: {profile.registered_at:%d.%m.%Y %H:%M}")
    if profile.last_seen_at:
        print(f"Был в сети: {profile.last_seen_at:%d.%m.%Y %H:%M}")
    if isinstance(profile, Seller):
        print(f"Рейтинг: {profile.rating} ({profile.review_count} отзывов)")
        print(f"Офферов на странице: {len(profile.preview_offers)}")
        for review in profile.last_reviews[:5]:
            show_review(review)


def show_transactions(transactions: List[Transaction]) -> None:
    if not transactions:
        print("Транзакций нет.")
        return
    for t in transactions:
        color = GREEN if t.price >= 0 else RED
        print(
            f"{t.id:>10} | {t.date:%d.%m.%Y %H:%M} | {color}{t.price:>10.2f}{RESET} | "
            f"{t.status.value:<9} | {t.title} {t.payment_number or ''}"
        )


def show_order(order: Order) -> None:
    print(f"\n{BOLD}Заказ #{order.id}{RESET} [{', '.join(order.statuses)}]")
    print(order.short_description)
    if order.detailed_description:
        print(f"{DIM}{order.detailed_description}{RESET}")
    for k, v in order.params.items():
        print(f"  {k}: {v}")
    if order.price is not None:
        print(f"Сумма: {order.price:.2f}")
    print(f"Собеседник: {order.other.username} (id {order.other.user_id})")


def show_promo_games(games: List[PromoGame]) -> None:
    if not games:
        print("Ничего не нашлось.")
        return
    for g in games:
        print(f"{BOLD}{g.title}{RESET} (lot {g.lot_id})")
        for c in g.promo_game_counters:
            print(f"  {c.lot_id:>6} | {c.title}")


# ───────────────────── Действия меню ─────────────────────


def _ask_transaction_type() -> Optional[TransactionType]:
    print("Тип: 1 - пополнения, 2 - выводы, 3 - заказы, 4 - прочее, Enter - все")
    choice = input("> ").strip()
    return {
        "1": TransactionType.PAYMENT,
        "2": TransactionType.WITHDRAW,
        "3": TransactionType.ORDER,
        "4": TransactionType.OTHER,
    }.get(choice)


def _require_auth(client: FunPayClient) -> Optional[AuthorizedFunPayClient]:
    if isinstance(client, AuthorizedFunPayClient):
        return client
    print("Нужен golden_key: задай его в настройках.")
    return None


def run_action(client: FunPayClient, cmd: str) -> None:
    if cmd == "1":
        lot_id = _ask_int("lot_id: ")
        if lot_id is not None:
            show_lot(client.get_lot(lot_id))
    elif cmd == "2":
        offer_id = _ask_int("offer_id: ")
        if offer_id is not None:
            show_offer(client.get_offer(offer_id))
    elif cmd == "3":
        user_id = _ask_int("user_id: ")
        if user_id is not None:
            show_profile(client.get_user(user_id))
    elif cmd == "4":
        user_id = _ask_int("user_id продавца: ")
        if user_id is None:
            return
        pages = _ask_int("Сколько страниц (Enter: 1): ", 1)
        stars = _ask_int("Фильтр по звёздам 1-5 (Enter: все): ")
        reviews = client.get_seller_reviews(user_id, pages or 1, stars)
        for review in reviews:
            show_review(review)
        print(f"Всего отзывов: {len(reviews)}")
    elif cmd == "5":
        query = input("Название игры: ").strip()
        if query:
            show_promo_games(client.get_promo_games(query))
    elif cmd == "6":
        auth = _require_auth(client)
        user_id = _ask_int("Свой user_id: ") if auth else None
        if auth and user_id is not None:
            tx_type = _ask_transaction_type()
            pages = _ask_int("Сколько страниц (Enter: 1): ", 1)
            show_transactions(auth.get_transactions(user_id, pages or 1, tx_type))
    elif cmd == "7":
        auth = _require_auth(client)
        order_id = input("Номер заказа: ").strip().lstrip("#") if auth else ""
        if auth and order_id:
            show_order(auth.get_order(order_id))
    elif cmd == "8":
        auth = _require_auth(client)
        game_id = _ask_int("game_id: ") if auth else None
        lot_id = _ask_int("lot_id: ") if game_id is not None else None
        if auth and game_id is not None and lot_id is not None:
            print(auth.raise_all_offers(game_id, lot_id) or "Офферы подняты.")


# ───────────────────── Оформление ─────────────────────


def clear_screen() -> None:
    os.system("cls" if os.name == "nt" else "clear")


def print_header(cfg: dict) -> None:
    logs = "ON" if cfg.get("log_enabled", True) else "OFF"
    mode = "golden_key" if cfg.get("golden_key") else "аноним"

    print(f"{CYAN}╔════════════════════════════════════════════════════════════════════╗{RESET}")
    print(f"{CYAN}║{RESET}  {BOLD}FunPay API{RESET}                                                        {CYAN}║{RESET}")
    print(f"{CYAN}╚════════════════════════════════════════════════════════════════════╝{RESET}")
    print(f"{DIM}[Mode: {mode}] [Logs: {logs}] [{cfg.get('base_url')}]{RESET}")
    print()


def print_main_menu() -> None:
    print(f"{MAGENTA}┌ Главное меню ──────────────────────────────────────────────────────┐{RESET}")
    print(f"{MAGENTA}│{RESET}  1 - Лот (категория) и его офферы                                  {MAGENTA}│{RESET}")
    print(f"{MAGENTA}│{RESET}  2 - Оффер                                                         {MAGENTA}│{RESET}")
    print(f"{MAGENTA}│{RESET}  3 - Профиль пользователя                                          {MAGENTA}│{RESET}")
    print(f"{MAGENTA}│{RESET}  4 - Отзывы продавца                                               {MAGENTA}│{RESET}")
    print(f"{MAGENTA}│{RESET}  5 - Поиск игры                                                    {MAGENTA}│{RESET}")
    print(f"{MAGENTA}│{RESET}  6 - Мои транзакции                {DIM}(golden_key){RESET}                    {MAGENTA}│{RESET}")
    print(f"{MAGENTA}│{RESET}  7 - Заказ                         {DIM}(golden_key){RESET}                    {MAGENTA}│{RESET}")
    print(f"{MAGENTA}│{RESET}  8 - Поднять офферы                {DIM}(golden_key){RESET}                    {MAGENTA}│{RESET}")
    print(f"{MAGENTA}│{RESET}  9 - Настройки                                                     {MAGENTA}│{RESET}")
    print(f"{MAGENTA}│{RESET}  0 - Выход                                                         {MAGENTA}│{RESET}")
    print(f"{MAGENTA}└────────────────────────────────────────────────────────────────────┘{RESET}")


def build_client(cfg: dict) -> FunPayClient:
    if cfg.get("golden_key"):
        return AuthorizedFunPayClient.from_settings(cfg)
    return FunPayClient.from_settings(cfg)


# ───────────────────── main ─────────────────────


def main() -> None:
    cfg = load_settings()

    if not cfg.get("golden_key") and not cfg.get("user_agent"):
        cfg = initial_setup(cfg)

    client = build_client(cfg)
    log(f"Запуск FunPay API CLI, режим: {type(client).__name__}")

    while True:
        clear_screen()
        print_header(cfg)
        print_main_menu()
        cmd = input("> ").strip()

        if cmd == "0":
            log("Выход из программы")
            print("Пока!")
            break

        if cmd == "9":
            log("Открыты настройки")
            cfg = settings_menu(cfg)
            client = build_client(cfg)
            continue

        if cmd not in {"1", "2", "3", "4", "5", "6", "7", "8"}:
            print("Не понял команду.")
            input("\nНажми Enter, чтобы вернуться в меню...")
            continue

        log(f"Меню: действие {cmd}")
        try:
            run_action(client, cmd)
        except FunPayError as e:
            print(f"{RED}Ошибка: {e}{RESET}")
            log(f"Ошибка в действии {cmd}: {e!r}")
        input("\nНажми Enter, чтобы вернуться в меню...")


if __name__ == "__main__":
    main()
