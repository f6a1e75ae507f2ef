from __future__ import annotations

from typing import Callable, Iterator, List, Optional, Tuple, TypeVar

T = TypeVar("T")

FetchPage = Callable[[str], str]
ParsePage = Callable[[str], Tuple[List[T], Optional[str]]]


def paginate(fetch_page: FetchPage, parse_page: ParsePage, max_pages: int) -> Iterator[T]:
    """
    Обходит ленту FunPay (отзывы, транзакции) по курсору continue.

    fetch_page(continue_arg) делает один запрос и возвращает тело страницы,
    parse_page(body) отдаёт записи страницы и курсор следующей.
    Первый запрос уходит с пустым курсором. Остановка: курсора нет или он
    пустой, либо сделано max_pages запросов (даже если курсор ещё есть).
    Генератор ленивый и одноразовый.
    """
    continue_arg = ""
    for _ in range(max_pages):
        records, next_arg = parse_page(fetch_page(continue_arg))
        yield from records
        if not next_arg:
            return
        continue_arg = next_arg
