from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import func

import app.models as models
from app import db
from app.errors import NotFoundError
from constants import CASE_CSV_HEADER, CSV_DELIMITER, CSV_LINE_FEED
from helpers.csv_utils import csv_line
from helpers.tagging import tags_to_string

CaseRef = Union[int, str, models.Case]


def find_case(case_ref: CaseRef) -> models.Case:
    """
    Возвращает Case по идентификатору.

    Принимается id (int или строка из цифр) или уже загруженный объект Case.
    Если идентификатор не разрешается в существующий кейс -> NotFoundError.
    """
    if isinstance(case_ref, models.Case):
        return case_ref

    try:
        case_id = int(case_ref)
    except (TypeError, ValueError):
        raise NotFoundError(f"Case с id={case_ref!r} не найден")

    case = db.session.get(models.Case, case_id)
    if case is None:
        raise NotFoundError(f"Case с id={case_id} не найден")
    return case


def total_average_duration(case_ids: Iterable[int]) -> int:
    """
    Суммарная средняя длительность (в секундах) кейсов из списка.

    Кейсы без данных о длительности не учитываются.
    Пустой список -> 0 ("нет данных").
    """
    ids = list(case_ids or [])
    if not ids:
        return 0

    total = (
        db.session.query(func.coalesce(func.sum(models.Case.average_duration), 0))
        .filter(models.Case.id.in_(ids))
        .scalar()
    )
    return int(total or 0)


def _indent_cells(opts: Optional[Dict[str, Any]]) -> List[str]:
    indent = int((opts or {}).get("indent") or 0)
    return [""] * max(indent, 0)


def case_csv_header(
    delimiter: str = CSV_DELIMITER,
    line_feed: str = CSV_LINE_FEED,
    opts: Optional[Dict[str, Any]] = None,
) -> str:
    """Заголовок CSV для кейсов, со сдвигом на opts['indent'] пустых колонок."""
    return csv_line(_indent_cells(opts) + CASE_CSV_HEADER, delimiter, line_feed)


def case_to_csv(
    case: models.Case,
    delimiter: str = CSV_DELIMITER,
    line_feed: str = CSV_LINE_FEED,
    opts: Optional[Dict[str, Any]] = None,
) -> str:
    """Строка CSV для кейса. Вложенных уровней у кейса нет, recurse игнорируется."""
    row = [
        case.id,
        case.title,
        str(case.date) if case.date else "",
        case.priority,
        case.average_duration,
        case.objective,
        tags_to_string(case),
    ]
    return csv_line(_indent_cells(opts) + row, delimiter, line_feed)
