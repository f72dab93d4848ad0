from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import sqlalchemy
from sqlalchemy import asc, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

import app.models as models
from app import db
from app.errors import ConcurrencyConflict, NotFoundError, ValidationError
from constants import (
    CSV_DELIMITER,
    CSV_LINE_FEED,
    CSV_TEST_AREAS_JOINER,
    TEST_SET_CSV_HEADER,
    TREE_NODE_CLS_PREFIX,
)
from helpers.case_helpers import (
    case_csv_header,
    case_to_csv,
    find_case,
    total_average_duration,
)
from helpers.csv_utils import csv_line, nested_csv_options, should_recurse
from helpers.priority import priority_name, priority_value
from helpers.tagging import TagList, is_blank_tag_list, tag_with, tags_to_string
from logger import init_logger

logger = init_logger()

# Поля, которые можно передать в attributes при создании/обновлении
ALLOWED_ATTRIBUTES = {
    "name",
    "project_id",
    "date",
    "external_id",
    "priority",
    "deleted",
    "archived",
    "created_by",
    "updated_by",
    "test_area_ids",
    "version",
}
REQUIRED_ATTRIBUTES = ("name", "project_id", "date")

SCOPE_ACTIVE = "active"
SCOPE_DELETED = "deleted"
SCOPE_ALL = "all"


# -------------------------------
# Scopes
# -------------------------------
def _base_query(query=None):
    return models.TestSet.query if query is None else query


def active_scope(query=None):
    """Активные сеты: не удалены и не в архиве."""
    return _base_query(query).filter(
        models.TestSet.deleted.is_(False), models.TestSet.archived.is_(False)
    )


def deleted_scope(query=None):
    """Удаленные сеты (флаг archived не учитывается)."""
    return _base_query(query).filter(models.TestSet.deleted.is_(True))


def ordered_scope(query=None):
    """Порядок по умолчанию: priority DESC, name ASC."""
    return _base_query(query).order_by(
        desc(models.TestSet.priority), asc(models.TestSet.name)
    )


def list_test_sets(
    project_id: Optional[int] = None, scope: str = SCOPE_ACTIVE
) -> List[models.TestSet]:
    """
    Список тест сетов проекта в порядке по умолчанию.

    scope:
      - 'active'  — не удалённые и не архивные (по умолчанию)
      - 'deleted' — только удалённые
      - 'all'     — без фильтра по флагам
    """
    query = models.TestSet.query
    if project_id is not None:
        query = query.filter(models.TestSet.project_id == project_id)

    if scope == SCOPE_ACTIVE:
        query = active_scope(query)
    elif scope == SCOPE_DELETED:
        query = deleted_scope(query)
    elif scope != SCOPE_ALL:
        raise ValidationError(f"Неизвестный scope: {scope!r}")

    return ordered_scope(query).all()


def get_test_set_by_id(
    test_set_id: int, *, include_deleted: bool = False
) -> models.TestSet:
    """
    Получает TestSet по id.

    - Не найден -> NotFoundError.
    - Найден, но помечен deleted и include_deleted == False -> тоже NotFoundError.
    """
    if not isinstance(test_set_id, int) or test_set_id <= 0:
        raise ValidationError("test_set_id должен быть положительным целым числом")

    test_set = db.session.get(models.TestSet, test_set_id)
    if not test_set:
        raise NotFoundError(f"TestSet с id={test_set_id} не найден")

    if test_set.deleted and not include_deleted:
        raise NotFoundError(f"TestSet с id={test_set_id} удален")

    return test_set


# -------------------------------
# Вычисляемые значения и представления
# -------------------------------
def average_duration(test_set: models.TestSet) -> int:
    """Суммарная средняя длительность кейсов сета (0, если кейсов нет)."""
    return total_average_duration(test_set.case_ids)


def next_free_case_position(test_set: models.TestSet) -> int:
    """Следующая свободная позиция: max(позиций) + 1, или 1 для пустого сета.

    Ссылки без позиции (NULL) не учитываются.
    """
    positions = [
        link.position for link in test_set.case_links if link.position is not None
    ]
    return max(positions, default=0) + 1


def _isoformat(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _column_values(test_set: models.TestSet) -> Dict[str, Any]:
    """Значения колонок строки как они хранятся в БД (без вычисляемых полей)."""
    mapper = sqlalchemy.inspect(test_set).mapper
    return {attr.key: getattr(test_set, attr.key) for attr in mapper.column_attrs}


def to_brief_data(test_set: models.TestSet) -> Dict[str, Any]:
    """Краткое представление для списков."""
    return {
        "name": test_set.name,
        "date": _isoformat(test_set.date),
        "id": test_set.id,
        "version": test_set.version,
        "tag_list": tags_to_string(test_set),
        "deleted": bool(test_set.deleted),
        "archived": bool(test_set.archived),
        "average_duration": average_duration(test_set),
        "priority": priority_name(test_set.priority),
        "test_area_ids": test_set.test_area_ids,
    }


def to_full_data(test_set: models.TestSet) -> Dict[str, Any]:
    """Полное представление.

    Все поля, кроме priority и average_duration, берутся из колонок как есть;
    даты и метки времени отдаются строками ISO.
    """
    row = _column_values(test_set)
    return {
        "name": row["name"],
        "date": _isoformat(row["date"]),
        "updated_at": _isoformat(row["updated_at"]),
        "project_id": row["project_id"],
        "created_by": row["created_by"],
        "updated_by": row["updated_by"],
        "id": row["id"],
        "version": row["version"],
        "deleted": bool(row["deleted"]),
        "archived": bool(row["archived"]),
        "created_at": _isoformat(row["created_at"]),
        "average_duration": average_duration(test_set),
        "priority": priority_name(row["priority"]),
        "test_area_ids": test_set.test_area_ids,
    }


def to_tree_node(test_set: models.TestSet) -> Dict[str, Any]:
    """Узел дерева для list panel на фронте. У тест сета детей в дереве нет."""
    return {
        "text": test_set.name,
        "leaf": True,
        "dbid": test_set.id,
        "deleted": bool(test_set.deleted),
        "archived": bool(test_set.archived),
        "cls": f"{TREE_NODE_CLS_PREFIX}{test_set.priority}",
        "tags": tags_to_string(test_set),
    }


# -------------------------------
# CSV
# -------------------------------
def csv_header(
    delimiter: str = CSV_DELIMITER,
    line_feed: str = CSV_LINE_FEED,
    opts: Optional[Dict[str, Any]] = None,
) -> str:
    """Строка заголовка CSV для тест сетов."""
    return csv_line(TEST_SET_CSV_HEADER, delimiter, line_feed)


def to_csv(
    test_set: models.TestSet,
    delimiter: str = CSV_DELIMITER,
    line_feed: str = CSV_LINE_FEED,
    opts: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Строка CSV для тест сета.

    priority выводится сырым целым значением (а не именем, как в to_*_data).
    Если opts['recurse'] > 0 — после строки сета добавляются заголовок кейсов
    и строки всех кейсов сета с opts: recurse - 1, indent + 1.
    """
    ret = csv_line(
        [
            test_set.id,
            test_set.name,
            str(test_set.date),
            test_set.priority,
            average_duration(test_set),
            tags_to_string(test_set),
            CSV_TEST_AREAS_JOINER.join(area.name for area in test_set.test_areas),
        ],
        delimiter,
        line_feed,
    )

    if should_recurse(opts):
        new_opts = nested_csv_options(opts)
        ret += case_csv_header(delimiter, line_feed, new_opts)
        ret += "".join(
            case_to_csv(case, delimiter, line_feed, new_opts)
            for case in test_set.cases
        )
    return ret


def export_test_sets_csv(
    test_sets: Iterable[models.TestSet],
    delimiter: str = CSV_DELIMITER,
    line_feed: str = CSV_LINE_FEED,
    opts: Optional[Dict[str, Any]] = None,
) -> str:
    """Заголовок + строки всех переданных сетов (с вложенными кейсами по opts)."""
    return csv_header(delimiter, line_feed, opts) + "".join(
        to_csv(test_set, delimiter, line_feed, opts) for test_set in test_sets
    )


# -------------------------------
# Валидация входных данных
# -------------------------------
def _ensure_list(value: Optional[Iterable]) -> List:
    """Гарантирует, что возвращается список (не None)."""
    return list(value) if value is not None else []


def _parse_bool(raw_value: Any, field: str) -> bool:
    if isinstance(raw_value, bool):
        return raw_value
    if isinstance(raw_value, int) and raw_value in (0, 1):
        return bool(raw_value)
    normalized_value = str(raw_value).strip().lower()
    if normalized_value in ("1", "true", "yes", "y"):
        return True
    if normalized_value in ("0", "false", "no", "n"):
        return False
    raise ValidationError(f"Поле '{field}' должно быть булевым значением")


def _parse_int(raw_value: Any, field: str, *, nullable: bool = False) -> Optional[int]:
    if raw_value is None and nullable:
        return None
    if isinstance(raw_value, bool):
        raise ValidationError(f"Поле '{field}' должно быть целым числом")
    try:
        return int(raw_value)
    except (TypeError, ValueError):
        raise ValidationError(f"Поле '{field}' должно быть целым числом")


def _parse_date(raw_value: Any) -> date:
    if isinstance(raw_value, datetime):
        return raw_value.date()
    if isinstance(raw_value, date):
        return raw_value
    if isinstance(raw_value, str) and raw_value.strip():
        try:
            return date.fromisoformat(raw_value.strip())
        except ValueError:
            pass
    raise ValidationError("Поле 'date' должно быть датой в формате YYYY-MM-DD")


def _normalize_attributes(attributes: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
    """Проверяет и нормализует attributes тест сета.

    partial=False (создание) — name, project_id и date обязательны.
    partial=True (обновление) — проверяются только переданные поля.
    """
    if not isinstance(attributes, dict):
        raise ValidationError("attributes должны быть словарем")

    unknown = set(attributes) - ALLOWED_ATTRIBUTES
    if unknown:
        raise ValidationError(f"Неизвестные поля: {', '.join(sorted(unknown))}")

    if not partial:
        missing = [
            field for field in REQUIRED_ATTRIBUTES if attributes.get(field) in (None, "")
        ]
        if missing:
            raise ValidationError(f"Обязательные поля не заполнены: {', '.join(missing)}")

    normalized: Dict[str, Any] = {}
    for field, raw in attributes.items():
        if field == "name":
            if not raw or not isinstance(raw, str) or not raw.strip():
                raise ValidationError("Поле 'name' обязательно и не должно быть пустой строкой")
            normalized["name"] = raw.strip()
        elif field == "project_id":
            normalized["project_id"] = _parse_int(raw, field)
        elif field == "date":
            normalized["date"] = _parse_date(raw)
        elif field == "external_id":
            external_id = str(raw).strip() if raw is not None else ""
            normalized["external_id"] = external_id or None
        elif field == "priority":
            normalized["priority"] = priority_value(raw)
        elif field in ("deleted", "archived"):
            normalized[field] = _parse_bool(raw, field)
        elif field in ("created_by", "updated_by"):
            normalized[field] = _parse_int(raw, field, nullable=True)
        elif field == "version":
            normalized["version"] = _parse_int(raw, field)
        elif field == "test_area_ids":
            if not isinstance(raw, (list, tuple)):
                raise ValidationError("Поле 'test_area_ids' должно быть списком")
            normalized["test_area_ids"] = [
                _parse_int(area_id, field) for area_id in raw
            ]
    return normalized


def _ensure_external_id_unique(
    project_id: int, external_id: Optional[str], exclude_id: Optional[int] = None
) -> None:
    """external_id уникален внутри проекта; NULL допускается сколько угодно раз."""
    if external_id is None:
        return
    query = models.TestSet.query.filter(
        models.TestSet.project_id == project_id,
        models.TestSet.external_id == external_id,
    )
    if exclude_id is not None:
        query = query.filter(models.TestSet.id != exclude_id)
    # без autoflush: иначе изменения самой записи уйдут в БД раньше проверки
    with db.session.no_autoflush:
        taken = db.session.query(query.exists()).scalar()
    if taken:
        raise ValidationError(
            f"external_id '{external_id}' уже используется в проекте {project_id}"
        )


def _ensure_required_present(test_set: models.TestSet) -> None:
    for field in REQUIRED_ATTRIBUTES:
        if getattr(test_set, field) in (None, ""):
            raise ValidationError(f"Поле '{field}' обязательно")


def _resolve_test_areas(test_area_ids: List[int]) -> List[models.TestArea]:
    areas = []
    for area_id in dict.fromkeys(test_area_ids):
        area = db.session.get(models.TestArea, area_id)
        if area is None:
            raise NotFoundError(f"TestArea с id={area_id} не найден")
        areas.append(area)
    return areas


# -------------------------------
# Транзакции
# -------------------------------
@contextmanager
def _transaction_context():
    """
    Контекст-менеджер транзакции для многошаговых операций.
    - При нормальном выходе -> commit.
    - При любой ошибке -> rollback всей сессии и проброс ошибки наверх.
    IntegrityError превращается в ValidationError, StaleDataError — в ConcurrencyConflict.
    Повторов нет.
    """
    try:
        yield
        db.session.commit()
    except IntegrityError as ie:
        db.session.rollback()
        logger.warning("transaction rolled back: integrity error", error=str(ie.orig))
        raise ValidationError(
            "Ошибка целостности бд (вероятно, нарушена уникальность external_id)"
        ) from ie
    except StaleDataError as se:
        db.session.rollback()
        logger.warning("transaction rolled back: stale version", error=str(se))
        raise ConcurrencyConflict(
            "Тест сет был изменен другим пользователем, обновите данные"
        ) from se
    except Exception:
        db.session.rollback()
        logger.debug("transaction rolled back")
        raise


def _resolve_cases(case_ids: Iterable) -> List[models.Case]:
    """Разрешает идентификаторы в Case в переданном порядке (NotFoundError на первом промахе)."""
    return [find_case(case_ref) for case_ref in _ensure_list(case_ids)]


def _attach_cases(test_set: models.TestSet, cases: List[models.Case]) -> None:
    """Добавляет кейсы в конец списка сета с позициями 1..n в порядке передачи.

    Уже привязанные кейсы не удаляются и не дедуплицируются.
    """
    for position, case in enumerate(cases, start=1):
        test_set.case_links.append(
            models.TestSetCase(
                case=case, position=position, test_set_version=test_set.version
            )
        )


def _record_version(test_set: models.TestSet) -> None:
    """Сохраняет снимок сета для текущей версии (если его еще нет)."""
    exists = db.session.query(
        models.TestSetVersion.query.filter_by(
            test_set_id=test_set.id, version=test_set.version
        ).exists()
    ).scalar()
    if exists:
        return

    db.session.add(
        models.TestSetVersion(
            test_set_id=test_set.id,
            version=test_set.version,
            name=test_set.name,
            date=test_set.date,
            priority=test_set.priority,
            deleted=test_set.deleted,
            archived=test_set.archived,
            updated_by=test_set.updated_by,
        )
    )


# -------------------------------
# Создание и обновление
# -------------------------------
def create_test_set_with_cases(
    attributes: Dict[str, Any], case_ids: Iterable, tag_list: TagList = None
) -> models.TestSet:
    """
    Создает TestSet вместе с кейсами и тегами в одной транзакции.

    Шаги:
      1. Каждый идентификатор из case_ids разрешается в Case (NotFoundError, если нет).
      2. Кейсам назначаются позиции 1..n в переданном порядке.
      3. Создается строка TestSet (ValidationError при ошибках валидации/уникальности).
      4. Кейсы привязываются к сету вместе с позициями.
      5. Если tag_list не пустой — назначаются теги. Пустой/None не трогает теги.
    Любая ошибка откатывает все шаги.
    """
    with _transaction_context():
        cases = _resolve_cases(case_ids)

        normalized = _normalize_attributes(attributes, partial=False)
        normalized.pop("version", None)
        test_area_ids = normalized.pop("test_area_ids", None)

        _ensure_external_id_unique(
            normalized["project_id"], normalized.get("external_id")
        )
        test_set = models.TestSet(**normalized)
        if test_area_ids is not None:
            test_set.test_areas = _resolve_test_areas(test_area_ids)
        db.session.add(test_set)
        db.session.flush()

        _attach_cases(test_set, cases)
        if not is_blank_tag_list(tag_list):
            tag_with(test_set, tag_list)

        db.session.flush()
        _record_version(test_set)

    logger.info(
        "test set created",
        test_set_id=test_set.id,
        project_id=test_set.project_id,
        cases=len(cases),
    )
    return test_set


def update_test_set_with_cases(
    test_set: models.TestSet,
    attributes: Dict[str, Any],
    case_ids: Iterable,
    tag_list: TagList = None,
) -> models.TestSet:
    """
    Обновляет TestSet, дописывает кейсы и перезаписывает теги в одной транзакции.

    - Кейсы разрешаются и получают позиции 1..n, как при создании.
    - attributes применяются как обновление. Если передан 'version' и он не совпадает
      с текущей версией записи -> ConcurrencyConflict; устаревшая запись при flush
      тоже дает ConcurrencyConflict.
    - Новые кейсы ДОПИСЫВАЮТСЯ к уже привязанным: ничего не удаляется и не
      дедуплицируется, повторный вызов может привязать тот же кейс второй раз.
    - Теги заменяются на tag_list; если tag_list не передан — все теги очищаются
      (в отличие от create_test_set_with_cases).
    """
    with _transaction_context():
        cases = _resolve_cases(case_ids)

        normalized = _normalize_attributes(attributes, partial=True)
        expected_version = normalized.pop("version", None)
        if expected_version is not None and expected_version != test_set.version:
            logger.warning(
                "test set version conflict",
                test_set_id=test_set.id,
                expected_version=expected_version,
                actual_version=test_set.version,
            )
            raise ConcurrencyConflict(
                f"TestSet id={test_set.id}: версия {expected_version} устарела, "
                f"текущая {test_set.version}"
            )

        test_area_ids = normalized.pop("test_area_ids", None)
        for field, value in normalized.items():
            setattr(test_set, field, value)
        if test_area_ids is not None:
            test_set.test_areas = _resolve_test_areas(test_area_ids)

        _ensure_required_present(test_set)
        _ensure_external_id_unique(
            test_set.project_id, test_set.external_id, exclude_id=test_set.id
        )
        db.session.flush()

        _attach_cases(test_set, cases)
        tag_with(test_set, tag_list or "")

        db.session.flush()
        _record_version(test_set)

    logger.info(
        "test set updated",
        test_set_id=test_set.id,
        version=test_set.version,
        appended_cases=len(cases),
    )
    return test_set


# -------------------------------
# Флаги deleted / archived
# -------------------------------
def _set_flag(test_set_id: int, field: str, value: bool) -> models.TestSet:
    with _transaction_context():
        test_set = get_test_set_by_id(test_set_id, include_deleted=True)
        if getattr(test_set, field) == value:
            # Идемпотентно — флаг уже в нужном состоянии
            return test_set

        setattr(test_set, field, value)
        db.session.flush()
        _record_version(test_set)

    logger.info(
        "test set flag changed", test_set_id=test_set_id, field=field, value=value
    )
    return test_set


def soft_delete_test_set(test_set_id: int) -> models.TestSet:
    """Soft-delete: помечает сет deleted=True, строка и связи остаются в БД."""
    return _set_flag(test_set_id, "deleted", True)


def restore_test_set(test_set_id: int) -> models.TestSet:
    """Снимает флаг deleted."""
    return _set_flag(test_set_id, "deleted", False)


def set_archived(test_set_id: int, archived: bool = True) -> models.TestSet:
    """Архивирует (или возвращает из архива) тест сет."""
    return _set_flag(test_set_id, "archived", bool(archived))
