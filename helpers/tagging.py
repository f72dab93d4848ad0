from typing import Iterable, List, Optional, Union

import app.models as models
from app import db
from app.errors import ValidationError
from constants import TAG_DELIMITER, TAG_NAME_MAX_LENGTH

TagList = Union[str, Iterable[str], None]


def is_blank_tag_list(tag_list: TagList) -> bool:
    """True для None, пустой строки/строки из пробелов и пустого списка."""
    if tag_list is None:
        return True
    if isinstance(tag_list, str):
        return not tag_list.strip()
    return not any(str(tag).strip() for tag in tag_list)


def parse_tag_list(tag_list: TagList) -> List[str]:
    """Разбирает список тегов.

    Строка делится по TAG_DELIMITER, список принимается как есть.
    Пустые имена пропускаются, дубликаты убираются с сохранением порядка.
    """
    if tag_list is None:
        return []
    if isinstance(tag_list, str):
        raw_names = tag_list.split(TAG_DELIMITER)
    else:
        raw_names = list(tag_list)

    names: List[str] = []
    seen = set()
    for raw in raw_names:
        if not isinstance(raw, str):
            raise ValidationError("Каждый тег должен быть строкой")
        name = raw.strip()
        if not name or name in seen:
            continue
        if len(name) > TAG_NAME_MAX_LENGTH:
            raise ValidationError(
                f"Имя тега длиннее {TAG_NAME_MAX_LENGTH} символов: {name[:20]}..."
            )
        seen.add(name)
        names.append(name)
    return names


def _get_tag_by_name(name: str) -> Optional[models.Tag]:
    """Возвращает Tag по имени или None."""
    return models.Tag.query.filter_by(name=name).first()


def _get_or_create_tag(name: str) -> models.Tag:
    """Возвращает существующий Tag или создаёт новый по имени."""
    tag = _get_tag_by_name(name)
    if tag:
        return tag

    tag = models.Tag(name=name)
    db.session.add(tag)
    # flush сразу, чтобы повторный поиск по тому же имени нашел тег
    db.session.flush()
    return tag


def tag_with(record, tag_list: TagList) -> None:
    """Заменяет набор тегов записи (любой модели со связью `tags`).

    Пустой список тегов очищает все теги.
    """
    names = parse_tag_list(tag_list)
    tags = [_get_or_create_tag(name) for name in names]
    record.tags[:] = sorted(tags, key=lambda tag: tag.name)


def tags_to_string(record) -> str:
    """Теги записи одной строкой через TAG_DELIMITER."""
    return TAG_DELIMITER.join(tag.name for tag in record.tags)
