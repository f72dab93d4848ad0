from typing import Union

from app.errors import ValidationError
from constants import PRIORITY_NAMES


def priority_name(priority: int) -> str:
    """Отображаемое имя приоритета ("high", "normal", "low").

    Неизвестные значения отображаются как есть, строкой.
    """
    return PRIORITY_NAMES.get(priority, str(priority))


def priority_value(raw: Union[int, str]) -> int:
    """Преобразует приоритет из payload в целое значение для БД.

    Принимается целое число, его строковое представление или отображаемое имя.
    """
    if isinstance(raw, bool):
        raise ValidationError("Поле 'priority' должно быть целым числом или именем приоритета")
    if isinstance(raw, int):
        return raw

    normalized = str(raw).strip().lower()
    for value, name in PRIORITY_NAMES.items():
        if name == normalized:
            return value
    try:
        return int(normalized)
    except ValueError:
        raise ValidationError(f"Неизвестный приоритет: {raw!r}")
