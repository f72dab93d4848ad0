import csv
import io
from typing import Any, Dict, Iterable, Optional

from app.errors import ValidationError


def csv_line(row: Iterable[Any], delimiter: str, line_feed: str) -> str:
    """Рендерит одну строку CSV с заданным разделителем и концом строки.

    Экранирование (кавычки вокруг полей с разделителем, кавычкой или переводом
    строки) выполняет стандартный csv.writer.
    """
    if not isinstance(delimiter, str) or len(delimiter) != 1:
        raise ValidationError("Разделитель CSV должен быть одним символом")

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator=line_feed)
    writer.writerow(["" if value is None else value for value in row])
    return buffer.getvalue()


def nested_csv_options(opts: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Опции для вложенного уровня экспорта: recurse - 1, indent + 1."""
    new_opts = dict(opts or {})
    new_opts["recurse"] = int(new_opts.get("recurse") or 0) - 1
    new_opts["indent"] = int(new_opts.get("indent") or 0) + 1
    return new_opts


def should_recurse(opts: Optional[Dict[str, Any]]) -> bool:
    recurse = (opts or {}).get("recurse")
    return bool(recurse) and int(recurse) > 0
