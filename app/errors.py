# -------------------------------
# Исключения, специфичные для домена тест сетов
# -------------------------------
class TestSetError(Exception):
    """Базовое исключение для ошибок, связанных с TestSet.

    Вызывающий слой (контроллеры) перехватывает его и сопоставляет
    с ответом пользователю.
    """

    __test__ = False  # pytest не должен собирать этот класс как тест


class ValidationError(TestSetError):
    """Ошибка валидации (эквивалент HTTP 400).

    Отсутствует обязательное поле (name, project_id, date), неверный тип
    значения или нарушена уникальность external_id внутри проекта.
    """


class NotFoundError(TestSetError):
    """Сущность не найдена (эквивалент HTTP 404).

    Например, идентификатор кейса не разрешается в существующий Case.
    """


class ConcurrencyConflict(TestSetError):
    """Конфликт версий (эквивалент HTTP 409).

    Запись изменилась после того, как клиент прочитал её версию.
    Автоматических повторов нет — ошибка сразу уходит вызывающему коду.
    """
