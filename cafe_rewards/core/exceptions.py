# cafe_rewards/core/exceptions.py


class CafeApiError(Exception):
    """
    Ошибка при обращении к API кофейни: сетевой сбой или ответ не 2xx.
    `message` - текст, который можно показать пользователю как есть.
    """
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ClaimError(Exception):
    """Базовая ошибка получения награды."""
    def __init__(self, identifier: str, message: str):
        super().__init__(message)
        self.identifier = identifier
        self.message = message


class ClaimNotAllowedError(ClaimError):
    """Награда не в статусе Claim/ActiveVoucher - вызывающий код не должен был ее отправлять."""


class ClaimInProgressError(ClaimError):
    """По этому идентификатору уже выполняется запрос."""
