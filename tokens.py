# Сервис идентификационных токенов.
# Токен: это просто строка "<userId>_<username>_<timestamp>".
# ВНИМАНИЕ: подписи и срока жизни нет. Любой, кто соберёт строку правильной формы
# с существующим userId, войдёт под этим пользователем. Это осознанная граница
# текущей модели развёртывания; для продакшена нужен подписанный токен (JWT/MAC)
# или серверное хранилище сессий.
from datetime import datetime, UTC
from typing import NamedTuple

from config import TOKEN_DELIMITER
from errors import MalformedToken


class TokenClaims(NamedTuple):
    user_id: int
    username: str
    issued_at: int  # Unix-время в секундах


def _is_unsigned_int(value: str) -> bool:
    # isdigit() без isascii() пропустил бы "²" и прочие юникодные цифры
    return value.isascii() and value.isdigit()


def issue_token(user_id: int, username: str, issued_at: datetime | None = None) -> str:
    """Создаёт токен из тройки (userId, username, время выдачи)."""
    moment = issued_at or datetime.now(UTC)
    return TOKEN_DELIMITER.join([str(user_id), username, str(int(moment.timestamp()))])


def parse_token(token: str) -> TokenClaims:
    """
    Разбирает токен обратно в тройку.
    Username берётся между первым и последним разделителем,
    поэтому имена с "_" (например, test_user) разбираются корректно.
    """
    if not token or token.count(TOKEN_DELIMITER) < 2:
        raise MalformedToken()

    user_part, rest = token.split(TOKEN_DELIMITER, 1)
    username, issued_part = rest.rsplit(TOKEN_DELIMITER, 1)

    if not _is_unsigned_int(user_part):
        raise MalformedToken('Invalid user ID in token')
    if not _is_unsigned_int(issued_part):
        raise MalformedToken('Invalid timestamp in token')

    return TokenClaims(user_id=int(user_part), username=username, issued_at=int(issued_part))
