# Таксономия ошибок домена.
# Компоненты бросают эти исключения, а в HTTP-коды их переводит только main.py.
from fastapi import status


class MarketplaceError(Exception):
    """Базовая ошибка. Каждый подкласс знает свой HTTP-статус и текст по умолчанию."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Internal server error'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# --- 400 ---
class ValidationError(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid input'

    def __init__(self, message: str | None = None, fields: list[dict] | None = None):
        super().__init__(message)
        # Структурированный список проблем: [{"field": "email", "message": "..."}]
        self.fields = fields or []


class NoShop(ValidationError):
    default_message = 'You need to create a shop first'


# --- 401 ---
class Unauthenticated(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'Not authenticated'


class MissingCredential(Unauthenticated):
    default_message = 'Authorization header is required'


class MalformedCredential(Unauthenticated):
    default_message = 'Authorization header format must be Bearer <token>'


class MalformedToken(Unauthenticated):
    default_message = 'Invalid token format'


class UnknownIdentity(Unauthenticated):
    default_message = 'Invalid token'


# --- 403 ---
class Forbidden(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'Forbidden'


# --- 404 ---
class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found'


# --- 409 ---
class Conflict(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Conflict'


class AlreadyOwnsShop(Conflict):
    default_message = 'User already has a shop'


# --- 500 ---
class Unavailable(MarketplaceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Service unavailable'


class StorageError(Unavailable):
    default_message = 'Storage is unavailable'


class CatalogUnavailable(Unavailable):
    default_message = 'Failed to fetch products'


class IntegrityFault(Unavailable):
    """Нарушена целостность данных (например, товар ссылается на несуществующий магазин)."""
    default_message = 'Data integrity fault'
