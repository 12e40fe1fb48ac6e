# auth.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from passlib.context import CryptContext

from config import BCRYPT_ROUNDS
from database import get_store
from errors import (Conflict, MalformedCredential, MissingCredential, Unauthenticated, UnknownIdentity,
                    ValidationError)
from schemas import LoginRequest, LoginResponse, RegisterRequest, User, UserMutationResponse
from tokens import issue_token, parse_token


logger = logging.getLogger(__name__)

# --- 1. Настройки и объекты ---
# Создаём объект один раз при загрузке модуля
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)

router = APIRouter(
    prefix='/api',
    tags=['Authentication']
)


# --- 2. Утилиты ---
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Проверяет, соответствует ли обычный пароль хешированному."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Хеширует пароль."""
    return pwd_context.hash(password)


# --- 3. Разрешение сессии ---
# Токен НЕ проверяется криптографически: единственная проверка в том, что пользователь
# с таким id существует. Это задокументированное поведение (см. tokens.py).
async def resolve_token(token: str, store) -> User:
    """Токен -> пользователь. Бросает MalformedToken или UnknownIdentity."""
    claims = parse_token(token)
    user = await store.get_user(claims.user_id)
    if user is None:
        logger.info('Token refers to unknown user id %s', claims.user_id)
        raise UnknownIdentity()
    return user


async def authenticate(authorization: Optional[str], store) -> User:
    """Заголовок Authorization -> пользователь."""
    if not authorization:
        raise MissingCredential()

    parts = authorization.split(' ')
    if len(parts) != 2 or parts[0] != 'Bearer' or not parts[1]:
        raise MalformedCredential()

    return await resolve_token(parts[1], store)


# --- 4. Зависимость для получения текущего пользователя ---
# Используется в защищённых эндпоинтах. Найденного пользователя кладём в request.state,
# чтобы он был доступен и дальше по цепочке обработки.
async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    store=Depends(get_store),
) -> User:
    user = await authenticate(authorization, store)
    request.state.user = user
    return user


# --- 5. Эндпоинты ---

@router.post('/register', status_code=status.HTTP_201_CREATED, response_model=UserMutationResponse)
async def register(user_in: RegisterRequest, store=Depends(get_store)):
    """Регистрирует пользователя. Обязательные поля проверяет RegisterRequest."""
    # Быстрые проверки дают понятный текст; гонку закрывает UNIQUE в хранилище
    if await store.get_user_by_username(user_in.username):
        raise Conflict('Username already exists')
    if await store.get_user_by_email(user_in.email):
        raise Conflict('Email already exists')

    fields = user_in.model_dump(exclude={'password'})
    fields['password_hash'] = get_password_hash(user_in.password)
    user = await store.create_user(fields)

    logger.info('User %s registered with id %s', user.username, user.id)
    return {'message': 'User registered successfully', 'user': user}


@router.post('/login', response_model=LoginResponse)
async def login(login_in: LoginRequest, store=Depends(get_store)):
    """Проверяет email и пароль и выдаёт сессионный токен."""
    email = login_in.email.strip()
    password = login_in.password.strip()
    if not email or not password:
        raise ValidationError('Email and password are required')

    user = await store.get_user_by_email(email)
    # Не сообщаем, что именно неверно: email или пароль
    if user is None or not verify_password(password, user.password_hash):
        raise Unauthenticated('Invalid email or password')

    return {'message': 'Login successful', 'token': issue_token(user.id, user.username), 'user': user}
