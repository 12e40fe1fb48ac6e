# Модели Pydantic: доменные записи (то, что отдаёт хранилище) и тела запросов/ответов.
# Наружу ключи уходят в camelCase (shopId, createdAt), на вход принимаем оба варианта.
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from config import DB_INT_MAX


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Role(str, Enum):
    BUYER = 'buyer'
    SELLER = 'seller'
    ADMIN = 'admin'


class ProductStatus(str, Enum):
    AVAILABLE = 'available'
    UNAVAILABLE = 'unavailable'
    ARCHIVED = 'archived'


# --- 1. Доменные записи ---

class User(CamelModel):
    id: int
    username: str
    email: str
    # Хэш пароля никогда не сериализуется
    password_hash: str = Field(default='', exclude=True)
    role: Role = Role.BUYER
    first_name: str = ''
    last_name: str = ''
    phone: str = ''
    address: str = ''
    avatar: str = ''
    shop_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Shop(CamelModel):
    id: int
    name: str
    description: str = ''
    logo: str = ''
    address: str = ''
    user_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Product(CamelModel):
    id: int
    name: str
    description: str = ''
    price: float
    stock: int = 0
    image: str = ''
    category: str = ''
    status: ProductStatus = ProductStatus.AVAILABLE
    shop_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class OwnerSummary(CamelModel):
    id: int
    username: str
    first_name: str = ''
    last_name: str = ''
    avatar: str = ''

    @classmethod
    def from_user(cls, user: User) -> 'OwnerSummary':
        return cls(id=user.id, username=user.username, first_name=user.first_name,
                   last_name=user.last_name, avatar=user.avatar)


class ShopDetail(Shop):
    owner: Optional[OwnerSummary] = None
    product_count: Optional[int] = None


# --- 2. Тела запросов ---

class RegisterRequest(CamelModel):
    # Пробел в имени попал бы в токен и сломал заголовок "Bearer <token>"
    username: str = Field(min_length=1, max_length=100, pattern=r'^\S+$')
    email: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: Role = Role.BUYER
    phone: str = ''
    address: str = ''
    avatar: str = ''

    @field_validator('email')
    @classmethod
    def email_has_at(cls, value: str) -> str:
        if '@' not in value:
            raise ValueError('Invalid email format')
        return value

    @field_validator('role')
    @classmethod
    def role_is_not_admin(cls, value: Role) -> Role:
        # Админа нельзя назначить себе при регистрации
        if value == Role.ADMIN:
            raise ValueError('Role must be buyer or seller')
        return value


class LoginRequest(BaseModel):
    email: str
    password: str


class ShopCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default='', max_length=500)
    logo: str = ''
    address: str = ''


class ShopUpdate(CamelModel):
    # Пустая строка == "не передано": очистить поле через PUT нельзя
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    logo: Optional[str] = None
    address: Optional[str] = None


class ProductCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default='', max_length=500)
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0, le=DB_INT_MAX)
    image: str = ''
    category: str = Field(default='', max_length=50)
    status: Optional[ProductStatus] = None
    # 0 или отсутствие поля: "магазин текущего пользователя"
    shop_id: Optional[int] = None


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    price: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0, le=DB_INT_MAX)
    image: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=50)
    status: Optional[ProductStatus] = None


# --- 3. Ответы ---

class Pagination(CamelModel):
    total_products: int
    total_pages: int
    current_page: int
    limit: int


class ProductListResponse(CamelModel):
    products: List[Product]
    pagination: Pagination


class ProductResponse(CamelModel):
    product: Product


class ShopResponse(CamelModel):
    shop: ShopDetail


class ShopListResponse(CamelModel):
    shops: List[ShopDetail]


class UserResponse(CamelModel):
    user: User


class MessageResponse(BaseModel):
    message: str


class ShopMutationResponse(CamelModel):
    message: str
    shop: Shop


class UserMutationResponse(CamelModel):
    message: str
    user: User


class LoginResponse(CamelModel):
    message: str
    token: str
    user: User
