# Слой хранения.
# Компоненты получают хранилище явно (в конструкторе или через Depends(get_store)),
# никакого глобального подключения к БД. Есть две реализации с одним интерфейсом:
#   PostgresStore: asyncpg-пул и обычный SQL с $1, $2;
#   MemoryStore  : словари в памяти (режим TESTING и STORAGE_BACKEND=memory).
import logging
from contextlib import asynccontextmanager
from datetime import datetime, UTC
from typing import List, Optional, Protocol

import asyncpg

from catalog import CatalogQuery
from config import DB_INT_MAX
from errors import AlreadyOwnsShop, Conflict, StorageError
from schemas import Product, ProductStatus, Role, Shop, User


logger = logging.getLogger(__name__)

USER_COLUMNS = ('id, username, email, password_hash, role, first_name, last_name, phone, '
                'address, avatar, shop_id, created_at, updated_at')
SHOP_COLUMNS = 'id, name, description, logo, address, user_id, created_at, updated_at'
PRODUCT_COLUMNS = ('id, name, description, price, stock, image, category, status, shop_id, '
                   'created_at, updated_at, deleted_at')

# Имена ограничений уникальности -> сообщение для клиента
USER_CONFLICTS = {
    'users_username_key': 'Username already exists',
    'users_email_key': 'Email already exists',
}


class Store(Protocol):
    """Интерфейс хранилища: простой CRUD плюс запросы по предикату."""

    async def get_user(self, user_id: int) -> Optional[User]: ...
    async def get_user_by_username(self, username: str) -> Optional[User]: ...
    async def get_user_by_email(self, email: str) -> Optional[User]: ...
    async def create_user(self, user: dict) -> User: ...
    async def set_user_shop(self, user_id: int, shop_id: int, role: Role) -> User: ...

    async def get_shop(self, shop_id: int) -> Optional[Shop]: ...
    async def get_shop_by_user(self, user_id: int) -> Optional[Shop]: ...
    async def list_shops(self, user_id: Optional[int] = None) -> List[Shop]: ...
    async def create_shop(self, user_id: int, shop: dict) -> Shop: ...
    async def update_shop(self, shop_id: int, fields: dict) -> Shop: ...
    async def count_shop_products(self, shop_id: int) -> int: ...

    async def get_product(self, product_id: int, include_deleted: bool = False) -> Optional[Product]: ...
    async def create_product(self, product: dict) -> Product: ...
    async def update_product(self, product_id: int, fields: dict) -> Product: ...
    async def soft_delete_product(self, product_id: int) -> Product: ...
    async def count_products(self, query: CatalogQuery) -> int: ...
    async def fetch_products(self, query: CatalogQuery) -> List[Product]: ...


def _now() -> datetime:
    return datetime.now(UTC)


class MemoryStore:
    """Хранилище в памяти процесса. Отдаёт копии, чтобы вызывающий код не менял "таблицы" напрямую."""

    def __init__(self):
        self.users: dict[int, User] = {}
        self.shops: dict[int, Shop] = {}
        self.products: dict[int, Product] = {}
        self._ids = {'users': 0, 'shops': 0, 'products': 0}

    def _next_id(self, table: str) -> int:
        self._ids[table] += 1
        return self._ids[table]

    # --- Пользователи ---
    async def get_user(self, user_id: int) -> Optional[User]:
        user = self.users.get(user_id)
        return user.model_copy() if user else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u.model_copy() for u in self.users.values() if u.username == username), None)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return next((u.model_copy() for u in self.users.values() if u.email == email), None)

    async def create_user(self, user: dict) -> User:
        # Проверка и вставка идут без await между ними, поэтому гонки в одном event loop нет
        if any(u.username == user['username'] for u in self.users.values()):
            raise Conflict(USER_CONFLICTS['users_username_key'])
        if any(u.email == user['email'] for u in self.users.values()):
            raise Conflict(USER_CONFLICTS['users_email_key'])
        now = _now()
        record = User(id=self._next_id('users'), created_at=now, updated_at=now, **user)
        self.users[record.id] = record
        return record.model_copy()

    async def set_user_shop(self, user_id: int, shop_id: int, role: Role) -> User:
        user = self.users[user_id]
        updated = user.model_copy(update={'shop_id': shop_id, 'role': role, 'updated_at': _now()})
        self.users[user_id] = updated
        return updated.model_copy()

    # --- Магазины ---
    async def get_shop(self, shop_id: int) -> Optional[Shop]:
        shop = self.shops.get(shop_id)
        return shop.model_copy() if shop else None

    async def get_shop_by_user(self, user_id: int) -> Optional[Shop]:
        return next((s.model_copy() for s in self.shops.values() if s.user_id == user_id), None)

    async def list_shops(self, user_id: Optional[int] = None) -> List[Shop]:
        shops = sorted(self.shops.values(), key=lambda s: s.id)
        return [s.model_copy() for s in shops if user_id is None or s.user_id == user_id]

    async def create_shop(self, user_id: int, shop: dict) -> Shop:
        # Аналог UNIQUE(user_id) в Postgres
        if any(s.user_id == user_id for s in self.shops.values()):
            raise AlreadyOwnsShop()
        now = _now()
        record = Shop(id=self._next_id('shops'), user_id=user_id, created_at=now, updated_at=now, **shop)
        self.shops[record.id] = record
        return record.model_copy()

    async def update_shop(self, shop_id: int, fields: dict) -> Shop:
        updated = self.shops[shop_id].model_copy(update={**fields, 'updated_at': _now()})
        self.shops[shop_id] = updated
        return updated.model_copy()

    async def count_shop_products(self, shop_id: int) -> int:
        return sum(1 for p in self.products.values() if p.shop_id == shop_id and p.deleted_at is None)

    # --- Товары ---
    async def get_product(self, product_id: int, include_deleted: bool = False) -> Optional[Product]:
        product = self.products.get(product_id)
        if product is None or (product.deleted_at is not None and not include_deleted):
            return None
        return product.model_copy()

    async def create_product(self, product: dict) -> Product:
        now = _now()
        record = Product(id=self._next_id('products'), created_at=now, updated_at=now, **product)
        self.products[record.id] = record
        return record.model_copy()

    async def update_product(self, product_id: int, fields: dict) -> Product:
        updated = self.products[product_id].model_copy(update={**fields, 'updated_at': _now()})
        self.products[product_id] = updated
        return updated.model_copy()

    async def soft_delete_product(self, product_id: int) -> Product:
        now = _now()
        updated = self.products[product_id].model_copy(update={'deleted_at': now, 'updated_at': now})
        self.products[product_id] = updated
        return updated.model_copy()

    async def count_products(self, query: CatalogQuery) -> int:
        return sum(1 for p in self.products.values() if query.filters.matches(p))

    async def fetch_products(self, query: CatalogQuery) -> List[Product]:
        matched = [p for p in self.products.values() if query.filters.matches(p)]
        page = query.sort.sort(matched)[query.offset:query.offset + query.limit]
        return [p.model_copy() for p in page]


class PostgresStore:
    """Хранилище поверх пула asyncpg."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    @asynccontextmanager
    async def _connection(self):
        # Любой сбой драйвера превращаем в StorageError. Наши доменные ошибки
        # (Conflict и т.п.) не являются ошибками asyncpg и проходят насквозь.
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            logger.error('Database error: %s', exc)
            raise StorageError() from exc

    # --- Пользователи ---
    async def get_user(self, user_id: int) -> Optional[User]:
        if not _fits_db_int(user_id):
            return None
        async with self._connection() as conn:
            row = await conn.fetchrow(f'SELECT {USER_COLUMNS} FROM users WHERE id = $1', user_id)
        return User(**dict(row)) if row else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        async with self._connection() as conn:
            row = await conn.fetchrow(f'SELECT {USER_COLUMNS} FROM users WHERE username = $1', username)
        return User(**dict(row)) if row else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        async with self._connection() as conn:
            row = await conn.fetchrow(f'SELECT {USER_COLUMNS} FROM users WHERE email = $1', email)
        return User(**dict(row)) if row else None

    async def create_user(self, user: dict) -> User:
        async with self._connection() as conn:
            try:
                row = await conn.fetchrow(
                    f'''
                    INSERT INTO users (username, email, password_hash, role, first_name, last_name,
                                       phone, address, avatar)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    RETURNING {USER_COLUMNS}
                    ''',
                    user['username'], user['email'], user['password_hash'], Role(user['role']).value,
                    user['first_name'], user['last_name'], user.get('phone', ''),
                    user.get('address', ''), user.get('avatar', ''),
                )
            except asyncpg.UniqueViolationError as exc:
                raise Conflict(USER_CONFLICTS.get(exc.constraint_name, 'User already exists')) from exc
        return User(**dict(row))

    async def set_user_shop(self, user_id: int, shop_id: int, role: Role) -> User:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f'UPDATE users SET shop_id = $1, role = $2, updated_at = now() WHERE id = $3 RETURNING {USER_COLUMNS}',
                shop_id, Role(role).value, user_id,
            )
        return User(**dict(row))

    # --- Магазины ---
    async def get_shop(self, shop_id: int) -> Optional[Shop]:
        if not _fits_db_int(shop_id):
            return None
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f'SELECT {SHOP_COLUMNS} FROM shops WHERE id = $1 AND deleted_at IS NULL', shop_id)
        return Shop(**dict(row)) if row else None

    async def get_shop_by_user(self, user_id: int) -> Optional[Shop]:
        if not _fits_db_int(user_id):
            return None
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f'SELECT {SHOP_COLUMNS} FROM shops WHERE user_id = $1 AND deleted_at IS NULL', user_id)
        return Shop(**dict(row)) if row else None

    async def list_shops(self, user_id: Optional[int] = None) -> List[Shop]:
        if user_id is not None and not _fits_db_int(user_id):
            return []
        async with self._connection() as conn:
            if user_id is None:
                rows = await conn.fetch(
                    f'SELECT {SHOP_COLUMNS} FROM shops WHERE deleted_at IS NULL ORDER BY id')
            else:
                rows = await conn.fetch(
                    f'SELECT {SHOP_COLUMNS} FROM shops WHERE user_id = $1 AND deleted_at IS NULL ORDER BY id',
                    user_id)
        return [Shop(**dict(r)) for r in rows]

    async def create_shop(self, user_id: int, shop: dict) -> Shop:
        async with self._connection() as conn:
            try:
                row = await conn.fetchrow(
                    f'''
                    INSERT INTO shops (name, description, logo, address, user_id)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING {SHOP_COLUMNS}
                    ''',
                    shop['name'], shop.get('description', ''), shop.get('logo', ''),
                    shop.get('address', ''), user_id,
                )
            except asyncpg.UniqueViolationError as exc:
                # UNIQUE(user_id): второй параллельный запрос того же пользователя проигрывает гонку здесь
                raise AlreadyOwnsShop() from exc
        return Shop(**dict(row))

    async def update_shop(self, shop_id: int, fields: dict) -> Shop:
        assignments, args = _set_clause(fields)
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f'UPDATE shops SET {assignments} WHERE id = ${len(args) + 1} RETURNING {SHOP_COLUMNS}',
                *args, shop_id,
            )
        return Shop(**dict(row))

    async def count_shop_products(self, shop_id: int) -> int:
        if not _fits_db_int(shop_id):
            return 0
        async with self._connection() as conn:
            return await conn.fetchval(
                'SELECT COUNT(*) FROM products WHERE shop_id = $1 AND deleted_at IS NULL', shop_id)

    # --- Товары ---
    async def get_product(self, product_id: int, include_deleted: bool = False) -> Optional[Product]:
        if not _fits_db_int(product_id):
            return None
        query = f'SELECT {PRODUCT_COLUMNS} FROM products WHERE id = $1'
        if not include_deleted:
            query += ' AND deleted_at IS NULL'
        async with self._connection() as conn:
            row = await conn.fetchrow(query, product_id)
        return Product(**dict(row)) if row else None

    async def create_product(self, product: dict) -> Product:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f'''
                INSERT INTO products (name, description, price, stock, image, category, status, shop_id)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING {PRODUCT_COLUMNS}
                ''',
                product['name'], product.get('description', ''), product['price'],
                product.get('stock', 0), product.get('image', ''), product.get('category', ''),
                ProductStatus(product['status']).value, product['shop_id'],
            )
        return Product(**dict(row))

    async def update_product(self, product_id: int, fields: dict) -> Product:
        if 'status' in fields:
            fields = {**fields, 'status': ProductStatus(fields['status']).value}
        assignments, args = _set_clause(fields)
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f'UPDATE products SET {assignments} WHERE id = ${len(args) + 1} RETURNING {PRODUCT_COLUMNS}',
                *args, product_id,
            )
        return Product(**dict(row))

    async def soft_delete_product(self, product_id: int) -> Product:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f'UPDATE products SET deleted_at = now(), updated_at = now() WHERE id = $1 RETURNING {PRODUCT_COLUMNS}',
                product_id,
            )
        return Product(**dict(row))

    async def count_products(self, query: CatalogQuery) -> int:
        if not _filters_fit_db(query):
            return 0
        where, args = query.filters.to_sql()
        async with self._connection() as conn:
            return await conn.fetchval(f'SELECT COUNT(*) FROM products WHERE {where}', *args)

    async def fetch_products(self, query: CatalogQuery) -> List[Product]:
        if not _filters_fit_db(query):
            return []
        where, args = query.filters.to_sql()
        n = len(args)
        async with self._connection() as conn:
            rows = await conn.fetch(
                f'SELECT {PRODUCT_COLUMNS} FROM products WHERE {where} '
                f'ORDER BY {query.sort.order_by} LIMIT ${n + 1} OFFSET ${n + 2}',
                *args, query.limit, query.offset,
            )
        return [Product(**dict(r)) for r in rows]


def _fits_db_int(value: int) -> bool:
    # Такого id в INTEGER-колонке быть не может, а asyncpg на нём падает с DataError
    return -DB_INT_MAX - 1 <= value <= DB_INT_MAX


def _filters_fit_db(query: CatalogQuery) -> bool:
    return query.filters.shop_id is None or _fits_db_int(query.filters.shop_id)


def _set_clause(fields: dict) -> tuple[str, list]:
    """{"name": "x", "logo": "y"} -> ("name = $1, logo = $2, updated_at = now()", ["x", "y"])"""
    # Имена колонок приходят только из наших моделей, не от клиента
    columns = list(fields)
    assignments = [f'{column} = ${i}' for i, column in enumerate(columns, start=1)]
    assignments.append('updated_at = now()')
    return ', '.join(assignments), [fields[c] for c in columns]
