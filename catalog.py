# Движок запросов к каталогу: фильтры, сортировка, пагинация.
# Один объект CatalogQuery используется и для подсчёта, и для выборки страницы,
# поэтому предикат у обоих запросов всегда одинаковый.
#
# Подсчёт и выборка: две отдельные операции, а не один снимок. Если между ними
# кто-то добавит или удалит товар, totalProducts может немного разойтись со страницей.
# Это допустимое окно устаревания, а не ошибка.
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from config import CATALOG_DEFAULT_LIMIT, CATALOG_DEFAULT_PAGE, DB_INT_MAX
from errors import CatalogUnavailable, StorageError
from schemas import Pagination, Product, ProductStatus


logger = logging.getLogger(__name__)


class SortKey(str, Enum):
    FEATURED = 'featured'
    PRICE_LOW = 'priceLow'
    PRICE_HIGH = 'priceHigh'
    NAME = 'name'
    NEWEST = 'newest'

    @classmethod
    def parse(cls, raw: Optional[str]) -> 'SortKey':
        """Неизвестный или пустой ключ: это сортировка по умолчанию, а не ошибка."""
        try:
            return cls(raw)
        except ValueError:
            return cls.FEATURED

    @property
    def order_by(self) -> str:
        # Второй ключ по id делает порядок детерминированным при равных значениях
        return {
            SortKey.FEATURED: 'id ASC',
            SortKey.PRICE_LOW: 'price ASC, id ASC',
            SortKey.PRICE_HIGH: 'price DESC, id ASC',
            SortKey.NAME: 'name ASC, id ASC',
            SortKey.NEWEST: 'created_at DESC, id DESC',
        }[self]

    def sort(self, products: List[Product]) -> List[Product]:
        """Тот же порядок, что и order_by, но для списка в памяти."""
        if self is SortKey.PRICE_LOW:
            return sorted(products, key=lambda p: (p.price, p.id))
        if self is SortKey.PRICE_HIGH:
            return sorted(products, key=lambda p: (-p.price, p.id))
        if self is SortKey.NAME:
            return sorted(products, key=lambda p: (p.name, p.id))
        if self is SortKey.NEWEST:
            return sorted(products, key=lambda p: (p.created_at, p.id), reverse=True)
        return sorted(products, key=lambda p: p.id)


def parse_positive_int(raw: Any, default: int, maximum: int = DB_INT_MAX) -> int:
    """Нечисловое, нулевое, отрицательное или больше maximum значение молча заменяется на default."""
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if 0 < value <= maximum else default


def escape_like(term: str) -> str:
    # В Postgres по умолчанию escape-символ для LIKE: обратный слэш
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


@dataclass(frozen=True)
class ProductFilters:
    """Все фильтры необязательны и объединяются через AND. search ищет по name ИЛИ description без учёта регистра."""
    shop_id: Optional[int] = None
    status: Optional[ProductStatus] = None
    category: Optional[str] = None
    search: Optional[str] = None

    def to_sql(self) -> tuple[str, list]:
        """Возвращает WHERE-условие с плейсхолдерами asyncpg ($1, $2, ...) и список аргументов."""
        clauses = ['deleted_at IS NULL']
        args: list = []

        def bind(value) -> str:
            args.append(value)
            return f'${len(args)}'

        if self.shop_id is not None:
            clauses.append(f'shop_id = {bind(self.shop_id)}')
        if self.status is not None:
            clauses.append(f'status = {bind(ProductStatus(self.status).value)}')
        if self.category:
            clauses.append(f'category = {bind(self.category)}')
        if self.search:
            pattern = bind(f'%{escape_like(self.search)}%')
            clauses.append(f'(name ILIKE {pattern} OR description ILIKE {pattern})')

        return ' AND '.join(clauses), args

    def matches(self, product: Product) -> bool:
        """Тот же предикат, что и to_sql, для хранилища в памяти."""
        if product.deleted_at is not None:
            return False
        if self.shop_id is not None and product.shop_id != self.shop_id:
            return False
        if self.status is not None and product.status != ProductStatus(self.status):
            return False
        if self.category and product.category != self.category:
            return False
        if self.search:
            # lower(), а не casefold(): так же сравнивает ILIKE в Postgres (ß не превращается в ss)
            needle = self.search.lower()
            if needle not in product.name.lower() and needle not in (product.description or '').lower():
                return False
        return True


@dataclass(frozen=True)
class CatalogQuery:
    filters: ProductFilters = field(default_factory=ProductFilters)
    sort: SortKey = SortKey.FEATURED
    page: int = CATALOG_DEFAULT_PAGE
    limit: int = CATALOG_DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class CatalogPage:
    items: List[Product]
    total_count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit)

    def pagination(self) -> Pagination:
        return Pagination(
            total_products=self.total_count,
            total_pages=self.total_pages,
            current_page=self.page,
            limit=self.limit,
        )


class CatalogQueryEngine:
    def __init__(self, store):
        self.store = store

    @staticmethod
    def build_query(filters: ProductFilters | None = None, page: Any = None,
                    limit: Any = None, sort: Optional[str] = None) -> CatalogQuery:
        return CatalogQuery(
            filters=filters or ProductFilters(),
            sort=SortKey.parse(sort),
            page=parse_positive_int(page, CATALOG_DEFAULT_PAGE),
            limit=parse_positive_int(limit, CATALOG_DEFAULT_LIMIT),
        )

    async def list_products(self, filters: ProductFilters | None = None, page: Any = None,
                            limit: Any = None, sort: Optional[str] = None) -> CatalogPage:
        query = self.build_query(filters, page, limit, sort)
        try:
            # Сначала считаем всё, что подходит под фильтры (до пагинации), потом берём страницу
            total = await self.store.count_products(query)
            items = await self.store.fetch_products(query)
        except StorageError as exc:
            logger.error('Catalog query failed: %s', exc)
            raise CatalogUnavailable() from exc

        return CatalogPage(items=items, total_count=total, page=query.page, limit=query.limit)
