import strawberry
from fastapi import Depends
from strawberry.fastapi import GraphQLRouter
from strawberry.types import Info
from typing import List, Optional

from catalog import CatalogQueryEngine, ProductFilters
from database import get_store
from errors import ValidationError
from schemas import Product, ProductStatus, Shop


# --- 1. "Слепки" для GraphQL ---
# Только чтение: все изменения идут через HTTP API с проверкой владения.
@strawberry.type
class ProductType:
    id: int
    name: str
    description: str
    price: float
    stock: int
    image: str
    category: str
    status: str
    shop_id: int

    @classmethod
    def from_product(cls, product: Product) -> 'ProductType':
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            stock=product.stock,
            image=product.image,
            category=product.category,
            status=ProductStatus(product.status).value,
            shop_id=product.shop_id,
        )


@strawberry.type
class PaginationType:
    total_products: int
    total_pages: int
    current_page: int
    limit: int


@strawberry.type
class ProductPageType:
    products: List[ProductType]
    pagination: PaginationType


@strawberry.type
class ShopType:
    id: int
    name: str
    description: str
    logo: str
    address: str
    user_id: int

    @classmethod
    def from_shop(cls, shop: Shop) -> 'ShopType':
        return cls(id=shop.id, name=shop.name, description=shop.description,
                   logo=shop.logo, address=shop.address, user_id=shop.user_id)


# --- 2. Резолверы ---
# info.context['store'] кладёт get_context ниже

async def get_products(
    info: Info,
    shop_id: Optional[int] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    sort: Optional[str] = None,
) -> ProductPageType:
    """Тот же движок каталога, что и у GET /api/products."""
    try:
        product_status = ProductStatus(status) if status else None
    except ValueError:
        raise ValidationError(f'Unknown product status: {status}')

    filters = ProductFilters(shop_id=shop_id, status=product_status, category=category, search=search)
    result = await CatalogQueryEngine(info.context['store']).list_products(filters, page=page, limit=limit, sort=sort)
    return ProductPageType(
        products=[ProductType.from_product(p) for p in result.items],
        pagination=PaginationType(
            total_products=result.total_count,
            total_pages=result.total_pages,
            current_page=result.page,
            limit=result.limit,
        ),
    )


async def get_product(info: Info, id: int) -> Optional[ProductType]:
    # Для GraphQL мягко удалённые товары не показываем
    product = await info.context['store'].get_product(id)
    return ProductType.from_product(product) if product else None


async def get_shops(info: Info) -> List[ShopType]:
    shops = await info.context['store'].list_shops()
    return [ShopType.from_shop(shop) for shop in shops]


# --- 3. Структура API ---
@strawberry.type
class Query:
    products: ProductPageType = strawberry.field(resolver=get_products)
    product: Optional[ProductType] = strawberry.field(resolver=get_product)
    shops: List[ShopType] = strawberry.field(resolver=get_shops)


schema = strawberry.Schema(query=Query)


# --- 4. Контекст и роутер ---
# Хранилище берём через ту же зависимость, что и REST-эндпоинты (её можно подменить в тестах)
async def get_context(store=Depends(get_store)):
    return {'store': store}


graphql_router = GraphQLRouter(schema, context_getter=get_context)
