from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

# Импортируем зависимости из наших центральных модулей
from auth import get_current_user
from catalog import CatalogQueryEngine, ProductFilters
from database import get_store
from errors import NotFound
from mutations import MutationService
from schemas import (MessageResponse, ProductCreate, ProductListResponse, ProductResponse, ProductStatus,
                     ProductUpdate, User)
from websocket import manager # Для отправки уведомлений об изменениях каталога


router = APIRouter(
    prefix='/api/products',
    tags=['Products'],
)


# --- Чтение (без авторизации) ---

@router.get('', response_model=ProductListResponse)
async def list_products(
    shop_id: Optional[int] = Query(default=None, alias='shopId'),
    product_status: Optional[ProductStatus] = Query(default=None, alias='status'),
    category: Optional[str] = None,
    search: Optional[str] = None,
    # page и limit принимаем строками: мусор не должен давать ошибку, он заменяется на значение по умолчанию
    page: Optional[str] = None,
    limit: Optional[str] = None,
    sort: Optional[str] = None,
    store=Depends(get_store),
):
    """Каталог: фильтры через AND, сортировка и пагинация."""
    filters = ProductFilters(shop_id=shop_id, status=product_status, category=category, search=search)
    result = await CatalogQueryEngine(store).list_products(filters, page=page, limit=limit, sort=sort)
    return {'products': result.items, 'pagination': result.pagination()}


@router.get('/{product_id}', response_model=ProductResponse)
async def get_product(product_id: int, store=Depends(get_store)):
    """
    Один товар по id.
    Мягко удалённый товар тоже отдаётся (с заполненным deletedAt):
    на него могут ссылаться старые заказы.
    """
    product = await store.get_product(product_id, include_deleted=True)
    if product is None:
        raise NotFound('Product not found')
    return {'product': product}


# --- Изменения (нужна сессия) ---

@router.post('', status_code=status.HTTP_201_CREATED, response_model=ProductResponse)
async def create_product(
    product_data: ProductCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    store=Depends(get_store),
):
    """Создаёт товар в магазине текущего пользователя (или в явно указанном, если он им владеет)."""
    product = await MutationService(store).create_product(current_user.id, product_data)
    background_tasks.add_task(manager.publish, 'product.created', product)
    return {'product': product}


@router.put('/{product_id}', response_model=ProductResponse)
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    store=Depends(get_store),
):
    """Обновляет товар. Только владелец магазина, которому принадлежит товар."""
    product = await MutationService(store).update_product(current_user.id, product_id, product_data)
    background_tasks.add_task(manager.publish, 'product.updated', product)
    return {'product': product}


@router.delete('/{product_id}', response_model=MessageResponse)
async def delete_product(
    product_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    store=Depends(get_store),
):
    """Мягко удаляет товар. Только владелец магазина."""
    product = await MutationService(store).delete_product(current_user.id, product_id)
    background_tasks.add_task(manager.publish, 'product.deleted', product)
    return {'message': 'Product deleted successfully'}
