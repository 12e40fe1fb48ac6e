import logging

from fastapi import APIRouter, Depends, status

from auth import get_current_user
from database import get_store
from errors import NotFound
from mutations import MutationService
from schemas import (OwnerSummary, Shop, ShopCreate, ShopDetail, ShopListResponse, ShopMutationResponse,
                     ShopResponse, ShopUpdate, User)


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix='/api/shops',
    tags=['Shops'],
)


async def describe_shop(store, shop: Shop, with_product_count: bool = True) -> ShopDetail:
    """Магазин + краткая информация о владельце + количество товаров."""
    owner = await store.get_user(shop.user_id)
    if owner is None:
        # Владельца не нашли: отдаём магазин без него
        logger.warning('Shop %s references missing owner %s', shop.id, shop.user_id)
    product_count = await store.count_shop_products(shop.id) if with_product_count else None
    return ShopDetail(
        **shop.model_dump(),
        owner=OwnerSummary.from_user(owner) if owner else None,
        product_count=product_count,
    )


@router.get('', response_model=ShopListResponse)
async def list_shops(store=Depends(get_store)):
    """Все магазины с владельцами и количеством товаров."""
    shops = await store.list_shops()
    return {'shops': [await describe_shop(store, shop) for shop in shops]}


@router.get('/{shop_id}', response_model=ShopResponse)
async def get_shop(shop_id: int, store=Depends(get_store)):
    shop = await store.get_shop(shop_id)
    if shop is None:
        raise NotFound('Shop not found')
    return {'shop': await describe_shop(store, shop)}


@router.post('', status_code=status.HTTP_201_CREATED, response_model=ShopMutationResponse)
async def create_shop(shop_data: ShopCreate, current_user: User = Depends(get_current_user), store=Depends(get_store)):
    """Создаёт магазин. Пользователь становится продавцом."""
    shop = await MutationService(store).create_shop(current_user.id, shop_data)
    return {'message': 'Shop created successfully', 'shop': shop}


@router.put('/{shop_id}', response_model=ShopMutationResponse)
async def update_shop(
    shop_id: int,
    shop_data: ShopUpdate,
    current_user: User = Depends(get_current_user),
    store=Depends(get_store),
):
    """Обновляет только непустые поля. Только владелец."""
    shop = await MutationService(store).update_shop(current_user.id, shop_id, shop_data)
    return {'message': 'Shop updated successfully', 'shop': shop}
