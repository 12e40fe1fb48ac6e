from fastapi import APIRouter, Depends

from auth import get_current_user
from database import get_store
from errors import Forbidden, NotFound
from routers.shops import describe_shop
from schemas import ShopListResponse, User, UserResponse


router = APIRouter(prefix='/api/users', tags=['Users'])


@router.get('/{user_id}', response_model=UserResponse)
async def get_user(user_id: int, current_user: User = Depends(get_current_user), store=Depends(get_store)):
    """Профиль пользователя (без пароля). Требует сессию."""
    user = await store.get_user(user_id)
    if user is None:
        raise NotFound('User not found')
    return {'user': user}


@router.get('/{user_id}/shops', response_model=ShopListResponse)
async def get_user_shops(user_id: int, current_user: User = Depends(get_current_user), store=Depends(get_store)):
    """Магазины пользователя. Смотреть можно только свои."""
    if current_user.id != user_id:
        raise Forbidden("Not authorized to view other users' shops")

    shops = await store.list_shops(user_id=user_id)
    return {'shops': [await describe_shop(store, shop, with_product_count=False) for shop in shops]}
