# Сервис изменений магазинов и товаров.
# Перед каждой записью проверяет владение через OwnershipResolver.
# create_shop и create_product не идемпотентны, повторять их автоматически нельзя.
import logging

from errors import AlreadyOwnsShop, Forbidden, NoShop, NotFound, ValidationError
from ownership import OwnershipResolver
from schemas import Product, ProductCreate, ProductStatus, ProductUpdate, Role, Shop, ShopCreate, ShopUpdate


logger = logging.getLogger(__name__)


def _non_empty(fields: dict) -> dict:
    # None и "" означают "поле не передано"
    return {key: value for key, value in fields.items() if value is not None and value != ''}


class MutationService:
    def __init__(self, store, ownership: OwnershipResolver | None = None):
        self.store = store
        self.ownership = ownership or OwnershipResolver(store)

    async def _get_user(self, user_id: int):
        user = await self.store.get_user(user_id)
        if user is None:
            raise NotFound('User not found')
        return user

    # --- Магазины ---

    async def create_shop(self, user_id: int, data: ShopCreate) -> Shop:
        user = await self._get_user(user_id)

        if not data.name.strip():
            raise ValidationError('Shop name is required', fields=[{'field': 'name', 'message': 'Field required'}])

        # Предварительная проверка даёт понятную ошибку в обычном случае.
        # Гонку двух параллельных запросов ловит UNIQUE(user_id) в хранилище.
        if await self.store.get_shop_by_user(user.id) is not None:
            raise AlreadyOwnsShop()

        shop = await self.store.create_shop(user.id, data.model_dump())
        await self.store.set_user_shop(user.id, shop.id, Role.SELLER)
        logger.info('User %s created shop %s', user.id, shop.id)
        return shop

    async def update_shop(self, user_id: int, shop_id: int, data: ShopUpdate) -> Shop:
        shop = await self.ownership.require_shop_owner(user_id, shop_id)

        fields = _non_empty(data.model_dump(exclude_unset=True))
        if not fields:
            return shop
        return await self.store.update_shop(shop.id, fields)

    # --- Товары ---

    async def create_product(self, user_id: int, data: ProductCreate) -> Product:
        user = await self._get_user(user_id)

        if not data.shop_id:
            # Магазин не указан: берём магазин пользователя
            if not user.shop_id:
                raise NoShop()
            shop_id = user.shop_id
        else:
            shop_id = data.shop_id

        if user.role != Role.SELLER:
            raise Forbidden('Only sellers can create products')

        # Даже явно указанный магазин должен принадлежать пользователю
        await self.ownership.require_shop_owner(
            user.id, shop_id, message='You can only create products for your own shop')

        fields = data.model_dump(exclude={'shop_id'})
        fields['status'] = data.status or ProductStatus.AVAILABLE
        fields['shop_id'] = shop_id

        product = await self.store.create_product(fields)
        logger.info('User %s created product %s in shop %s', user.id, product.id, shop_id)
        return product

    async def update_product(self, user_id: int, product_id: int, data: ProductUpdate) -> Product:
        product = await self.ownership.require_product_owner(
            user_id, product_id, message='You can only update products from your own shop')

        # shop_id в ProductUpdate нет: перенести товар в другой магазин нельзя
        fields = _non_empty(data.model_dump(exclude_unset=True))
        if not fields:
            return product
        return await self.store.update_product(product.id, fields)

    async def delete_product(self, user_id: int, product_id: int) -> Product:
        product = await self.ownership.require_product_owner(
            user_id, product_id, message='You can only delete products from your own shop')

        # Мягкое удаление: запись остаётся для истории заказов, но пропадает из каталога
        deleted = await self.store.soft_delete_product(product.id)
        logger.info('User %s deleted product %s', user_id, product.id)
        return deleted
