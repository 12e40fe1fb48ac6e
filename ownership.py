# Проверка владения по цепочке User -> Shop -> Product.
# Никакого ACL и кэша: граф обходится заново на каждый запрос,
# поэтому передача магазина другому владельцу действует сразу.
import logging
from enum import Enum

from errors import Forbidden, IntegrityFault, NotFound
from schemas import Product, Shop


logger = logging.getLogger(__name__)


class OwnershipResult(str, Enum):
    OWNED = 'owned'
    FORBIDDEN = 'forbidden'


class OwnershipResolver:
    def __init__(self, store):
        self.store = store

    async def resolve_shop_ownership(self, user_id: int, shop_id: int) -> OwnershipResult:
        shop = await self._get_shop(shop_id)
        return self._compare(user_id, shop)

    async def resolve_product_ownership(self, user_id: int, product_id: int) -> OwnershipResult:
        product = await self._get_product(product_id)
        # Сначала убеждаемся, что магазин товара существует, иначе это поломка данных, а не 404
        shop = await self._shop_of(product)
        return await self.resolve_shop_ownership(user_id, shop.id)

    async def require_shop_owner(self, user_id: int, shop_id: int, message: str = 'Not authorized to update this shop') -> Shop:
        """Возвращает магазин, если user_id им владеет, иначе бросает Forbidden/NotFound."""
        if await self.resolve_shop_ownership(user_id, shop_id) is not OwnershipResult.OWNED:
            logger.info('User %s denied access to shop %s', user_id, shop_id)
            raise Forbidden(message)
        return await self._get_shop(shop_id)

    async def require_product_owner(self, user_id: int, product_id: int, message: str = 'You can only modify products from your own shop') -> Product:
        """Возвращает товар, если user_id владеет его магазином."""
        if await self.resolve_product_ownership(user_id, product_id) is not OwnershipResult.OWNED:
            logger.info('User %s denied access to product %s', user_id, product_id)
            raise Forbidden(message)
        return await self._get_product(product_id)

    async def _get_shop(self, shop_id: int) -> Shop:
        shop = await self.store.get_shop(shop_id)
        if shop is None:
            raise NotFound('Shop not found')
        return shop

    async def _get_product(self, product_id: int) -> Product:
        product = await self.store.get_product(product_id)
        if product is None:
            raise NotFound('Product not found')
        return product

    async def _shop_of(self, product: Product) -> Shop:
        shop = await self.store.get_shop(product.shop_id)
        if shop is None:
            # Товар без магазина: это поломка данных, а не ошибка клиента
            logger.error('Product %s references missing shop %s', product.id, product.shop_id)
            raise IntegrityFault('Failed to get shop information')
        return shop

    @staticmethod
    def _compare(user_id: int, shop: Shop) -> OwnershipResult:
        return OwnershipResult.OWNED if shop.user_id == user_id else OwnershipResult.FORBIDDEN
