import pytest

from errors import Forbidden, IntegrityFault, NotFound
from ownership import OwnershipResolver, OwnershipResult
from schemas import ProductStatus
from storage import MemoryStore


async def make_world():
    store = MemoryStore()
    alice = await store.create_user({'username': 'alice', 'email': 'alice@example.com', 'password_hash': 'x'})
    bob = await store.create_user({'username': 'bob', 'email': 'bob@example.com', 'password_hash': 'x'})
    shop = await store.create_shop(alice.id, {'name': 'Alice Shop'})
    products = [
        await store.create_product({'name': f'Item {i}', 'price': i, 'status': ProductStatus.AVAILABLE,
                                    'shop_id': shop.id})
        for i in range(3)
    ]
    return store, alice, bob, shop, products


@pytest.mark.asyncio
async def test_shop_ownership():
    store, alice, bob, shop, _ = await make_world()
    resolver = OwnershipResolver(store)

    assert await resolver.resolve_shop_ownership(alice.id, shop.id) is OwnershipResult.OWNED
    assert await resolver.resolve_shop_ownership(bob.id, shop.id) is OwnershipResult.FORBIDDEN


@pytest.mark.asyncio
async def test_missing_shop_is_not_found():
    store, alice, *_ = await make_world()

    with pytest.raises(NotFound):
        await OwnershipResolver(store).resolve_shop_ownership(alice.id, 999)


@pytest.mark.asyncio
async def test_product_ownership_for_every_product_of_the_shop():
    store, alice, bob, _, products = await make_world()
    resolver = OwnershipResolver(store)

    for product in products:
        assert await resolver.resolve_product_ownership(alice.id, product.id) is OwnershipResult.OWNED
        assert await resolver.resolve_product_ownership(bob.id, product.id) is OwnershipResult.FORBIDDEN
        with pytest.raises(Forbidden):
            await resolver.require_product_owner(bob.id, product.id)


@pytest.mark.asyncio
async def test_missing_or_deleted_product_is_not_found():
    store, alice, _, _, products = await make_world()
    await store.soft_delete_product(products[0].id)
    resolver = OwnershipResolver(store)

    with pytest.raises(NotFound):
        await resolver.resolve_product_ownership(alice.id, 999)
    with pytest.raises(NotFound):
        await resolver.resolve_product_ownership(alice.id, products[0].id)


@pytest.mark.asyncio
async def test_product_without_shop_is_integrity_fault():
    store, alice, _, shop, products = await make_world()
    # Ломаем данные: магазин пропал, товар остался
    del store.shops[shop.id]

    with pytest.raises(IntegrityFault):
        await OwnershipResolver(store).resolve_product_ownership(alice.id, products[0].id)


@pytest.mark.asyncio
async def test_transfer_takes_effect_immediately():
    store, alice, bob, shop, products = await make_world()
    resolver = OwnershipResolver(store)
    assert await resolver.resolve_product_ownership(alice.id, products[0].id) is OwnershipResult.OWNED

    # Магазин переписали на bob: никакого кэша, результат меняется сразу
    store.shops[shop.id] = store.shops[shop.id].model_copy(update={'user_id': bob.id})

    assert await resolver.resolve_product_ownership(alice.id, products[0].id) is OwnershipResult.FORBIDDEN
    assert await resolver.resolve_product_ownership(bob.id, products[0].id) is OwnershipResult.OWNED


@pytest.mark.asyncio
async def test_require_owner_goes_through_resolvers(monkeypatch):
    """Запись разрешает тот же resolve_*, что проверяется выше, а не отдельная копия логики."""
    store, alice, _, shop, products = await make_world()
    resolver = OwnershipResolver(store)

    async def always_forbidden(user_id, shop_id):
        return OwnershipResult.FORBIDDEN

    monkeypatch.setattr(resolver, 'resolve_shop_ownership', always_forbidden)

    # alice владеет магазином, но решение за resolve_shop_ownership
    with pytest.raises(Forbidden):
        await resolver.require_shop_owner(alice.id, shop.id)
    with pytest.raises(Forbidden):
        await resolver.require_product_owner(alice.id, products[0].id)


@pytest.mark.asyncio
async def test_product_ownership_delegates_to_shop_of_the_product(monkeypatch):
    store, alice, _, shop, products = await make_world()
    resolver = OwnershipResolver(store)
    calls = []
    original = resolver.resolve_shop_ownership

    async def spy(user_id, shop_id):
        calls.append((user_id, shop_id))
        return await original(user_id, shop_id)

    monkeypatch.setattr(resolver, 'resolve_shop_ownership', spy)

    assert await resolver.resolve_product_ownership(alice.id, products[1].id) is OwnershipResult.OWNED
    assert calls == [(alice.id, shop.id)]

    # Пропавший магазин ловится раньше делегирования
    del store.shops[shop.id]
    with pytest.raises(IntegrityFault):
        await resolver.resolve_product_ownership(alice.id, products[1].id)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_require_owner_returns_the_resource():
    store, alice, _, shop, products = await make_world()
    resolver = OwnershipResolver(store)

    assert (await resolver.require_shop_owner(alice.id, shop.id)).id == shop.id
    assert (await resolver.require_product_owner(alice.id, products[2].id)).id == products[2].id
