import asyncio

import pytest
from httpx import AsyncClient
from starlette import status

from conftest import PASSWORD


async def register_and_login(ac: AsyncClient, username: str) -> dict:
    await ac.post('/api/register', json={'username': username, 'email': f'{username}@example.com',
                                         'password': PASSWORD, 'firstName': 'A', 'lastName': 'B'})
    response = await ac.post('/api/login', json={'email': f'{username}@example.com', 'password': PASSWORD})
    return {'Authorization': f"Bearer {response.json()['token']}"}


# Этот декоратор обязателен для асинхронных тестов в pytest
@pytest.mark.asyncio
async def test_get_products_async(ac: AsyncClient):
    """
    Асинхронный тест получения продуктов.
    Использует ac: асинхронный клиент из conftest.py
    """
    # ВАЖНО: Здесь обязательно писать 'await'
    response = await ac.get('/api/products')

    assert response.status_code == status.HTTP_200_OK

    # ВАЖНО: методы ответа (.json()) в httpx синхронные, await не нужен
    assert response.json()['products'] == []


@pytest.mark.asyncio
async def test_concurrent_shop_creation_yields_one_shop(ac: AsyncClient, store):
    """Два параллельных запроса одного пользователя: один магазин, второй получает 409."""
    headers = await register_and_login(ac, 'racer')

    responses = await asyncio.gather(
        ac.post('/api/shops', json={'name': 'First'}, headers=headers),
        ac.post('/api/shops', json={'name': 'Second'}, headers=headers),
    )

    codes = sorted(r.status_code for r in responses)
    assert codes == [status.HTTP_201_CREATED, status.HTTP_409_CONFLICT]
    assert len(store.shops) == 1


@pytest.mark.asyncio
async def test_concurrent_reads_see_consistent_pages(ac: AsyncClient):
    headers = await register_and_login(ac, 'bulk_seller')
    await ac.post('/api/shops', json={'name': 'Bulk'}, headers=headers)
    for i in range(5):
        await ac.post('/api/products', json={'name': f'Item {i}', 'price': i}, headers=headers)

    responses = await asyncio.gather(*[
        ac.get('/api/products', params={'sort': 'priceHigh', 'limit': 2}) for _ in range(5)
    ])

    pages = [r.json() for r in responses]
    assert all(p == pages[0] for p in pages)
    assert [p['price'] for p in pages[0]['products']] == [4, 3]
