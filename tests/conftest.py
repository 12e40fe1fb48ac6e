# conftest.py: глобальный файл конфигурации pytest.
# Любые фикстуры, объявленные здесь, доступны во всех тестах без импортов.
import os

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from starlette import status

# --- 1. Настройка тестового окружения ---
# Выставляем переменные ДО импорта приложения: config читает их при импорте.
os.environ['TESTING'] = 'True'
os.environ['STORAGE_BACKEND'] = 'memory'
os.environ.setdefault('BCRYPT_ROUNDS', '4')

from main import app
from database import get_store
from storage import MemoryStore
from websocket import manager


PASSWORD = 'strongpassword123'


# --- 2. Фикстуры ---

@pytest.fixture(scope='function')
def store():
    """Свежее хранилище в памяти на каждый тест. Подменяет зависимость get_store во всём приложении."""
    memory_store = MemoryStore()
    manager.active_connections = []
    app.dependency_overrides[get_store] = lambda: memory_store
    yield memory_store
    app.dependency_overrides = {}


@pytest.fixture(scope='function')
def client(store):
    """TestClient: "виртуальный Postman". with гарантирует запуск lifespan."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest_asyncio.fixture(scope='function')
async def ac(store):
    """Асинхронный клиент для async-тестов."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as async_client:
        yield async_client


def register_user(client: TestClient, username: str, email: str | None = None, role: str = 'buyer') -> dict:
    payload = {
        'username': username,
        'email': email or f'{username}@example.com',
        'password': PASSWORD,
        'firstName': username.capitalize(),
        'lastName': 'Tester',
        'role': role,
    }
    response = client.post('/api/register', json=payload)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()['user']


def login_headers(client: TestClient, email: str) -> dict:
    response = client.post('/api/login', json={'email': email, 'password': PASSWORD})
    assert response.status_code == status.HTTP_200_OK, response.text
    return {'Authorization': f"Bearer {response.json()['token']}"}


@pytest.fixture(scope='function')
def make_user(client):
    """Фабрика: регистрирует пользователя и возвращает (user, headers)."""
    def _make(username: str, role: str = 'buyer'):
        user = register_user(client, username, role=role)
        return user, login_headers(client, user['email'])
    return _make


@pytest.fixture(scope='function')
def auth_headers(make_user):
    """Покупатель test_user без магазина."""
    _, headers = make_user('test_user')
    return headers


@pytest.fixture(scope='function')
def seller(client, make_user):
    """Продавец с магазином: (user, headers, shop)."""
    user, headers = make_user('seller_one')
    response = client.post('/api/shops', json={'name': 'Seller One Shop', 'description': 'Gadgets'}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return user, headers, response.json()['shop']


@pytest.fixture(scope='function')
def other_seller(client, make_user):
    user, headers = make_user('seller_two')
    response = client.post('/api/shops', json={'name': 'Seller Two Shop'}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return user, headers, response.json()['shop']
