from fastapi.testclient import TestClient
from fastapi import status

from conftest import PASSWORD, register_user
from tokens import issue_token


# --- Тесты для эндпоинта /api/register ---
def test_register_user_success(client: TestClient):
    # Шаг 1: Готовим данные нового пользователя
    user_data = {
        "username": "new_test_user",
        "email": "new@example.com",
        "password": PASSWORD,
        "firstName": "New",
        "lastName": "User",
    }

    # Шаг 2: Отправляем POST-запрос на /api/register
    response = client.post('/api/register', json=user_data)

    # Шаг 3: Проверяем результат
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data['message'] == 'User registered successfully'
    assert data['user']['username'] == 'new_test_user'
    assert data['user']['role'] == 'buyer'
    assert data['user']['firstName'] == 'New'
    # Хэш пароля наружу не уходит ни под каким именем
    assert 'password' not in data['user']
    assert 'passwordHash' not in data['user']
    assert 'password_hash' not in data['user']


def test_register_as_seller(client: TestClient):
    user = register_user(client, 'future_seller', role='seller')
    assert user['role'] == 'seller'
    assert user['shopId'] is None


def test_register_admin_role_is_rejected(client: TestClient):
    response = client.post('/api/register', json={
        "username": "sneaky", "email": "sneaky@example.com", "password": PASSWORD,
        "firstName": "S", "lastName": "N", "role": "admin",
    })
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert 'error' in response.json()


def test_register_user_already_exists(client: TestClient):
    # Шаг 1: Регистрируем пользователя в первый раз (ожидаем успеха)
    register_user(client, 'existing_user')

    # Шаг 2: Тот же username, другой email
    response = client.post('/api/register', json={
        "username": "existing_user", "email": "another@example.com", "password": PASSWORD,
        "firstName": "E", "lastName": "U",
    })
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json() == {'error': 'Username already exists'}

    # Шаг 3: Тот же email, другой username
    response = client.post('/api/register', json={
        "username": "someone_else", "email": "existing_user@example.com", "password": PASSWORD,
        "firstName": "E", "lastName": "U",
    })
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json() == {'error': 'Email already exists'}


def test_register_missing_fields(client: TestClient):
    response = client.post('/api/register', json={"username": "half", "password": PASSWORD})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    data = response.json()
    assert data['error'].startswith('Missing required fields:')
    # Список полей структурирован
    field_names = {f['field'] for f in data['fields']}
    assert {'email', 'firstName', 'lastName'} <= field_names


def test_register_invalid_email_and_short_password(client: TestClient):
    response = client.post('/api/register', json={
        "username": "bad", "email": "no-at-sign", "password": "123",
        "firstName": "B", "lastName": "D",
    })
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    field_names = {f['field'] for f in response.json()['fields']}
    assert field_names == {'email', 'password'}


# --- Тесты для эндпоинта /api/login ---
def test_login_success(client: TestClient):
    """
    Тест успешного входа в систему.
    1. Сначала регистрируем пользователя.
    2. Потом логинимся по email и паролю (JSON, а не form data).
    """
    user = register_user(client, 'login_user')

    response = client.post('/api/login', json={"email": "  login_user@example.com ", "password": PASSWORD})

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data['message'] == 'Login successful'
    assert data['user']['id'] == user['id']
    # Формат токена: <id>_<username>_<unix-время>
    assert data['token'].startswith(f"{user['id']}_login_user_")


def test_login_user_not_found(client: TestClient):
    response = client.post('/api/login', json={"email": "ghost@example.com", "password": "any_password"})

    # 401 не говорит, что именно неверно (логин или пароль)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {'error': 'Invalid email or password'}
    assert response.headers['WWW-Authenticate'] == 'Bearer'


def test_login_wrong_password(client: TestClient):
    register_user(client, 'wrong_pass_user')

    response = client.post('/api/login', json={"email": "wrong_pass_user@example.com",
                                                "password": "this_is_wrong_password"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert 'token' not in response.json()


def test_login_blank_fields(client: TestClient):
    response = client.post('/api/login', json={"email": "   ", "password": ""})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()['error'] == 'Email and password are required'


# --- Разрешение сессии на защищённом эндпоинте ---
def test_protected_without_header(client: TestClient):
    response = client.get('/api/users/1')
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {'error': 'Authorization header is required'}


def test_protected_with_wrong_scheme(client: TestClient, auth_headers: dict):
    token = auth_headers['Authorization'].split(' ')[1]
    for header in [f'Token {token}', token, f'Bearer  {token}', 'Bearer']:
        response = client.get('/api/users/1', headers={'Authorization': header})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED, header
        assert response.json() == {'error': 'Authorization header format must be Bearer <token>'}


def test_protected_with_malformed_token(client: TestClient):
    response = client.get('/api/users/1', headers={'Authorization': 'Bearer not-a-token'})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {'error': 'Invalid token format'}


def test_protected_with_unknown_user(client: TestClient):
    # Формат верный, но такого пользователя нет
    token = issue_token(999, 'ghost_user')
    response = client.get('/api/users/1', headers={'Authorization': f'Bearer {token}'})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {'error': 'Invalid token'}


def test_token_is_not_signed(client: TestClient):
    """Сессия принимает любой токен с существующим id: подпись не проверяется."""
    user = register_user(client, 'trusting_user')
    forged = issue_token(user['id'], 'whatever_name')

    response = client.get(f"/api/users/{user['id']}", headers={'Authorization': f'Bearer {forged}'})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()['user']['username'] == 'trusting_user'


def test_register_username_with_whitespace_is_rejected(client: TestClient):
    """Имя с пробелом дало бы токен, который не пройдёт проверку заголовка "Bearer <token>"."""
    for username in ['john doe', ' john', 'john\tdoe']:
        response = client.post('/api/register', json={
            "username": username, "email": "john@example.com", "password": PASSWORD,
            "firstName": "John", "lastName": "Doe",
        })
        assert response.status_code == status.HTTP_400_BAD_REQUEST, username
        assert response.json()['fields'][0]['field'] == 'username'


def test_registered_user_reaches_protected_endpoint(client: TestClient):
    # Весь путь: регистрация, вход, токен в заголовке, защищённый эндпоинт
    register_user(client, 'john.doe')
    login = client.post('/api/login', json={"email": "john.doe@example.com", "password": PASSWORD})
    headers = {'Authorization': f"Bearer {login.json()['token']}"}

    response = client.post('/api/shops', json={"name": "John's"}, headers=headers)

    assert response.status_code == status.HTTP_201_CREATED
