import os
import sys
from dotenv import load_dotenv


# --- "Умная" загрузка конфигурации ---
# Под pytest берём .env.test, в обычном режиме (uvicorn): .env
if "pytest" in sys.modules:
    load_dotenv(".env.test")
else:
    load_dotenv()


# --- Режим работы ---
TESTING = os.getenv('TESTING') == 'True'

# Хранилище: 'postgres' (asyncpg) или 'memory' (всё в памяти процесса, для тестов и демо)
STORAGE_BACKEND = os.getenv('STORAGE_BACKEND', 'memory' if TESTING else 'postgres')

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

# --- Настройки подключения к БД ---
DB_HOST = os.getenv('DB_HOST', 'localhost')
DB_PORT = os.getenv('DB_PORT', '5432')
DB_NAME = os.getenv('DB_NAME', 'marketplace')
DB_USER = os.getenv('DB_USER', 'postgres')
DB_PASSWORD = os.getenv('DB_PASSWORD', 'postgres')

DB_POOL_MIN_SIZE = int(os.getenv('DB_POOL_MIN_SIZE', '1'))
DB_POOL_MAX_SIZE = int(os.getenv('DB_POOL_MAX_SIZE', '20'))

# Сколько раз пытаемся подключиться к БД при старте и сколько ждём между попытками
DB_CONNECT_RETRIES = int(os.getenv('DB_CONNECT_RETRIES', '5'))
DB_CONNECT_WAIT_SECONDS = float(os.getenv('DB_CONNECT_WAIT_SECONDS', '5'))

# Верхняя граница типа INTEGER в Postgres: id и параметры страницы больше неё в БД не передаём
DB_INT_MAX = 2**31 - 1

# --- Сборка URL для asyncpg ---
DATABASE_URL = os.getenv(
    'DATABASE_URL',
    f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# --- Пароли и сессии ---
# Стоимость bcrypt. В .env.test понижаем, чтобы тесты не тормозили.
BCRYPT_ROUNDS = int(os.getenv('BCRYPT_ROUNDS', '12'))

# Разделитель полей в сессионном токене: "<userId>_<username>_<timestamp>"
TOKEN_DELIMITER = '_'

# --- Каталог ---
CATALOG_DEFAULT_PAGE = 1
CATALOG_DEFAULT_LIMIT = int(os.getenv('CATALOG_DEFAULT_LIMIT', '18'))

# --- CORS ---
# Список через запятую. По умолчанию разрешены все источники.
CORS_ORIGINS = [origin.strip() for origin in os.getenv('CORS_ORIGINS', '*').split(',') if origin.strip()]
