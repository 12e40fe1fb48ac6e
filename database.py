# Управление соединением с базой данных и выдача хранилища эндпоинтам.
import asyncio
import logging

import asyncpg
from starlette.requests import HTTPConnection

import config
from storage import MemoryStore, PostgresStore


logger = logging.getLogger(__name__)


# Схема совпадает с models.py / alembic. UNIQUE(user_id) у shops гарантирует
# "не больше одного магазина на пользователя" даже при параллельных запросах.
SCHEMA_SQL = '''
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        username VARCHAR(100) NOT NULL UNIQUE,
        email VARCHAR(100) NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role VARCHAR(10) NOT NULL DEFAULT 'buyer',
        first_name VARCHAR(100) NOT NULL DEFAULT '',
        last_name VARCHAR(100) NOT NULL DEFAULT '',
        phone VARCHAR(20) NOT NULL DEFAULT '',
        address VARCHAR(255) NOT NULL DEFAULT '',
        avatar TEXT NOT NULL DEFAULT '',
        shop_id INTEGER,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );

    CREATE TABLE IF NOT EXISTS shops (
        id SERIAL PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        description VARCHAR(500) NOT NULL DEFAULT '',
        logo VARCHAR(255) NOT NULL DEFAULT '',
        address VARCHAR(255) NOT NULL DEFAULT '',
        user_id INTEGER NOT NULL UNIQUE REFERENCES users(id),
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        deleted_at TIMESTAMPTZ
    );

    CREATE TABLE IF NOT EXISTS products (
        id SERIAL PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        description VARCHAR(500) NOT NULL DEFAULT '',
        price DOUBLE PRECISION NOT NULL CHECK (price >= 0),
        stock INTEGER NOT NULL DEFAULT 0 CHECK (stock >= 0),
        image VARCHAR(255) NOT NULL DEFAULT '',
        category VARCHAR(50) NOT NULL DEFAULT '',
        status VARCHAR(20) NOT NULL DEFAULT 'available',
        shop_id INTEGER NOT NULL REFERENCES shops(id),
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        deleted_at TIMESTAMPTZ
    );

    CREATE INDEX IF NOT EXISTS ix_products_shop_id ON products (shop_id);
    CREATE INDEX IF NOT EXISTS ix_products_category ON products (category);
    CREATE INDEX IF NOT EXISTS ix_products_deleted_at ON products (deleted_at);
'''


# Вызывается один раз при старте приложения
async def connect_to_db(app):
    """Создаёт пул соединений (с повторными попытками) и таблицы, кладёт пул в app.state."""
    for attempt in range(1, config.DB_CONNECT_RETRIES + 1):
        try:
            logger.info('Connecting to database, attempt %s/%s', attempt, config.DB_CONNECT_RETRIES)
            app.state.pool = await asyncpg.create_pool(
                dsn=config.DATABASE_URL,
                min_size=config.DB_POOL_MIN_SIZE,
                max_size=config.DB_POOL_MAX_SIZE,
            )
            logger.info('Database connection pool created')
            await create_tables(app.state.pool)
            return
        except (OSError, asyncpg.PostgresError) as e:
            logger.warning('Connection failed: %s', e)
            if attempt < config.DB_CONNECT_RETRIES:
                # asyncio.sleep не блокирует сервер, а только ставит задачу на паузу
                await asyncio.sleep(config.DB_CONNECT_WAIT_SECONDS)
            else:
                logger.error('Could not connect to DB after %s attempts', config.DB_CONNECT_RETRIES)
                raise


async def create_tables(pool):
    """Создаёт таблицы, если их ещё нет."""
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA_SQL)
    logger.info('Tables are ready')


# Вызывается один раз при остановке приложения
async def close_db_connection(app):
    logger.info('Closing database connection pool...')
    await app.state.pool.close()
    logger.info('Database connection pool closed')


async def open_store(app):
    """Выбирает хранилище по STORAGE_BACKEND и кладёт его в app.state.store."""
    app.state.pool = None
    if config.STORAGE_BACKEND == 'memory':
        logger.info('Using in-memory storage')
        app.state.store = MemoryStore()
    else:
        await connect_to_db(app)
        app.state.store = PostgresStore(app.state.pool)
    return app.state.store


async def close_store(app):
    if getattr(app.state, 'pool', None) is not None:
        await close_db_connection(app)


# Зависимость (Dependency): любой эндпоинт, HTTP или WebSocket, получает через неё хранилище.
# HTTPConnection: общий предок Request и WebSocket.
def get_store(connection: HTTPConnection):
    return connection.app.state.store
