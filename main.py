import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


# --- 1. Импортируем наши модули ---
# ВАЖНО: config должен импортироваться до модулей, которые его используют.
# Он сам загрузит нужный .env или .env.test файл.
import config
from database import open_store, close_store
from errors import MarketplaceError, Unauthenticated
from auth import router as auth_router
from routers.products import router as products_router
from routers.shops import router as shops_router
from routers.users import router as users_router
from websocket import router as websocket_router
from graphql_app.schema import graphql_router


logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)


# --- 2. Управление жизненным циклом приложения ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Открывает хранилище при старте и закрывает пул соединений при остановке."""
    logger.info('Lifespan starting (storage backend: %s)', config.STORAGE_BACKEND)
    await open_store(app)

    yield # Приложение "живёт" и обрабатывает запросы

    logger.info('Lifespan shutting down')
    await close_store(app)


# --- 3. Создаём и настраиваем приложение ---
app = FastAPI(
    title='Marketplace API',
    description='Каталог товаров и магазины продавцов с проверкой владения User -> Shop -> Product.',
    version='1.0.0',
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
    allow_headers=['*'],
)


# --- 4. Ошибки -> HTTP ---
# Единственное место, где таксономия ошибок превращается в статус и JSON {"error": ...}
@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
    body = {'error': exc.message}
    if getattr(exc, 'fields', None):
        body['fields'] = exc.fields
    headers = {'WWW-Authenticate': 'Bearer'} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Ошибки валидации тела/параметров: 400 и структурированный список полей."""
    fields = []
    missing = []
    for error in exc.errors():
        field = str(error['loc'][-1]) if error.get('loc') else ''
        fields.append({'field': field, 'message': error.get('msg', 'Invalid value')})
        # Отсутствующее поле и пустая строка в обязательном поле: одно и то же
        if error.get('type') == 'missing' or (
                error.get('type') == 'string_too_short' and error.get('ctx', {}).get('min_length') == 1):
            missing.append(field)

    if missing:
        message = 'Missing required fields: ' + ', '.join(missing)
    else:
        first = fields[0] if fields else {'field': '', 'message': 'Invalid input'}
        message = f"{first['field']}: {first['message']}" if first['field'] else first['message']

    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={'error': message, 'fields': fields})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # 404 на несуществующий путь, 405 и т.п. отдаём в том же конверте {"error": ...}
    return JSONResponse(status_code=exc.status_code, content={'error': str(exc.detail)},
                        headers=getattr(exc, 'headers', None))


# --- 5. Подключаем роутеры ---
app.include_router(auth_router)
app.include_router(products_router)
app.include_router(shops_router)
app.include_router(users_router)
app.include_router(websocket_router)
app.include_router(graphql_router, prefix='/graphql')


# --- 6. Служебные эндпоинты ---
@app.get('/', tags=['Root'])
def read_root():
    """Простой эндпоинт для проверки статуса API."""
    return {'status': 'API is running'}


@app.get('/api/health', tags=['Root'])
def health():
    return {'status': 'ok'}
