# Лента изменений каталога по WebSocket.
# Клиент подключается к /ws/catalog?token=<сессионный токен> и получает JSON-события
# о создании, изменении и удалении товаров.
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from auth import resolve_token
from database import get_store
from errors import Unauthenticated
from schemas import Product


logger = logging.getLogger(__name__)

router = APIRouter(
    tags=['WebSockets']
)


# ConnectionManager управляет подключениями и рассылает сообщения
class ConnectionManager:
    def __init__(self):
        self.active_connections: list[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        # Принимаем входящее соединение ("рукопожатие") и запоминаем его
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast(self, message: dict):
        """Отправляет сообщение всем. Отвалившиеся соединения выкидываем из списка."""
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except (WebSocketDisconnect, RuntimeError) as exc:
                logger.info('Dropping dead websocket connection: %s', exc)
                self.disconnect(connection)

    async def publish(self, event: str, product: Product):
        await self.broadcast({'event': event, 'product': product.model_dump(mode='json', by_alias=True)})


manager = ConnectionManager()


@router.websocket('/ws/catalog')
async def catalog_feed(
    websocket: WebSocket,
    token: str = Query(...),
    store=Depends(get_store),
):
    """Подписка на изменения каталога. Токен тот же, что выдаёт /api/login."""
    try:
        user = await resolve_token(token, store)
    except Unauthenticated as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.message)
        return

    await manager.connect(websocket)
    logger.info('User %s subscribed to catalog feed', user.username)
    # Приветствие приходит уже после регистрации в manager: дальше клиент получит все события
    await websocket.send_json({'event': 'subscribed', 'user': user.username})
    try:
        # Сообщений от клиента не ждём, просто держим соединение, пока его не закроют
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)
        logger.info('User %s unsubscribed from catalog feed', user.username)
