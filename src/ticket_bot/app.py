from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request

from ticket_bot.database import AsyncSession, engine, get_session
from ticket_bot.dispatcher import handle_update
from ticket_bot.errors import DeliveryFailed
from ticket_bot.logger import logger
from ticket_bot.models import Base
from ticket_bot.schemas import (
    BotInfoResponse,
    SetWebhookRequest,
    TelegramUpdate,
    WebhookResponse,
)
from ticket_bot.settings import settings
from ticket_bot.store import TicketStore
from ticket_bot.telegram import TelegramClient, build_http_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with build_http_client() as http_client:
        app.state.http_client = http_client
        yield

    await engine.dispose()


app = FastAPI(lifespan=lifespan)


async def get_store(session: Annotated[AsyncSession, Depends(get_session)]):
    return TicketStore(session)


async def get_messenger(request: Request) -> TelegramClient:
    token = settings.TELEGRAM_BOT_TOKEN.get_secret_value()
    if not token:
        logger.error('TELEGRAM_BOT_TOKEN is not configured')
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail='TELEGRAM_BOT_TOKEN not configured',
        )

    return TelegramClient(
        token, request.app.state.http_client, api_url=settings.TELEGRAM_API_URL
    )


StoreDep = Annotated[TicketStore, Depends(get_store)]
MessengerDep = Annotated[TelegramClient, Depends(get_messenger)]


@app.post('/webhook', response_model=WebhookResponse)
async def receive_update(
    update: TelegramUpdate, store: StoreDep, messenger: MessengerDep
):
    try:
        reply = await handle_update(update, store, messenger)
    except DeliveryFailed as exc:
        logger.error(f'Reply for update {update.update_id} not delivered: {exc}')
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY, detail='Reply delivery failed'
        )

    return {'detail': 'skipped' if reply is None else 'processed'}


@app.get('/bot/info', response_model=BotInfoResponse)
async def get_bot_info(messenger: MessengerDep):
    try:
        bot = await messenger.get_me()
        webhook = await messenger.get_webhook_info()
    except DeliveryFailed as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_GATEWAY, detail=exc.detail)

    return {
        'bot': bot,
        'webhook_configured': bool(webhook.get('url')),
        'webhook': webhook,
    }


@app.post('/bot/webhook', response_model=WebhookResponse)
async def set_webhook(request_in: SetWebhookRequest, messenger: MessengerDep):
    try:
        await messenger.set_webhook(request_in.webhook_url)
    except DeliveryFailed as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_GATEWAY, detail=exc.detail)

    logger.info(f'Webhook set to {request_in.webhook_url}')

    return {'detail': 'Webhook configured successfully'}
