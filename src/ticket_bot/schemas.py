from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    id: int
    first_name: str
    last_name: str | None = None
    username: str | None = None


class TelegramChat(BaseModel):
    id: int
    type: str | None = None


class TelegramMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: int
    from_user: TelegramUser = Field(alias='from')
    chat: TelegramChat
    text: str | None = None
    date: int


class TelegramUpdate(BaseModel):
    update_id: int
    message: TelegramMessage | None = None


class WebhookResponse(BaseModel):
    ok: bool = True
    detail: str


class SetWebhookRequest(BaseModel):
    webhook_url: str


class BotInfoResponse(BaseModel):
    bot: dict[str, Any]
    webhook_configured: bool
    webhook: dict[str, Any]
