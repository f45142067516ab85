from typing import Any, Protocol

import httpx

from ticket_bot.errors import DeliveryFailed
from ticket_bot.logger import logger
from ticket_bot.settings import settings

MESSAGE_LIMIT = 4096


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS))


class Messenger(Protocol):
    async def send_message(self, chat_id: int, text: str) -> Any: ...


def _utf16_len(text: str) -> int:
    return len(text.encode('utf-16-le')) // 2


def _cut_line(line: str, limit: int) -> list[str]:
    if _utf16_len(line) <= limit:
        return [line]

    pieces = []
    piece: list[str] = []
    size = 0
    for char in line:
        char_size = _utf16_len(char)
        if size + char_size > limit:
            pieces.append(''.join(piece))
            piece, size = [], 0
        piece.append(char)
        size += char_size
    pieces.append(''.join(piece))

    return pieces


def split_message(text: str, limit: int = MESSAGE_LIMIT) -> list[str]:
    """Split ``text`` into chunks the Bot API accepts, breaking between lines.

    Length is counted in UTF-16 code units, as Telegram counts it. A line
    longer than ``limit`` on its own is cut wherever the limit falls.
    Whitespace-only chunks are dropped.
    """
    chunks = []
    lines: list[str] = []
    size = 0
    for line in text.split('\n'):
        for piece in _cut_line(line, limit):
            needed = _utf16_len(piece) + (1 if lines else 0)
            if lines and size + needed > limit:
                chunks.append('\n'.join(lines))
                lines, size = [], 0
                needed = _utf16_len(piece)
            lines.append(piece)
            size += needed
    chunks.append('\n'.join(lines))

    return [chunk for chunk in chunks if chunk.strip()]


class TelegramClient:
    """Minimal Telegram Bot API client."""

    def __init__(
        self,
        token: str,
        http_client: httpx.AsyncClient,
        api_url: str | None = None,
    ) -> None:
        if api_url is None:
            api_url = settings.TELEGRAM_API_URL
        self._base_url = f'{api_url.rstrip("/")}/bot{token}'
        self._http = http_client

    async def _call(
        self,
        method: str,
        payload: dict[str, Any] | None = None,
        chat_id: int | None = None,
    ) -> Any:
        try:
            if payload is None:
                response = await self._http.get(f'{self._base_url}/{method}')
            else:
                response = await self._http.post(
                    f'{self._base_url}/{method}', json=payload
                )
        except httpx.HTTPError as exc:
            raise DeliveryFailed(chat_id, f'{type(exc).__name__}: {exc}') from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_error or not body.get('ok'):
            detail = body.get('description') or response.text
            raise DeliveryFailed(chat_id, detail, status_code=response.status_code)

        return body.get('result')

    async def send_message(self, chat_id: int, text: str) -> dict[str, Any]:
        """Send ``text``, split over several messages when it is too long.

        Returns the result of the last message sent.
        """
        chunks = split_message(text) or [text]
        logger.debug(
            f'Sending {len(text)} chars to chat {chat_id} '
            f'in {len(chunks)} message(s)'
        )

        result = None
        for chunk in chunks:
            result = await self._call(
                'sendMessage', {'chat_id': chat_id, 'text': chunk}, chat_id=chat_id
            )

        return result

    async def get_me(self) -> dict[str, Any]:
        return await self._call('getMe')

    async def get_webhook_info(self) -> dict[str, Any]:
        return await self._call('getWebhookInfo')

    async def set_webhook(self, webhook_url: str) -> bool:
        return await self._call(
            'setWebhook',
            {
                'url': webhook_url,
                'allowed_updates': ['message'],
                'drop_pending_updates': True,
            },
        )
