from ticket_bot.errors import StoreUnavailable
from ticket_bot.logger import logger
from ticket_bot.schemas import TelegramMessage
from ticket_bot.store import TicketStore


async def register_sender(store: TicketStore, message: TelegramMessage) -> None:
    """Record the sender's profile and chat; failures never block the command."""
    sender = message.from_user

    try:
        await store.upsert_user(
            telegram_user_id=sender.id,
            first_name=sender.first_name,
            last_name=sender.last_name,
            username=sender.username,
        )
    except StoreUnavailable as exc:
        logger.warning(f'Could not register user {sender.id}: {exc.detail}')
    else:
        logger.debug(f'Registered user {sender.id}')

    try:
        await store.record_chat(message.chat.id, message.chat.type)
    except StoreUnavailable as exc:
        logger.warning(f'Could not record chat {message.chat.id}: {exc.detail}')
