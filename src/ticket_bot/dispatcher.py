"""Routing of one inbound Telegram update to its command handler.

``handle_update`` holds no state between calls: everything it reads or
writes goes through the store and the messenger passed in.
"""

from dataclasses import dataclass

from ticket_bot import replies
from ticket_bot.broadcast import broadcast
from ticket_bot.commands import (
    Broadcast,
    Buy,
    Command,
    Help,
    ListEvents,
    MyTickets,
    Start,
    Unknown,
    classify,
)
from ticket_bot.errors import BotError, StoreUnavailable
from ticket_bot.logger import logger
from ticket_bot.registrar import register_sender
from ticket_bot.schemas import TelegramMessage, TelegramUpdate
from ticket_bot.settings import settings
from ticket_bot.store import TicketStore
from ticket_bot.telegram import Messenger
from ticket_bot.tickets import purchase_ticket


@dataclass(frozen=True)
class Context:
    message: TelegramMessage
    store: TicketStore
    messenger: Messenger
    broadcast_concurrency: int


async def _start(command: Start, ctx: Context) -> str:
    return replies.welcome(ctx.message.from_user.first_name)


async def _help(command: Help, ctx: Context) -> str:
    return replies.HELP_TEXT


async def _list_events(command: ListEvents, ctx: Context) -> str:
    try:
        events = await ctx.store.list_available_events()
    except StoreUnavailable as exc:
        return exc.message

    return replies.event_catalog(events)


async def _buy(command: Buy, ctx: Context) -> str:
    try:
        purchase = await purchase_ticket(
            ctx.store, command.event_id, ctx.message.from_user.id
        )
    except StoreUnavailable:
        return replies.PURCHASE_FAILED
    except BotError as exc:
        logger.info(f'Purchase of {command.event_id!r} refused: {exc}')
        return exc.message

    return replies.purchase_confirmation(purchase.ticket, purchase.event)


async def _my_tickets(command: MyTickets, ctx: Context) -> str:
    try:
        user = await ctx.store.get_user_by_platform_id(ctx.message.from_user.id)
        if user is None:
            return replies.NO_TICKETS
        tickets = await ctx.store.list_tickets_for_user(user.id)
    except StoreUnavailable as exc:
        return exc.message

    return replies.ticket_ledger(tickets)


async def _broadcast(command: Broadcast, ctx: Context) -> str:
    if not command.text.strip():
        return replies.BROADCAST_USAGE

    try:
        recipients = await ctx.store.list_distinct_chat_ids()
    except StoreUnavailable as exc:
        return exc.message

    if not recipients:
        return replies.NO_BROADCAST_RECIPIENTS

    logger.info(f'Broadcasting to {len(recipients)} chats')
    report = await broadcast(
        command.text,
        recipients,
        ctx.messenger,
        concurrency=ctx.broadcast_concurrency,
    )

    if report.unreachable:
        try:
            await ctx.store.deactivate_chats(report.unreachable)
        except StoreUnavailable as exc:
            logger.warning(f'Could not deactivate chats: {exc.detail}')

    return replies.broadcast_summary(report)


async def _unknown(command: Unknown, ctx: Context) -> str:
    return replies.unknown_command(command.text)


HANDLERS = {
    Start: _start,
    Help: _help,
    ListEvents: _list_events,
    Buy: _buy,
    MyTickets: _my_tickets,
    Broadcast: _broadcast,
    Unknown: _unknown,
}


async def route(command: Command, ctx: Context) -> str:
    logger.info(
        f'Processing {type(command).__name__} '
        f'from user {ctx.message.from_user.id}'
    )
    return await HANDLERS[type(command)](command, ctx)


async def _claim(store: TicketStore, update_id: int) -> bool:
    try:
        return await store.claim_update(update_id)
    except StoreUnavailable as exc:
        logger.warning(f'Could not claim update {update_id}: {exc.detail}')
        return True


async def _resend(
    update: TelegramUpdate, store: TicketStore, messenger: Messenger
) -> str | None:
    try:
        reply = await store.get_update_reply(update.update_id)
    except StoreUnavailable as exc:
        logger.warning(
            f'Could not load reply for update {update.update_id}: {exc.detail}'
        )
        reply = None

    if reply is None:
        logger.info(f'Update {update.update_id} already claimed, skipping')
        return None

    logger.info(f'Resending reply for redelivered update {update.update_id}')
    await messenger.send_message(update.message.chat.id, reply)

    return reply


async def handle_update(
    update: TelegramUpdate,
    store: TicketStore,
    messenger: Messenger,
    broadcast_concurrency: int | None = None,
) -> str | None:
    """Process one update and reply to its chat.

    Returns the reply text, or ``None`` when the update carries no text or
    was claimed by an earlier delivery that left no reply. A redelivered
    update is not processed again: its stored reply is sent instead.
    ``DeliveryFailed`` on the reply itself is propagated.
    """
    message = update.message
    if message is None or not message.text:
        logger.debug(f'Skipping update {update.update_id} without text')
        return None

    if not await _claim(store, update.update_id):
        return await _resend(update, store, messenger)

    await register_sender(store, message)

    if broadcast_concurrency is None:
        broadcast_concurrency = settings.BROADCAST_CONCURRENCY
    ctx = Context(
        message=message,
        store=store,
        messenger=messenger,
        broadcast_concurrency=broadcast_concurrency,
    )
    reply = await route(classify(message.text), ctx)

    try:
        await store.save_reply(update.update_id, reply)
    except StoreUnavailable as exc:
        logger.warning(
            f'Could not save reply for update {update.update_id}: {exc.detail}'
        )

    await messenger.send_message(message.chat.id, reply)

    return reply
