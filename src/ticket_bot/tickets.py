import secrets
import string
from dataclasses import dataclass

from ticket_bot.errors import EventNotFound, SoldOut, UserNotRegistered
from ticket_bot.logger import logger
from ticket_bot.models import Event, Ticket
from ticket_bot.store import TicketStore

TICKET_CODE_ALPHABET = string.digits + string.ascii_uppercase
TICKET_CODE_LENGTH = 13


def generate_ticket_code(length: int = TICKET_CODE_LENGTH) -> str:
    """Return a random base-36 code, about 67 bits at the default length."""
    return ''.join(secrets.choice(TICKET_CODE_ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class Purchase:
    ticket: Ticket
    event: Event


async def purchase_ticket(
    store: TicketStore,
    event_id: str,
    telegram_user_id: int,
    code_factory=generate_ticket_code,
) -> Purchase:
    """Issue one ticket for ``event_id`` to the Telegram user.

    Raises:
        EventNotFound: If the event does not exist.
        SoldOut: If no tickets are left, including when a concurrent
            purchase took the last one.
        UserNotRegistered: If the user has never been registered.
        StoreUnavailable: If the database fails; nothing is written.
    """
    event = await store.get_event(event_id)
    if event is None:
        raise EventNotFound(event_id)

    if event.available_tickets <= 0:
        raise SoldOut(event_id)

    user = await store.get_user_by_platform_id(telegram_user_id)
    if user is None:
        raise UserNotRegistered(telegram_user_id)

    ticket = await store.issue_ticket(event.id, user.id, code_factory)

    logger.info(
        f'Issued ticket {ticket.ticket_code} for event {event.id} '
        f'to user {telegram_user_id}'
    )

    return Purchase(ticket=ticket, event=event)
