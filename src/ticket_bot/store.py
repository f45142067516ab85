"""Queries against the ticketing database.

Every public method runs in its own transaction and translates driver or
connection failures into ``StoreUnavailable``. The database is the only
synchronization point between concurrent webhook invocations.
"""

import functools
from collections.abc import Callable, Iterable

from sqlalchemy import and_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from ticket_bot.errors import SoldOut, StoreUnavailable
from ticket_bot.logger import logger
from ticket_bot.models import (
    Chat,
    Event,
    ProcessedUpdate,
    TelegramUser,
    Ticket,
    TicketStatus,
    utcnow,
)

MAX_CODE_ATTEMPTS = 5

_DIALECT_INSERTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


def _translate_errors(method):
    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except (SQLAlchemyError, OSError) as exc:
            logger.error(f'Store call {method.__name__} failed: {exc!r}')
            raise StoreUnavailable(str(exc)) from exc

    return wrapper


class TicketStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _upsert(self, model):
        dialect = self._session.get_bind().dialect.name
        return _DIALECT_INSERTS[dialect](model)

    @_translate_errors
    async def get_event(self, event_id: str) -> Event | None:
        async with self._session.begin():
            return await self._session.scalar(
                select(Event)
                .where(Event.id == event_id)
                .execution_options(populate_existing=True)
            )

    @_translate_errors
    async def list_available_events(self) -> list[Event]:
        """Return events with tickets left, soonest first."""
        async with self._session.begin():
            events = await self._session.scalars(
                select(Event)
                .where(Event.available_tickets > 0)
                .order_by(Event.date.asc())
                .execution_options(populate_existing=True)
            )
            return list(events.all())

    @_translate_errors
    async def upsert_user(
        self,
        telegram_user_id: int,
        first_name: str | None,
        last_name: str | None = None,
        username: str | None = None,
    ) -> None:
        """Insert the user or overwrite the profile of the existing row."""
        profile = {
            'first_name': first_name,
            'last_name': last_name,
            'username': username,
        }
        stmt = self._upsert(TelegramUser).values(
            telegram_user_id=telegram_user_id, **profile
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['telegram_user_id'],
            set_={**profile, 'updated_at': utcnow()},
        )

        async with self._session.begin():
            await self._session.execute(stmt)

    @_translate_errors
    async def get_user_by_platform_id(
        self, telegram_user_id: int
    ) -> TelegramUser | None:
        async with self._session.begin():
            return await self._session.scalar(
                select(TelegramUser)
                .where(TelegramUser.telegram_user_id == telegram_user_id)
                .execution_options(populate_existing=True)
            )

    @_translate_errors
    async def list_tickets_for_user(self, user_id: str) -> list[Ticket]:
        """Return the user's tickets with their event loaded, newest first."""
        async with self._session.begin():
            tickets = await self._session.scalars(
                select(Ticket)
                .join(Ticket.event)
                .options(contains_eager(Ticket.event))
                .where(Ticket.user_id == user_id)
                .order_by(Ticket.purchase_date.desc())
                .execution_options(populate_existing=True)
            )
            return list(tickets.all())

    @_translate_errors
    async def issue_ticket(
        self,
        event_id: str,
        user_id: str,
        code_factory: Callable[[], str],
        max_attempts: int = MAX_CODE_ATTEMPTS,
    ) -> Ticket:
        """Take one unit of inventory and create the ticket for it.

        Both writes commit together or not at all. The decrement only
        applies while ``available_tickets >= 1``; losing that race raises
        ``SoldOut``. A ticket code collision rolls back to a savepoint and
        retries with a fresh code.

        A refusal rolls the transaction back, which expires every instance
        loaded in the session. Callers must not read ORM attributes they held
        before the call once it has raised.
        """
        async with self._session.begin():
            decremented = await self._session.execute(
                update(Event)
                .where(
                    and_(
                        Event.id == event_id,
                        Event.available_tickets >= 1,
                    )
                )
                .values(
                    available_tickets=Event.available_tickets - 1,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )

            if decremented.rowcount == 0:
                raise SoldOut(event_id)

            for attempt in range(1, max_attempts + 1):
                ticket = Ticket(
                    user_id=user_id,
                    event_id=event_id,
                    ticket_code=code_factory(),
                    status=TicketStatus.ACTIVE.value,
                )
                try:
                    async with self._session.begin_nested():
                        self._session.add(ticket)
                except IntegrityError:
                    logger.warning(
                        f'Ticket code collision on attempt {attempt} '
                        f'for event {event_id}'
                    )
                    continue

                return ticket

            raise StoreUnavailable(
                f'no unique ticket code after {max_attempts} attempts'
            )

    @_translate_errors
    async def record_chat(self, chat_id: int, chat_type: str | None) -> None:
        """Add the chat to the registry, or mark it seen and active again."""
        seen_at = utcnow()
        stmt = self._upsert(Chat).values(
            chat_id=chat_id,
            chat_type=chat_type,
            is_active=True,
            first_seen_at=seen_at,
            last_seen_at=seen_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['chat_id'],
            set_={
                'chat_type': chat_type,
                'is_active': True,
                'last_seen_at': seen_at,
            },
        )

        async with self._session.begin():
            await self._session.execute(stmt)

    @_translate_errors
    async def list_distinct_chat_ids(self) -> list[int]:
        async with self._session.begin():
            chat_ids = await self._session.scalars(
                select(Chat.chat_id)
                .where(Chat.is_active.is_(True))
                .order_by(Chat.chat_id)
            )
            return list(chat_ids.all())

    @_translate_errors
    async def deactivate_chats(self, chat_ids: Iterable[int]) -> None:
        chat_ids = list(chat_ids)
        if not chat_ids:
            return

        async with self._session.begin():
            await self._session.execute(
                update(Chat)
                .where(Chat.chat_id.in_(chat_ids))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )

    @_translate_errors
    async def claim_update(self, update_id: int) -> bool:
        """Record the update as received. False if it was claimed before."""
        stmt = (
            self._upsert(ProcessedUpdate)
            .values(update_id=update_id, received_at=utcnow())
            .on_conflict_do_nothing(index_elements=['update_id'])
            .returning(ProcessedUpdate.update_id)
        )

        async with self._session.begin():
            claimed = await self._session.scalar(stmt)

        return claimed is not None

    @_translate_errors
    async def get_update_reply(self, update_id: int) -> str | None:
        async with self._session.begin():
            return await self._session.scalar(
                select(ProcessedUpdate.reply).where(
                    ProcessedUpdate.update_id == update_id
                )
            )

    @_translate_errors
    async def save_reply(self, update_id: int, reply: str) -> None:
        async with self._session.begin():
            await self._session.execute(
                update(ProcessedUpdate)
                .where(ProcessedUpdate.update_id == update_id)
                .values(reply=reply)
                .execution_options(synchronize_session=False)
            )
