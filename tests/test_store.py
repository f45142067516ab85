from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_bot.errors import SoldOut, StoreUnavailable
from ticket_bot.models import Chat, TelegramUser, Ticket
from ticket_bot.store import TicketStore

pytestmark = pytest.mark.anyio


async def count_rows(session: AsyncSession, model) -> int:
    async with session.begin():
        return await session.scalar(select(func.count()).select_from(model))


async def test_upsert_user_creates_then_overwrites(
    async_session: AsyncSession, store: TicketStore
):
    await store.upsert_user(42, 'Ada', 'Lovelace', 'ada')
    await store.upsert_user(42, 'Augusta', None, None)

    user = await store.get_user_by_platform_id(42)

    assert await count_rows(async_session, TelegramUser) == 1
    assert user.first_name == 'Augusta'
    assert user.last_name is None
    assert user.username is None


async def test_upsert_user_twice_with_same_profile_keeps_one_row(
    async_session: AsyncSession, store: TicketStore
):
    await store.upsert_user(42, 'Ada', 'Lovelace', 'ada')
    first = await store.get_user_by_platform_id(42)
    first_id = first.id

    await store.upsert_user(42, 'Ada', 'Lovelace', 'ada')
    second = await store.get_user_by_platform_id(42)

    assert await count_rows(async_session, TelegramUser) == 1
    assert second.id == first_id
    assert second.username == 'ada'


async def test_get_user_by_platform_id_when_missing(store: TicketStore):
    assert await store.get_user_by_platform_id(404) is None


async def test_get_event_when_missing(store: TicketStore):
    assert await store.get_event('does-not-exist') is None


async def test_list_available_events_filters_and_orders_by_date(
    store: TicketStore, make_event
):
    now = datetime.now(timezone.utc)
    later = await make_event(title='Later', date=now + timedelta(days=30))
    sooner = await make_event(title='Sooner', date=now + timedelta(days=1))
    await make_event(
        title='Sold out', date=now + timedelta(days=2), available_tickets=0
    )

    events = await store.list_available_events()

    assert [event.id for event in events] == [sooner.id, later.id]


async def test_list_available_events_when_empty(store: TicketStore, make_event):
    await make_event(available_tickets=0)

    assert await store.list_available_events() == []


async def test_list_tickets_for_user_newest_first_with_event(
    async_session: AsyncSession, store: TicketStore, make_event, make_user
):
    user = await make_user()
    other = await make_user(telegram_user_id=2002)
    concert = await make_event(title='Concert')
    play = await make_event(title='Play')
    now = datetime.now(timezone.utc)

    async with async_session.begin():
        async_session.add_all(
            [
                Ticket(
                    user_id=user.id,
                    event_id=concert.id,
                    ticket_code='OLDER00000001',
                    purchase_date=now - timedelta(days=2),
                ),
                Ticket(
                    user_id=user.id,
                    event_id=play.id,
                    ticket_code='NEWER00000001',
                    purchase_date=now,
                ),
                Ticket(
                    user_id=other.id,
                    event_id=play.id,
                    ticket_code='OTHER00000001',
                    purchase_date=now,
                ),
            ]
        )

    tickets = await store.list_tickets_for_user(user.id)

    assert [ticket.ticket_code for ticket in tickets] == [
        'NEWER00000001',
        'OLDER00000001',
    ]
    assert tickets[0].event.title == 'Play'
    assert tickets[1].event.title == 'Concert'


async def test_issue_ticket_decrements_and_inserts(
    async_session: AsyncSession, store: TicketStore, make_event, make_user
):
    event = await make_event(available_tickets=2)
    user = await make_user()

    ticket = await store.issue_ticket(event.id, user.id, lambda: 'CODE000000001')

    refreshed = await store.get_event(event.id)
    assert ticket.ticket_code == 'CODE000000001'
    assert ticket.status == 'active'
    assert refreshed.available_tickets == 1
    assert await count_rows(async_session, Ticket) == 1


async def test_issue_ticket_when_sold_out_leaves_no_ticket(
    async_session: AsyncSession, store: TicketStore, make_event, make_user
):
    event = await make_event(available_tickets=0)
    user = await make_user()
    event_id, user_id = event.id, user.id

    with pytest.raises(SoldOut):
        await store.issue_ticket(event_id, user_id, lambda: 'CODE000000001')

    refreshed = await store.get_event(event_id)
    assert refreshed.available_tickets == 0
    assert await count_rows(async_session, Ticket) == 0


async def test_issue_ticket_loses_race_for_last_unit(
    async_session: AsyncSession,
    session_maker,
    store: TicketStore,
    make_event,
    make_user,
):
    event = await make_event(available_tickets=1)
    user = await make_user()
    event_id, user_id = event.id, user.id

    async with session_maker() as other_session:
        await TicketStore(other_session).issue_ticket(
            event_id, user_id, lambda: 'WINNER0000001'
        )

    with pytest.raises(SoldOut):
        await store.issue_ticket(event_id, user_id, lambda: 'LOSER00000001')

    refreshed = await store.get_event(event_id)
    assert refreshed.available_tickets == 0
    assert await count_rows(async_session, Ticket) == 1


async def test_issue_ticket_retries_on_code_collision(
    async_session: AsyncSession, store: TicketStore, make_event, make_user
):
    event = await make_event(available_tickets=5)
    user = await make_user()
    await store.issue_ticket(event.id, user.id, lambda: 'TAKEN00000001')
    codes = iter(['TAKEN00000001', 'FRESH00000001'])

    ticket = await store.issue_ticket(event.id, user.id, lambda: next(codes))

    refreshed = await store.get_event(event.id)
    assert ticket.ticket_code == 'FRESH00000001'
    assert refreshed.available_tickets == 3
    assert await count_rows(async_session, Ticket) == 2


async def test_issue_ticket_rolls_back_decrement_when_codes_exhausted(
    async_session: AsyncSession, store: TicketStore, make_event, make_user
):
    event = await make_event(available_tickets=5)
    user = await make_user()
    event_id, user_id = event.id, user.id
    await store.issue_ticket(event_id, user_id, lambda: 'TAKEN00000001')

    with pytest.raises(StoreUnavailable):
        await store.issue_ticket(
            event_id, user_id, lambda: 'TAKEN00000001', max_attempts=3
        )

    refreshed = await store.get_event(event_id)
    assert refreshed.available_tickets == 4
    assert await count_rows(async_session, Ticket) == 1


async def test_chat_registry_records_and_deactivates(
    async_session: AsyncSession, store: TicketStore
):
    await store.record_chat(300, 'private')
    await store.record_chat(100, 'group')
    await store.record_chat(300, 'private')
    await store.record_chat(200, 'private')

    assert await store.list_distinct_chat_ids() == [100, 200, 300]

    await store.deactivate_chats([200])

    assert await store.list_distinct_chat_ids() == [100, 300]
    assert await count_rows(async_session, Chat) == 3

    await store.record_chat(200, 'private')

    assert await store.list_distinct_chat_ids() == [100, 200, 300]


async def test_deactivate_chats_with_no_ids(store: TicketStore):
    await store.deactivate_chats([])

    assert await store.list_distinct_chat_ids() == []


async def test_store_failure_is_translated(
    async_session: AsyncSession, store: TicketStore
):
    async with async_session.begin():
        await async_session.execute(text('DROP TABLE chats'))

    with pytest.raises(StoreUnavailable):
        await store.list_distinct_chat_ids()


async def test_claim_update_only_once(store: TicketStore):
    assert await store.claim_update(100) is True
    assert await store.claim_update(100) is False
    assert await store.claim_update(101) is True


async def test_saved_reply_is_returned_for_claimed_update(store: TicketStore):
    await store.claim_update(100)

    assert await store.get_update_reply(100) is None

    await store.save_reply(100, 'Use /help to see available commands.')

    assert await store.get_update_reply(100) == 'Use /help to see available commands.'
    assert await store.get_update_reply(999) is None
