import pytest

from ticket_bot.commands import (
    Broadcast,
    Buy,
    Help,
    ListEvents,
    MyTickets,
    Start,
    Unknown,
    classify,
)


@pytest.mark.parametrize(
    ('text', 'expected'),
    [
        ('/start', Start()),
        ('/start deep-link-payload', Start()),
        ('/help', Help()),
        ('/events', ListEvents()),
        ('/mytickets', MyTickets()),
        ('/buy_E1', Buy(event_id='E1')),
        (
            '/buy_3f2b8c1e-0000-4000-8000-000000000001',
            Buy(event_id='3f2b8c1e-0000-4000-8000-000000000001'),
        ),
        ('/broadcast Doors open at 8', Broadcast(text='Doors open at 8')),
    ],
)
def test_classify_known_commands(text, expected):
    assert classify(text) == expected


def test_buy_keeps_the_remainder_verbatim():
    assert classify('/buy_ E1 extra') == Buy(event_id=' E1 extra')
    assert classify('/buy_') == Buy(event_id='')


def test_broadcast_drops_only_one_separating_space():
    assert classify('/broadcast   spaced') == Broadcast(text='  spaced')
    assert classify('/broadcast ') == Broadcast(text='')


def test_broadcast_without_space_is_unknown():
    assert classify('/broadcast') == Unknown(text='/broadcast')


@pytest.mark.parametrize('text', ['hello', '/buy', 'start', ' /start', '/Events'])
def test_unmatched_text_is_unknown(text):
    assert classify(text) == Unknown(text=text)
