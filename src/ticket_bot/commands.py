"""Classification of inbound message text into bot commands.

Each message is classified on its own; there is no conversation state.
The first matching prefix in ``COMMAND_TABLE`` wins.
"""

from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class ListEvents:
    pass


@dataclass(frozen=True)
class Buy:
    event_id: str


@dataclass(frozen=True)
class MyTickets:
    pass


@dataclass(frozen=True)
class Broadcast:
    text: str


@dataclass(frozen=True)
class Unknown:
    text: str


Command = Start | Help | ListEvents | Buy | MyTickets | Broadcast | Unknown

BUY_PREFIX = '/buy_'
BROADCAST_PREFIX = '/broadcast '

COMMAND_TABLE: tuple[tuple[str, Callable[[str], Command]], ...] = (
    ('/start', lambda rest: Start()),
    ('/help', lambda rest: Help()),
    ('/events', lambda rest: ListEvents()),
    (BUY_PREFIX, lambda rest: Buy(event_id=rest)),
    ('/mytickets', lambda rest: MyTickets()),
    (BROADCAST_PREFIX, lambda rest: Broadcast(text=rest)),
)


def classify(text: str) -> Command:
    for prefix, build in COMMAND_TABLE:
        if text.startswith(prefix):
            return build(text[len(prefix) :])

    return Unknown(text=text)
