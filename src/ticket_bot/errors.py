"""Error codes raised by the bot core.

Business outcomes (not found, sold out, unregistered user) carry the
user-facing reply text in ``message``. Infrastructure failures
(store, delivery) carry a generic, retry-safe message.
"""

from enum import Enum


class ErrorCode(Enum):
    """Error codes."""

    EVENT_NOT_FOUND = 'EVENT_NOT_FOUND'
    SOLD_OUT = 'SOLD_OUT'
    USER_NOT_REGISTERED = 'USER_NOT_REGISTERED'
    STORE_UNAVAILABLE = 'STORE_UNAVAILABLE'
    DELIVERY_FAILED = 'DELIVERY_FAILED'


class BotError(Exception):
    """Base error with code and user-safe message."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f'{self.code.value}: {self.message}'


class EventNotFound(BotError):
    def __init__(self, event_id: str) -> None:
        super().__init__(ErrorCode.EVENT_NOT_FOUND, 'Event not found.')
        self.event_id = event_id


class SoldOut(BotError):
    def __init__(self, event_id: str) -> None:
        super().__init__(ErrorCode.SOLD_OUT, 'Sorry, this event is sold out.')
        self.event_id = event_id


class UserNotRegistered(BotError):
    def __init__(self, telegram_user_id: int) -> None:
        super().__init__(
            ErrorCode.USER_NOT_REGISTERED,
            'Please start a conversation with the bot first using /start',
        )
        self.telegram_user_id = telegram_user_id


class StoreUnavailable(BotError):
    """Raised when the database cannot be reached or a query fails."""

    def __init__(self, detail: str = '') -> None:
        super().__init__(
            ErrorCode.STORE_UNAVAILABLE,
            'Something went wrong. Please try again.',
        )
        self.detail = detail


class DeliveryFailed(BotError):
    """Raised when the Bot API refuses or fails to deliver a message.

    ``permanent`` is set when retrying cannot help: the bot was blocked,
    kicked, or the chat no longer exists.
    """

    def __init__(
        self,
        chat_id: int | None,
        detail: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(ErrorCode.DELIVERY_FAILED, 'Message delivery failed.')
        self.chat_id = chat_id
        self.detail = detail
        self.status_code = status_code

    @property
    def permanent(self) -> bool:
        return self.status_code == 403 or 'chat not found' in self.detail.lower()

    def __str__(self) -> str:
        return f'{self.code.value}: chat {self.chat_id}: {self.detail}'
