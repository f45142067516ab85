import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field

from ticket_bot.errors import DeliveryFailed
from ticket_bot.logger import logger
from ticket_bot.telegram import Messenger

BROADCAST_HEADER = '📢 BROADCAST MESSAGE:\n\n'


@dataclass
class BroadcastReport:
    sent: int = 0
    failed: int = 0
    unreachable: list[int] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.sent + self.failed


async def broadcast(
    text: str,
    recipients: Iterable[int],
    messenger: Messenger,
    concurrency: int = 10,
) -> BroadcastReport:
    """Send ``text`` to every recipient chat at most ``concurrency`` at a time.

    Each distinct chat is attempted exactly once. Delivery failures are
    tallied and never raised; chats that can no longer be reached are listed
    in ``unreachable``.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))
    body = f'{BROADCAST_HEADER}{text}'
    report = BroadcastReport()

    async def deliver(chat_id: int) -> None:
        async with semaphore:
            try:
                await messenger.send_message(chat_id, body)
            except DeliveryFailed as exc:
                report.failed += 1
                if exc.permanent:
                    report.unreachable.append(chat_id)
                logger.warning(f'Broadcast to chat {chat_id} failed: {exc.detail}')
            else:
                report.sent += 1

    await asyncio.gather(*(deliver(chat_id) for chat_id in dict.fromkeys(recipients)))

    logger.info(f'Broadcast finished: {report.sent} sent, {report.failed} failed')

    return report
