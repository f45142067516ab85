"""Reply texts sent back to Telegram chats."""

from datetime import datetime

from ticket_bot.broadcast import BroadcastReport
from ticket_bot.models import Event, Ticket

HELP_TEXT = """🎫 Event Tickets Bot Help

Available commands:
/start - Welcome message
/events - View all available events
/mytickets - View your purchased tickets
/broadcast <message> - Send message to all users
/help - Show this help message

To purchase a ticket:
1. Use /events to see available events
2. Copy the /buy_[event_id] command for the event you want
3. Send that command to purchase your ticket"""

NO_EVENTS = 'No events available at the moment.'

NO_TICKETS = """🎫 You don't have any tickets yet.

Use /events to browse available events and purchase tickets!"""

PURCHASE_FAILED = 'Error purchasing ticket. Please try again.'

BROADCAST_USAGE = 'Usage: /broadcast <your message>'

NO_BROADCAST_RECIPIENTS = 'No chats found for broadcasting.'


def format_date(value: datetime) -> str:
    return f'{value.month}/{value.day}/{value.year}'


def welcome(first_name: str) -> str:
    return f"""🎫 Welcome to Event Tickets Bot, {first_name}!

Available commands:
/events - View available events
/mytickets - View your tickets
/broadcast - Send message to all users
/help - Show this help message

Get started by checking out available events with /events"""


def unknown_command(text: str) -> str:
    return f'❓ Unknown command: "{text}"\n\nUse /help to see available commands.'


def event_catalog(events: list[Event]) -> str:
    if not events:
        return NO_EVENTS

    lines = ['🎫 Available Events:', '']
    for index, event in enumerate(events, start=1):
        lines.extend(
            (
                f'{index}. {event.title}',
                f'📅 {format_date(event.date)}',
                f'📍 {event.location}',
                f'💰 ${event.price}',
                f'🎟️ {event.available_tickets} tickets available',
                '',
                f'To buy: /buy_{event.id}',
                '',
            )
        )
    return '\n'.join(lines).rstrip()


def ticket_ledger(tickets: list[Ticket]) -> str:
    if not tickets:
        return NO_TICKETS

    lines = ['🎫 Your Tickets:', '']
    for index, ticket in enumerate(tickets, start=1):
        lines.extend(
            (
                f'{index}. {ticket.event.title}',
                f'🏷️ Code: {ticket.ticket_code}',
                f'📅 {format_date(ticket.event.date)}',
                f'📍 {ticket.event.location}',
                f'📊 Status: {ticket.status}',
                '',
            )
        )
    return '\n'.join(lines).rstrip()


def purchase_confirmation(ticket: Ticket, event: Event) -> str:
    return f"""✅ Ticket purchased successfully!

🎫 Event: {event.title}
🏷️ Ticket Code: {ticket.ticket_code}
📅 Date: {format_date(event.date)}
📍 Location: {event.location}
💰 Price: ${event.price}

Keep your ticket code safe! Use /mytickets to view all your tickets."""


def broadcast_summary(report: BroadcastReport) -> str:
    return (
        '📢 Broadcast completed!\n'
        f'✅ Sent to: {report.sent} chats\n'
        f'❌ Failed: {report.failed} chats'
    )
