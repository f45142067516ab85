import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase, AsyncAttrs):
    pass


class TicketStatus(str, Enum):
    ACTIVE = 'active'
    USED = 'used'
    EXPIRED = 'expired'


class Event(Base):
    __tablename__ = 'events'
    __table_args__ = (
        CheckConstraint(
            'available_tickets >= 0', name='ck_events_available_tickets'
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(nullable=True, default=None)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    location: Mapped[str] = mapped_column(String(255))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal('0'))
    available_tickets: Mapped[int] = mapped_column(default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class TelegramUser(Base):
    __tablename__ = 'telegram_users'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    telegram_user_id: Mapped[int] = mapped_column(BigInteger, unique=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class Ticket(Base):
    __tablename__ = 'tickets'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        ForeignKey('telegram_users.id'), index=True
    )
    event_id: Mapped[str] = mapped_column(ForeignKey('events.id'), index=True)
    ticket_code: Mapped[str] = mapped_column(String(32), unique=True)
    purchase_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    status: Mapped[str] = mapped_column(
        String(16), default=TicketStatus.ACTIVE.value
    )

    event: Mapped[Event] = relationship(lazy='raise')


class Chat(Base):
    __tablename__ = 'chats'

    chat_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    chat_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True)
    first_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


class ProcessedUpdate(Base):
    __tablename__ = 'processed_updates'

    update_id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )
    reply: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
