from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Time,
)

metadata = MetaData()

ACTIVE_RESERVATION_STATUSES = ("TEMPORARY", "CONFIRMED")
OPEN_PAYMENT_ORDER_STATUSES = ("CREATED", "PENDING")

reservations = Table(
    "reservations",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("date", Date, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("duration_minutes", Integer, nullable=False),
    Column("lesson_type", String(64), nullable=False),
    Column("customer_id", Integer),
    Column("guest_name", String(255)),
    Column("guest_email", String(255)),
    Column("guest_phone", String(50)),
    Column("payer_name", String(255)),
    Column("payer_email", String(255)),
    Column("payer_phone", String(50)),
    Column("currency_code", String(3), nullable=False),
    Column("total_price", Numeric(12, 2), nullable=False),
    Column("invoice_reference", String(64)),
    Column("status", String(16), nullable=False),
    Column("payment_status", String(16), nullable=False),
    Column("payment_method", String(32)),
    Column("cancel_reason", String(64)),
    Column("lock_version", Integer, nullable=False, default=0),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    Column("archived_at", DateTime),
)

# At most one active reservation per slot start.
Index(
    "uq_reservations_active_slot",
    reservations.c.date,
    reservations.c.start_time,
    unique=True,
    sqlite_where=reservations.c.status.in_(ACTIVE_RESERVATION_STATUSES),
    postgresql_where=reservations.c.status.in_(ACTIVE_RESERVATION_STATUSES),
)
Index("ix_reservations_status_created", reservations.c.status, reservations.c.created_at)

payment_orders = Table(
    "payment_orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("reservation_id", Integer, nullable=False),
    Column("reservation_date", Date),
    Column("merchant_reference", String(64), nullable=False, unique=True),
    Column("provider_order_id", String(64)),
    Column("payment_link", String(1024)),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("currency_code", String(3), nullable=False),
    Column("status", String(16), nullable=False),
    Column("callback_token", String(128), unique=True),
    Column("callback_token_expires_at", DateTime),
    Column("token_consumed_at", DateTime),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

# At most one open checkout per reservation.
Index(
    "uq_payment_orders_open_reservation",
    payment_orders.c.reservation_id,
    unique=True,
    sqlite_where=payment_orders.c.status.in_(OPEN_PAYMENT_ORDER_STATUSES),
    postgresql_where=payment_orders.c.status.in_(OPEN_PAYMENT_ORDER_STATUSES),
)
Index("ix_payment_orders_provider_order_id", payment_orders.c.provider_order_id)

slot_templates = Table(
    "slot_templates",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("weekday", Integer, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("active", Integer, nullable=False, default=1),
)

date_overrides = Table(
    "date_overrides",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("date", Date, nullable=False, index=True),
    Column("kind", String(16), nullable=False),
    Column("start_time", Time),
    Column("end_time", Time),
    Column("reserved_for_customer_id", Integer),
    Column("reason", String(255)),
)

outbox_events = Table(
    "outbox_events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("event_type", String(64), nullable=False),
    Column("aggregate_type", String(32), nullable=False),
    Column("aggregate_code", String(50)),
    Column("payload", JSON, nullable=False),
    Column("status", String(16), nullable=False, default="NEW"),
    Column("attempts", Integer, nullable=False, default=0),
    Column("next_attempt_at", DateTime),
    Column("error_message", String(255)),
    Column("locked_by", String(64)),
    Column("locked_at", DateTime),
    Column("lock_expires_at", DateTime),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

customer_credits = Table(
    "customer_credits",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("customer_id", Integer, nullable=False),
    Column("lesson_type", String(64), nullable=False),
    Column("balance", Integer, nullable=False, default=0),
    Index("uq_customer_credits_customer_lesson", "customer_id", "lesson_type", unique=True),
)

credit_debits = Table(
    "credit_debits",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("reservation_id", Integer, nullable=False, unique=True),
    Column("customer_id", Integer, nullable=False),
    Column("lesson_type", String(64), nullable=False),
    Column("refunded_at", DateTime),
    Column("created_at", DateTime, nullable=False),
)


def to_db_datetime(value: datetime | None) -> datetime | None:
    """Las columnas DateTime guardan UTC naive."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_db_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)
