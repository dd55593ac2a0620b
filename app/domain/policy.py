"""Reglas de tiempo de las reservas: TTL de holds, ventana de llamada y tokens."""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from app.domain.entities.reservation import (
    STALE_PAYMENT_STATUSES,
    Reservation,
    ReservationStatus,
)


@dataclass(frozen=True)
class LeasePolicy:
    """
    Política de tiempos, sin estado: cada regla recibe ``now`` del Clock.

    Las fechas y horas de los slots se interpretan en la zona horaria de la
    escuela (``tz``); los instantes (``now``, ``created_at``) son UTC aware.

    Attributes:
        hold_ttl: Vida de una reserva temporal sin pagar.
        must_call_lead: Antelación mínima para reservar en línea.
        callback_token_ttl: Vigencia del token de la notificación de pago.
        cancelled_retention: Tiempo antes de archivar reservas canceladas.
        tz: Zona horaria local de la escuela.
    """

    hold_ttl: timedelta = timedelta(minutes=5)
    must_call_lead: timedelta = timedelta(hours=2)
    callback_token_ttl: timedelta = timedelta(minutes=30)
    cancelled_retention: timedelta = timedelta(minutes=15)
    tz: tzinfo = field(default=timezone.utc)

    def stale_cutoff(self, now: datetime) -> datetime:
        """Holds creados antes de este instante están vencidos."""
        return now - self.hold_ttl

    def is_stale(self, reservation: Reservation, now: datetime) -> bool:
        if reservation.status != ReservationStatus.TEMPORARY:
            return False
        if reservation.payment_status not in STALE_PAYMENT_STATUSES:
            return False
        if reservation.created_at is None:
            return False
        return reservation.created_at < self.stale_cutoff(now)

    def hold_expires_at(self, reservation: Reservation) -> datetime | None:
        if reservation.created_at is None:
            return None
        return reservation.created_at + self.hold_ttl

    def slot_start(self, slot_date: date, start_time: time) -> datetime:
        return datetime.combine(slot_date, start_time, tzinfo=self.tz)

    def is_within_must_call(self, slot_date: date, start_time: time, now: datetime) -> bool:
        """True si el slot empieza dentro de la ventana de llamada (o ya pasó)."""
        return self.slot_start(slot_date, start_time) - now <= self.must_call_lead

    def token_expiry(self, now: datetime) -> datetime:
        return now + self.callback_token_ttl

    def today(self, now: datetime) -> date:
        return now.astimezone(self.tz).date()

    def archive_cutoff(self, now: datetime) -> datetime:
        return now - self.cancelled_retention
