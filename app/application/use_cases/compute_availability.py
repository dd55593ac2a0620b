import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime

from app.application.interfaces.clock import Clock
from app.application.interfaces.reservation_repo import ReservationRepo
from app.application.interfaces.slot_catalog import SlotCatalog
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.entities.reservation import Reservation, ReservationStatus
from app.domain.entities.slot import SLOT_STATUS_TEXT, DateOverride, SlotStatus, SlotTemplate, SlotView
from app.domain.policy import LeasePolicy
from app.domain.schedule import OfferedSlot, offered_slots


class ComputeAvailabilityUseCase:
    """
    Calcula la vista de slots por fecha. Solo lectura: el barrido de holds
    vencidos es un paso aparte que el llamador puede ejecutar antes.
    """

    def __init__(
        self,
        slot_catalog: SlotCatalog,
        reservation_repo: ReservationRepo,
        transaction_manager: TransactionManager,
        clock: Clock,
        policy: LeasePolicy,
        contact_phone: str | None = None,
    ) -> None:
        self._slot_catalog = slot_catalog
        self._reservation_repo = reservation_repo
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._policy = policy
        self._contact_phone = contact_phone
        self._logger = logging.getLogger(__name__)

    async def execute(
        self, dates: Iterable[date], caller_id: int | None = None
    ) -> dict[date, list[SlotView]]:
        days = sorted(set(dates))
        if not days:
            return {}
        now = self._clock.now()

        async with self._transaction_manager.start():
            templates = await self._slot_catalog.list_templates({d.weekday() for d in days})
            overrides = await self._slot_catalog.list_overrides(days)
            reservations = await self._reservation_repo.list_active_for_dates(days)

        templates_by_weekday: dict[int, list[SlotTemplate]] = defaultdict(list)
        for template in templates:
            templates_by_weekday[template.weekday].append(template)
        overrides_by_date: dict[date, list[DateOverride]] = defaultdict(list)
        for override in overrides:
            overrides_by_date[override.date].append(override)
        reservations_by_date: dict[date, list[Reservation]] = defaultdict(list)
        for reservation in reservations:
            reservations_by_date[reservation.date].append(reservation)

        availability: dict[date, list[SlotView]] = {}
        for day in days:
            try:
                availability[day] = self._slots_for_day(
                    day,
                    templates_by_weekday[day.weekday()],
                    overrides_by_date[day],
                    reservations_by_date[day],
                    caller_id,
                    now,
                )
            except (TypeError, ValueError, AttributeError) as exc:
                self._logger.warning(
                    "Incomplete schedule data, no slots offered for date",
                    extra={"date": day.isoformat(), "error": str(exc)},
                )
                availability[day] = []
        return availability

    def _slots_for_day(
        self,
        day: date,
        templates: list[SlotTemplate],
        overrides: list[DateOverride],
        reservations: list[Reservation],
        caller_id: int | None,
        now: datetime,
    ) -> list[SlotView]:
        offered = offered_slots(day, templates, overrides, caller_id)
        views = [self._classify(day, slot, reservations, now) for slot in offered.values()]
        return sorted(views, key=lambda view: view.time)

    def _classify(
        self,
        day: date,
        slot: OfferedSlot,
        reservations: list[Reservation],
        now: datetime,
    ) -> SlotView:
        occupant = next((r for r in reservations if r.start_time == slot.range.start), None)
        if occupant is None:
            # longer lessons also occupy the slots they run into
            occupant = next((r for r in reservations if r.time_range.overlaps(slot.range)), None)

        call_phone = None
        if occupant is not None:
            if occupant.status == ReservationStatus.CONFIRMED:
                status = SlotStatus.BOOKED
            elif self._policy.is_stale(occupant, now):
                status = SlotStatus.HELD_STALE
            else:
                status = SlotStatus.HELD
        elif self._policy.is_within_must_call(day, slot.range.start, now):
            status = SlotStatus.MUST_CALL
            call_phone = self._contact_phone
        else:
            status = SlotStatus.AVAILABLE

        return SlotView(
            time=slot.range.start,
            end_time=slot.range.end,
            status=status,
            clickable=status == SlotStatus.AVAILABLE,
            status_text=SLOT_STATUS_TEXT[status],
            call_phone=call_phone,
            is_extra_slot=slot.is_extra,
            reason=slot.extra.reason if slot.extra else None,
        )
