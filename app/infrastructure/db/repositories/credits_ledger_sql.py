from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.clock import Clock
from app.application.interfaces.credits_ledger import CreditsLedger
from app.domain.errors import InsufficientCreditsError
from app.infrastructure.db.tables import credit_debits, customer_credits, to_db_datetime


class CreditsLedgerSQL(CreditsLedger):
    """
    Saldo en ``customer_credits``; cada débito queda en ``credit_debits``
    con la reserva como clave única, así una reserva se cobra una sola vez.
    """

    def __init__(self, session: AsyncSession, clock: Clock) -> None:
        self._session = session
        self._clock = clock

    async def balance(self, customer_id: int, lesson_type: str) -> int:
        stmt = select(customer_credits.c.balance).where(
            customer_credits.c.customer_id == customer_id,
            customer_credits.c.lesson_type == lesson_type,
        )
        return (await self._session.execute(stmt)).scalar() or 0

    async def grant(self, customer_id: int, lesson_type: str, amount: int) -> int:
        result = await self._session.execute(
            update(customer_credits)
            .where(
                customer_credits.c.customer_id == customer_id,
                customer_credits.c.lesson_type == lesson_type,
            )
            .values(balance=customer_credits.c.balance + amount)
        )
        if result.rowcount == 0:
            await self._session.execute(
                insert(customer_credits).values(
                    customer_id=customer_id, lesson_type=lesson_type, balance=amount
                )
            )
        return await self.balance(customer_id, lesson_type)

    async def debit(self, customer_id: int, lesson_type: str, reservation_id: int) -> bool:
        if not await self._claim_debit(customer_id, lesson_type, reservation_id):
            return False

        result = await self._session.execute(
            update(customer_credits)
            .where(
                customer_credits.c.customer_id == customer_id,
                customer_credits.c.lesson_type == lesson_type,
                customer_credits.c.balance > 0,
            )
            .values(balance=customer_credits.c.balance - 1)
        )
        if result.rowcount == 0:
            raise InsufficientCreditsError(customer_id, lesson_type)
        return True

    async def _claim_debit(self, customer_id: int, lesson_type: str, reservation_id: int) -> bool:
        """
        Reserva la fila de débito antes de tocar el saldo. False si otra
        transacción ya cobró esta reserva (la clave única decide).
        """
        now = to_db_datetime(self._clock.now())
        reclaimed = await self._session.execute(
            update(credit_debits)
            .where(
                credit_debits.c.reservation_id == reservation_id,
                credit_debits.c.refunded_at.is_not(None),
            )
            .values(
                customer_id=customer_id,
                lesson_type=lesson_type,
                refunded_at=None,
                created_at=now,
            )
        )
        if reclaimed.rowcount:
            return True
        try:
            async with self._session.begin_nested():
                await self._session.execute(
                    insert(credit_debits).values(
                        reservation_id=reservation_id,
                        customer_id=customer_id,
                        lesson_type=lesson_type,
                        created_at=now,
                    )
                )
        except IntegrityError:
            return False
        return True

    async def refund(self, reservation_id: int) -> bool:
        debit = (
            await self._session.execute(
                select(credit_debits).where(
                    credit_debits.c.reservation_id == reservation_id,
                    credit_debits.c.refunded_at.is_(None),
                )
            )
        ).mappings().first()
        if debit is None:
            return False

        result = await self._session.execute(
            update(credit_debits)
            .where(
                credit_debits.c.reservation_id == reservation_id,
                credit_debits.c.refunded_at.is_(None),
            )
            .values(refunded_at=to_db_datetime(self._clock.now()))
        )
        if result.rowcount == 0:
            return False
        await self._session.execute(
            update(customer_credits)
            .where(
                customer_credits.c.customer_id == debit["customer_id"],
                customer_credits.c.lesson_type == debit["lesson_type"],
            )
            .values(balance=customer_credits.c.balance + 1)
        )
        return True
