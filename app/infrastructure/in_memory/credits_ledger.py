from collections import defaultdict

from app.application.interfaces.credits_ledger import CreditsLedger
from app.domain.errors import InsufficientCreditsError


class InMemoryCreditsLedger(CreditsLedger):
    def __init__(self) -> None:
        self.balances: dict[tuple[int, str], int] = defaultdict(int)
        # reservation_id -> (customer_id, lesson_type, refunded)
        self.debits: dict[int, tuple[int, str, bool]] = {}

    async def balance(self, customer_id: int, lesson_type: str) -> int:
        return self.balances[(customer_id, lesson_type)]

    async def grant(self, customer_id: int, lesson_type: str, amount: int) -> int:
        self.balances[(customer_id, lesson_type)] += amount
        return self.balances[(customer_id, lesson_type)]

    async def debit(self, customer_id: int, lesson_type: str, reservation_id: int) -> bool:
        existing = self.debits.get(reservation_id)
        if existing is not None and not existing[2]:
            return False
        key = (customer_id, lesson_type)
        if self.balances[key] <= 0:
            raise InsufficientCreditsError(customer_id, lesson_type)
        self.balances[key] -= 1
        self.debits[reservation_id] = (customer_id, lesson_type, False)
        return True

    async def refund(self, reservation_id: int) -> bool:
        existing = self.debits.get(reservation_id)
        if existing is None or existing[2]:
            return False
        customer_id, lesson_type, _ = existing
        self.balances[(customer_id, lesson_type)] += 1
        self.debits[reservation_id] = (customer_id, lesson_type, True)
        return True
