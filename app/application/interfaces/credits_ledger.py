class CreditsLedger:
    """Créditos prepagados por cliente y tipo de clase."""

    async def balance(self, customer_id: int, lesson_type: str) -> int:
        raise NotImplementedError

    async def grant(self, customer_id: int, lesson_type: str, amount: int) -> int:
        raise NotImplementedError

    async def debit(self, customer_id: int, lesson_type: str, reservation_id: int) -> bool:
        """
        Descuenta un crédito por reserva, como máximo una vez.

        Returns:
            True si se descontó ahora, False si la reserva ya estaba cobrada.

        Raises:
            InsufficientCreditsError: sin saldo.
        """
        raise NotImplementedError

    async def refund(self, reservation_id: int) -> bool:
        """Devuelve el crédito de la reserva; False si no había débito activo."""
        raise NotImplementedError
