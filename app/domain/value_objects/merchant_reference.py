"""Value Object MerchantReference - correlaciona una orden del proveedor con una reserva."""

import re
from dataclasses import dataclass

_PATTERN = re.compile(r"^booking_(\d{1,18})(?:-(\d{1,6}))?$")


@dataclass(frozen=True)
class MerchantReference:
    """
    Referencia elegida por el comercio al crear la orden de pago.

    Formato: ``booking_<reservation_id>`` para el primer intento y
    ``booking_<reservation_id>-<attempt>`` para los siguientes, ya que el
    proveedor exige referencias únicas por orden.
    """

    reservation_id: int
    attempt: int = 1

    def __post_init__(self) -> None:
        if self.reservation_id <= 0:
            raise ValueError(f"reservation_id inválido: {self.reservation_id}")
        if self.attempt < 1:
            raise ValueError(f"attempt inválido: {self.attempt}")

    @property
    def value(self) -> str:
        if self.attempt == 1:
            return f"booking_{self.reservation_id}"
        return f"booking_{self.reservation_id}-{self.attempt}"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, raw: str | None) -> "MerchantReference | None":
        """Parsea una referencia; retorna None si el formato no coincide."""
        if not raw or not isinstance(raw, str):
            return None
        match = _PATTERN.match(raw.strip())
        if not match:
            return None
        reservation_id = int(match.group(1))
        attempt = int(match.group(2)) if match.group(2) else 1
        if reservation_id <= 0 or attempt < 1:
            return None
        return cls(reservation_id=reservation_id, attempt=attempt)
