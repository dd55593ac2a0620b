"""Value Object Holder - quién retiene una reserva (cliente o invitado)."""

from dataclasses import dataclass

from app.domain.errors import InvalidHolderError


@dataclass(frozen=True)
class Holder:
    """
    Titular de la reserva.

    Un cliente autenticado se identifica por ``customer_id``; un invitado
    debe dejar nombre, email y teléfono.
    """

    customer_id: int | None = None
    guest_name: str | None = None
    guest_email: str | None = None
    guest_phone: str | None = None

    @property
    def is_guest(self) -> bool:
        return self.customer_id is None

    def validate(self) -> None:
        if self.customer_id is not None:
            if self.customer_id <= 0:
                raise InvalidHolderError("customer_id must be positive")
            return
        missing = [
            name
            for name, value in (
                ("guest_name", self.guest_name),
                ("guest_email", self.guest_email),
                ("guest_phone", self.guest_phone),
            )
            if not value or not value.strip()
        ]
        if missing:
            raise InvalidHolderError(f"Guest bookings require: {', '.join(missing)}")

    def masked(self) -> str:
        """Identificador apto para logs."""
        if self.customer_id is not None:
            return f"customer:{self.customer_id}"
        email = self.guest_email or ""
        local, _, domain = email.partition("@")
        return f"guest:{local[:1]}***@{domain}" if domain else "guest:***"
