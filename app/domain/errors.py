"""Excepciones de dominio para el sistema de reservas de clases."""


class DomainError(Exception):
    """Clase base para todos los errores de dominio."""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)


# === Errores de Slot ===


class SlotBlockedError(DomainError):
    """La fecha u hora está bloqueada por un override o no se ofrece."""

    def __init__(self, slot_date: str, start_time: str, reason: str = "blocked"):
        super().__init__(
            message="This time is not available for booking, please choose another",
            code="SLOT_BLOCKED",
        )
        self.slot_date = slot_date
        self.start_time = start_time
        self.reason = reason


class SlotNowBlockedError(SlotBlockedError):
    """Se agregó un bloqueo después de crear la reserva temporal."""

    def __init__(self, slot_date: str, start_time: str):
        super().__init__(slot_date, start_time, reason="blocked_after_hold")
        self.code = "SLOT_NOW_BLOCKED"
        self.message = "This time has been blocked since it was reserved, please choose another"


class SlotConflictError(DomainError):
    """Otra reserva activa ocupa el slot."""

    def __init__(self, slot_date: str, start_time: str):
        super().__init__(
            message="This time was just taken, please choose another",
            code="SLOT_CONFLICT",
        )
        self.slot_date = slot_date
        self.start_time = start_time


class MustCallWindowError(DomainError):
    """El slot empieza demasiado pronto para reservar en línea."""

    def __init__(self, slot_date: str, start_time: str, call_phone: str | None):
        super().__init__(
            message="This time starts soon and can only be booked by phone",
            code="MUST_CALL_WINDOW",
        )
        self.slot_date = slot_date
        self.start_time = start_time
        self.call_phone = call_phone


# === Errores de Reserva ===


class ReservationNotFoundError(DomainError):
    """La reserva no existe."""

    def __init__(self, reservation_id: int):
        super().__init__(
            message=f"Reservation not found: {reservation_id}",
            code="RESERVATION_NOT_FOUND",
        )
        self.reservation_id = reservation_id


class AlreadyTerminalError(DomainError):
    """La reserva ya está en un estado que no permite la operación."""

    def __init__(self, reservation_id: int, current_status: str, operation: str):
        super().__init__(
            message=f"Cannot {operation} reservation {reservation_id}: status is '{current_status}'",
            code="ALREADY_TERMINAL",
        )
        self.reservation_id = reservation_id
        self.current_status = current_status
        self.operation = operation


class InvalidHolderError(DomainError):
    """La reserva necesita un cliente autenticado o datos completos de invitado."""

    def __init__(self, message: str):
        super().__init__(message=message, code="INVALID_HOLDER")


class PaymentMethodNotAllowedError(DomainError):
    """El método de pago no puede elegirse en este contexto."""

    def __init__(self, payment_method: str, reason: str):
        super().__init__(
            message=f"Payment method '{payment_method}' not allowed: {reason}",
            code="PAYMENT_METHOD_NOT_ALLOWED",
        )
        self.payment_method = payment_method


class InsufficientCreditsError(DomainError):
    """El cliente no tiene créditos para el tipo de clase."""

    def __init__(self, customer_id: int, lesson_type: str):
        super().__init__(
            message=f"Not enough credits for lesson type '{lesson_type}'",
            code="INSUFFICIENT_CREDITS",
        )
        self.customer_id = customer_id
        self.lesson_type = lesson_type


# === Errores de Pago ===


class PaymentOrderNotFoundError(DomainError):
    """La orden de pago no existe."""

    def __init__(self, reservation_id: int):
        super().__init__(
            message=f"No payment order for reservation {reservation_id}",
            code="PAYMENT_ORDER_NOT_FOUND",
        )
        self.reservation_id = reservation_id


class OpenPaymentOrderExistsError(DomainError):
    """Ya existe una orden abierta para la reserva (índice único parcial)."""

    def __init__(self, reservation_id: int):
        super().__init__(
            message=f"An open payment order already exists for reservation {reservation_id}",
            code="OPEN_PAYMENT_ORDER_EXISTS",
        )
        self.reservation_id = reservation_id


class PaymentProviderError(DomainError):
    """Fallo en la comunicación con el proveedor de pagos."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message=message, code="PAYMENT_PROVIDER_ERROR")
        self.status_code = status_code


# === Errores de Validación ===


class ValidationError(DomainError):
    """Error de validación de datos de entrada."""

    def __init__(self, field: str, message: str):
        super().__init__(
            message=f"Validation failed for '{field}': {message}",
            code="VALIDATION_ERROR",
        )
        self.field = field


class InvalidMoneyError(DomainError):
    """Monto monetario inválido."""

    def __init__(self, message: str):
        super().__init__(message=message, code="INVALID_MONEY")
