"""Value Objects del dominio de reservas."""

from app.domain.value_objects.holder import Holder
from app.domain.value_objects.merchant_reference import MerchantReference
from app.domain.value_objects.money import Money
from app.domain.value_objects.time_range import TimeRange

__all__ = [
    "Holder",
    "MerchantReference",
    "Money",
    "TimeRange",
]
