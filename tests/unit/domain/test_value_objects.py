"""
Tests de value objects: referencia de comercio, titular y dinero.
"""

from decimal import Decimal

import pytest

from app.domain.errors import InvalidHolderError
from app.domain.value_objects.holder import Holder
from app.domain.value_objects.merchant_reference import MerchantReference
from app.domain.value_objects.money import Money


class TestMerchantReference:
    def test_first_attempt_has_no_suffix(self):
        assert MerchantReference(123).value == "booking_123"

    def test_later_attempts_are_suffixed(self):
        assert MerchantReference(123, attempt=3).value == "booking_123-3"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("booking_123", (123, 1)),
            ("booking_123-2", (123, 2)),
            (" booking_9 ", (9, 1)),
        ],
    )
    def test_parse_valid(self, raw, expected):
        parsed = MerchantReference.parse(raw)
        assert (parsed.reservation_id, parsed.attempt) == expected

    @pytest.mark.parametrize(
        "raw",
        [None, "", "booking_", "booking_abc", "order_123", "booking_0", "booking_12-0", "booking_1-x",
         "booking_1;DROP TABLE"],
    )
    def test_parse_malformed_returns_none(self, raw):
        assert MerchantReference.parse(raw) is None


class TestHolder:
    def test_customer_is_valid(self):
        Holder(customer_id=5).validate()

    def test_guest_needs_all_contact_fields(self):
        with pytest.raises(InvalidHolderError):
            Holder(guest_name="Anna", guest_email="anna@example.com").validate()

    def test_masked_hides_guest_email(self):
        holder = Holder(guest_name="Anna", guest_email="anna@example.com", guest_phone="070")
        assert holder.masked() == "guest:a***@example.com"


class TestMoney:
    def test_amount_is_quantized(self):
        assert Money(Decimal("650.005")).amount == Decimal("650.01")

    def test_minor_units(self):
        assert Money.from_minor_units(65000).to_minor_units() == 65000

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            Money(Decimal("-1"))
