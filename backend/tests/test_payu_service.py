"""
Unit tests for PayU request building and callback verification.
"""
import hashlib
from decimal import Decimal
from typing import Any

import pytest

from conftest import MERCHANT_KEY, MERCHANT_SALT
from renewpay.exceptions import ConfigError, ValidationError
from renewpay.models.payments import PaymentCallback, PaymentParams
from renewpay.services import payu_service
from renewpay.services.payu_service import (
    LIVE_URL,
    TEST_URL,
    build_payment_request,
    generate_transaction_id,
    verify_callback,
)
from renewpay.services.signature_service import (
    generate_request_hash,
    generate_response_hash,
    hashes_match,
)


def make_params(**overrides: Any) -> PaymentParams:
    values = dict(
        transaction_id="TXN1734523456ABC123",
        amount=Decimal("3000"),
        product_info="Inventory Subscription Renewal - Annual Plan",
        first_name="Asha",
        last_name="Rao",
        email="asha@example.com",
        phone="+91 98765 43210",
        success_url="http://billing.test/api/payments/payu/success",
        failure_url="http://billing.test/api/payments/payu/failure",
    )
    values.update(overrides)
    return PaymentParams(**values)


def callback_from_request(fields: dict, status: str = "success") -> PaymentCallback:
    """Honest gateway echo of the request fields, signed with the reverse hash."""
    return PaymentCallback(
        status=status,
        txnid=fields["txnid"],
        amount=fields["amount"],
        productinfo=fields["productinfo"],
        firstname=fields["firstname"],
        email=fields["email"],
        hash=generate_response_hash(
            MERCHANT_KEY, fields["txnid"], fields["amount"], fields["productinfo"],
            fields["firstname"], fields["email"], status, MERCHANT_SALT
        ),
    )


class TestSignatureService:
    """Test suite for the PayU hash formulas."""

    @pytest.mark.unit
    def test_request_hash_format(self) -> None:
        """Test request hash signs key..email, eleven pipes, then salt."""
        expected = hashlib.sha512(
            b"k|TXN1|3000.00|Plan|Asha|a@b.co|||||||||||s"
        ).hexdigest()
        assert generate_request_hash("k", "TXN1", "3000.00", "Plan", "Asha", "a@b.co", "s") == expected

    @pytest.mark.unit
    def test_response_hash_format(self) -> None:
        """Test response hash is salt-first in reverse field order."""
        expected = hashlib.sha512(
            b"s|success|||||||||||a@b.co|Asha|Plan|3000.00|TXN1|k"
        ).hexdigest()
        assert generate_response_hash("k", "TXN1", "3000.00", "Plan", "Asha", "a@b.co", "success", "s") == expected

    @pytest.mark.unit
    def test_hash_is_lowercase_hex(self) -> None:
        value = generate_request_hash("k", "t", "1.00", "p", "f", "e", "s")
        assert len(value) == 128
        assert value == value.lower()

    @pytest.mark.unit
    def test_hashes_match_ignores_case(self) -> None:
        value = generate_request_hash("k", "t", "1.00", "p", "f", "e", "s")
        assert hashes_match(value, value.upper())
        assert not hashes_match(value, "")
        assert not hashes_match(value, value[:-1] + ("0" if value[-1] != "0" else "1"))


class TestBuildPaymentRequest:
    """Test suite for build_payment_request."""

    @pytest.mark.unit
    def test_builds_signed_form(self) -> None:
        """Test the form carries normalized fields and a valid request hash."""
        request = build_payment_request(MERCHANT_KEY, MERCHANT_SALT, make_params())
        fields = request.fields

        assert request.action == TEST_URL
        assert request.method == "POST"
        assert fields["amount"] == "3000.00"
        assert fields["phone"] == "9876543210"
        assert fields["service_provider"] == "payu_paisa"
        assert fields["lastname"] == "Rao"
        assert fields["country"] == "India"
        assert fields["zipcode"] == "000000"
        assert fields["address1"] == "N/A"
        assert fields["hash"] == generate_request_hash(
            MERCHANT_KEY, fields["txnid"], "3000.00", fields["productinfo"],
            "Asha", "asha@example.com", MERCHANT_SALT
        )

    @pytest.mark.unit
    def test_live_mode_uses_secure_endpoint(self) -> None:
        request = build_payment_request(MERCHANT_KEY, MERCHANT_SALT, make_params(), test_mode=False)
        assert request.action == LIVE_URL

    @pytest.mark.unit
    def test_fractional_amount(self) -> None:
        request = build_payment_request(MERCHANT_KEY, MERCHANT_SALT, make_params(amount=2999.5))
        assert request.fields["amount"] == "2999.50"

    @pytest.mark.unit
    def test_truncates_transaction_id(self) -> None:
        """Test a 40-character transaction id is cut to 30."""
        request = build_payment_request(MERCHANT_KEY, MERCHANT_SALT, make_params(transaction_id="T" * 40))
        assert request.fields["txnid"] == "T" * 30

    @pytest.mark.unit
    def test_truncates_long_fields(self) -> None:
        request = build_payment_request(
            MERCHANT_KEY,
            MERCHANT_SALT,
            make_params(
                product_info="p" * 150,
                first_name="f" * 80,
                last_name="l" * 80,
                address1="a" * 150,
                city="c" * 30,
                state="s" * 30,
                country="n" * 30,
                zipcode="1" * 15,
            ),
        )
        fields = request.fields
        assert len(fields["productinfo"]) == 100
        assert len(fields["firstname"]) == 60
        assert len(fields["lastname"]) == 60
        assert len(fields["address1"]) == 100
        assert len(fields["city"]) == 20
        assert len(fields["state"]) == 20
        assert len(fields["country"]) == 20
        assert len(fields["zipcode"]) == 10

    @pytest.mark.unit
    def test_defaults_names(self) -> None:
        request = build_payment_request(MERCHANT_KEY, MERCHANT_SALT, make_params(first_name="", last_name=""))
        assert request.fields["firstname"] == "Customer"
        assert request.fields["lastname"] == "User"

    @pytest.mark.unit
    def test_trims_email_and_name(self) -> None:
        request = build_payment_request(
            MERCHANT_KEY, MERCHANT_SALT, make_params(email="  asha@example.com ", first_name="  Asha  ")
        )
        assert request.fields["email"] == "asha@example.com"
        assert request.fields["firstname"] == "Asha"

    @pytest.mark.unit
    def test_empty_email_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Invalid payment parameters"):
            build_payment_request(MERCHANT_KEY, MERCHANT_SALT, make_params(email="   "))

    @pytest.mark.unit
    def test_blank_first_name_rejected(self) -> None:
        """Test whitespace-only first name trims to empty and is rejected."""
        with pytest.raises(ValidationError):
            build_payment_request(MERCHANT_KEY, MERCHANT_SALT, make_params(first_name="   "))

    @pytest.mark.unit
    @pytest.mark.parametrize("key, salt", [("", MERCHANT_SALT), (MERCHANT_KEY, ""), ("", "")])
    def test_missing_merchant_config(self, key: str, salt: str) -> None:
        """Test missing key or salt raises ConfigError, even for invalid params."""
        with pytest.raises(ConfigError):
            build_payment_request(key, salt, make_params(email=""))

    @pytest.mark.unit
    def test_config_checked_before_normalization(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test no field normalization runs when the salt is missing."""
        calls = []
        monkeypatch.setattr(payu_service, "format_phone_number", lambda phone: calls.append(phone))
        monkeypatch.setattr(payu_service, "format_amount", lambda amount: calls.append(amount))

        with pytest.raises(ConfigError):
            build_payment_request(MERCHANT_KEY, "", make_params())

        assert calls == []


class TestVerifyCallback:
    """Test suite for verify_callback."""

    @pytest.mark.unit
    def test_round_trip(self) -> None:
        """Test an honest echo of the request verifies."""
        request = build_payment_request(MERCHANT_KEY, MERCHANT_SALT, make_params())
        callback = callback_from_request(request.fields)
        assert verify_callback(MERCHANT_KEY, MERCHANT_SALT, callback)

    @pytest.mark.unit
    def test_uppercase_hash_verifies(self) -> None:
        request = build_payment_request(MERCHANT_KEY, MERCHANT_SALT, make_params())
        callback = callback_from_request(request.fields)
        callback.hash = callback.hash.upper()
        assert verify_callback(MERCHANT_KEY, MERCHANT_SALT, callback)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "field, value",
        [
            ("amount", "1.00"),
            ("txnid", "TXNFORGED"),
            ("email", "mallory@example.com"),
            ("firstname", "Mallory"),
            ("productinfo", "Something else"),
            ("status", "failure"),
        ],
    )
    def test_tampered_field_fails(self, field: str, value: str) -> None:
        """Test changing any signed field breaks verification."""
        request = build_payment_request(MERCHANT_KEY, MERCHANT_SALT, make_params())
        callback = callback_from_request(request.fields)
        setattr(callback, field, value)
        assert not verify_callback(MERCHANT_KEY, MERCHANT_SALT, callback)

    @pytest.mark.unit
    def test_wrong_key_or_salt_fails(self) -> None:
        request = build_payment_request(MERCHANT_KEY, MERCHANT_SALT, make_params())
        callback = callback_from_request(request.fields)
        assert not verify_callback("otherkey", MERCHANT_SALT, callback)
        assert not verify_callback(MERCHANT_KEY, "othersalt", callback)

    @pytest.mark.unit
    def test_request_hash_is_not_a_valid_response_hash(self) -> None:
        """Test echoing the outbound hash does not forge a callback."""
        request = build_payment_request(MERCHANT_KEY, MERCHANT_SALT, make_params())
        callback = callback_from_request(request.fields)
        callback.hash = request.fields["hash"]
        assert not verify_callback(MERCHANT_KEY, MERCHANT_SALT, callback)

    @pytest.mark.unit
    def test_missing_hash_fails(self) -> None:
        callback = PaymentCallback(status="success", txnid="TXN1", amount="3000.00")
        assert not verify_callback(MERCHANT_KEY, MERCHANT_SALT, callback)

    @pytest.mark.unit
    def test_missing_config_raises(self) -> None:
        with pytest.raises(ConfigError):
            verify_callback("", MERCHANT_SALT, PaymentCallback())


class TestTransactionId:
    """Test suite for generate_transaction_id."""

    @pytest.mark.unit
    def test_format(self) -> None:
        txnid = generate_transaction_id()
        assert txnid.startswith("TXN")
        assert len(txnid) == 19
        assert txnid.isalnum() and txnid.isascii()

    @pytest.mark.unit
    def test_unique(self) -> None:
        assert len({generate_transaction_id() for _ in range(50)}) == 50
