"""
PayU Service

Builds signed PayU hosted-checkout forms and verifies PayU return callbacks.

Both operations are pure functions of their inputs plus the merchant key and
salt; nothing here touches the database or the network.
"""
import logging
import secrets
import string
import time

from ..exceptions import ConfigError, ValidationError
from ..models.payments import PaymentCallback, PaymentParams, PaymentRequest
from .normalization import (
    PHONE_LENGTH,
    default_trim_truncate,
    format_amount,
    format_phone_number,
    truncate,
)
from .signature_service import (
    generate_request_hash,
    generate_response_hash,
    hashes_match,
)

logger = logging.getLogger(__name__)

LIVE_URL = "https://secure.payu.in/_payment"
TEST_URL = "https://test.payu.in/_payment"

SERVICE_PROVIDER = "payu_paisa"

TXNID_MAX_LENGTH = 30
PRODUCTINFO_MAX_LENGTH = 100
NAME_MAX_LENGTH = 60

# field -> (default, max length)
ADDRESS_FIELDS = {
    "address1": ("N/A", 100),
    "city": ("N/A", 20),
    "state": ("N/A", 20),
    "country": ("India", 20),
    "zipcode": ("000000", 10),
}

_TXNID_ALPHABET = string.digits + string.ascii_uppercase


def gateway_url(test_mode: bool) -> str:
    """PayU checkout endpoint for the selected mode."""
    return TEST_URL if test_mode else LIVE_URL


def require_merchant_config(merchant_key: str, merchant_salt: str) -> None:
    """
    Ensure both merchant secrets are configured.

    Raises:
        ConfigError: If key or salt is empty or unset
    """
    missing = [
        name for name, value in (
            ("PAYU_MERCHANT_KEY", merchant_key),
            ("PAYU_MERCHANT_SALT", merchant_salt),
        )
        if not value
    ]
    if missing:
        raise ConfigError(
            "PayU merchant key or salt is missing. Please check your environment variables.",
            details={"missing": missing}
        )


def generate_transaction_id() -> str:
    """
    Generate a unique PayU transaction id.

    Format: TXN + last 10 digits of epoch milliseconds + 6 random base-36
    uppercase characters (19 chars, well under the 30-char gateway limit).
    """
    timestamp = str(int(time.time() * 1000))[-10:]
    suffix = "".join(secrets.choice(_TXNID_ALPHABET) for _ in range(6))
    return f"TXN{timestamp}{suffix}"[:TXNID_MAX_LENGTH]


def build_payment_request(
    merchant_key: str,
    merchant_salt: str,
    params: PaymentParams,
    test_mode: bool = True
) -> PaymentRequest:
    """
    Create the signed PayU payment form.

    Args:
        merchant_key: PayU merchant key
        merchant_salt: PayU merchant salt
        params: Raw payment parameters
        test_mode: Target the PayU test endpoint instead of live

    Returns:
        PaymentRequest with action URL, POST method and all form fields

    Raises:
        ConfigError: Merchant key or salt missing (checked first)
        ValidationError: Email or first name empty, or phone not 10 digits
    """
    require_merchant_config(merchant_key, merchant_salt)

    txnid = truncate(params.transaction_id, TXNID_MAX_LENGTH)
    amount = format_amount(params.amount)
    productinfo = truncate(params.product_info, PRODUCTINFO_MAX_LENGTH)
    firstname = default_trim_truncate(params.first_name, "Customer", NAME_MAX_LENGTH)
    lastname = default_trim_truncate(params.last_name, "User", NAME_MAX_LENGTH)
    email = (params.email or "").strip()
    phone = format_phone_number(params.phone)

    address = {
        field: truncate(getattr(params, field) or default, max_length)
        for field, (default, max_length) in ADDRESS_FIELDS.items()
    }

    if not email or not firstname or len(phone) != PHONE_LENGTH:
        raise ValidationError(
            "Invalid payment parameters",
            details={
                "email": bool(email),
                "firstname": bool(firstname),
                "phone_digits": len(phone),
            }
        )

    hash_value = generate_request_hash(
        merchant_key, txnid, amount, productinfo, firstname, email, merchant_salt
    )

    logger.info(
        f"Built PayU request: txnid={txnid}, amount={amount}, "
        f"hash={hash_value[:12]}..., test_mode={test_mode}"
    )

    fields = {
        "key": merchant_key,
        "txnid": txnid,
        "amount": amount,
        "productinfo": productinfo,
        "firstname": firstname,
        "email": email,
        "phone": phone,
        "surl": params.success_url,
        "furl": params.failure_url,
        "hash": hash_value,
        "service_provider": SERVICE_PROVIDER,
    }

    # Optional fields, sent only when populated
    if lastname:
        fields["lastname"] = lastname
    for field, value in address.items():
        if value:
            fields[field] = value

    return PaymentRequest(action=gateway_url(test_mode), method="POST", fields=fields)


def verify_callback(
    merchant_key: str,
    merchant_salt: str,
    callback: PaymentCallback
) -> bool:
    """
    Verify a PayU return callback against the reverse hash.

    Args:
        merchant_key: PayU merchant key
        merchant_salt: PayU merchant salt
        callback: Parameters received on the return URL

    Returns:
        True only if the recomputed hash equals the supplied one
        (case-insensitive)

    Raises:
        ConfigError: Merchant key or salt missing
    """
    require_merchant_config(merchant_key, merchant_salt)

    expected = generate_response_hash(
        merchant_key,
        callback.txnid,
        callback.amount,
        callback.productinfo,
        callback.firstname,
        callback.email,
        callback.status,
        merchant_salt
    )

    valid = hashes_match(expected, callback.hash)
    if not valid:
        logger.warning(f"PayU callback hash mismatch for txnid={callback.txnid}")
    return valid
