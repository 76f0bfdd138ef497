"""
Signature Service for PayU Hashes

Implements the SHA-512 request hash and reverse response hash used by the
PayU hosted checkout. Both are anchored by the merchant salt, which never
leaves this process.

Request:  key|txnid|amount|productinfo|firstname|email|||||||||||salt
Response: salt|status|||||||||||email|firstname|productinfo|amount|txnid|key
"""
import hmac
import hashlib

# udf1..udf5 plus five reserved slots, always empty in this integration.
# Ten empty fields put eleven pipes between email and salt.
EMPTY_FIELD_COUNT = 10


def sha512_hex(value: str) -> str:
    """Lowercase hex SHA-512 digest of a UTF-8 string."""
    return hashlib.sha512(value.encode('utf-8')).hexdigest()


def create_request_hash_string(
    key: str,
    txnid: str,
    amount: str,
    productinfo: str,
    firstname: str,
    email: str,
    salt: str
) -> str:
    """
    Build the pipe-delimited string signed for an outbound payment.

    Last name, phone and address fields are not part of the PayU hash.
    """
    head = [key, txnid, amount, productinfo, firstname, email]
    return "|".join(head + [""] * EMPTY_FIELD_COUNT + [salt])


def create_response_hash_string(
    key: str,
    txnid: str,
    amount: str,
    productinfo: str,
    firstname: str,
    email: str,
    status: str,
    salt: str
) -> str:
    """Build the reverse-order string PayU signs on the return callback."""
    tail = [email, firstname, productinfo, amount, txnid, key]
    return "|".join([salt, status] + [""] * EMPTY_FIELD_COUNT + tail)


def generate_request_hash(
    key: str,
    txnid: str,
    amount: str,
    productinfo: str,
    firstname: str,
    email: str,
    salt: str
) -> str:
    """
    Compute the SHA-512 hash for a PayU payment request.

    Args:
        key: Merchant key
        txnid: Normalized transaction id
        amount: Amount formatted with 2 decimals
        productinfo: Normalized product description
        firstname: Normalized payer first name
        email: Trimmed payer email
        salt: Merchant salt

    Returns:
        128-char lowercase hex digest
    """
    return sha512_hex(create_request_hash_string(
        key, txnid, amount, productinfo, firstname, email, salt
    ))


def generate_response_hash(
    key: str,
    txnid: str,
    amount: str,
    productinfo: str,
    firstname: str,
    email: str,
    status: str,
    salt: str
) -> str:
    """Compute the hash PayU is expected to send with a callback."""
    return sha512_hex(create_response_hash_string(
        key, txnid, amount, productinfo, firstname, email, status, salt
    ))


def hashes_match(expected: str, supplied: str) -> bool:
    """
    Case-insensitive, constant-time comparison of two hex digests.

    Returns False for an empty supplied hash.
    """
    if not supplied:
        return False
    return hmac.compare_digest(
        expected.lower().encode('utf-8'),
        supplied.strip().lower().encode('utf-8')
    )
