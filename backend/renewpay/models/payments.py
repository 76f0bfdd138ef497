"""
Pydantic Payment Models

Outbound PayU form parameters and descriptor, and the inbound PayU callback.
"""
from decimal import Decimal
from typing import Dict, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class PaymentParams(BaseModel):
    """
    Raw inputs for a PayU payment form, before normalization.

    Truncation and defaults are applied by the request builder, not here,
    so over-long values are accepted.
    """
    transaction_id: str
    amount: Decimal = Field(gt=0)
    product_info: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    success_url: str
    failure_url: str
    address1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zipcode: Optional[str] = None


class PaymentRequest(BaseModel):
    """
    Signed HTML form descriptor for the PayU hosted checkout.

    The browser renders `fields` as hidden inputs and auto-submits to `action`.
    """
    action: str
    method: Literal["POST"] = "POST"
    fields: Dict[str, str]

    model_config = {
        "json_schema_extra": {
            "example": {
                "action": "https://test.payu.in/_payment",
                "method": "POST",
                "fields": {
                    "key": "gtKFFx",
                    "txnid": "TXN1734523456ABC123",
                    "amount": "3000.00",
                    "productinfo": "Inventory Subscription Renewal - Annual Plan",
                    "firstname": "Asha",
                    "email": "asha@example.com",
                    "phone": "9876543210",
                    "surl": "https://billing.example.com/api/payments/payu/success?txnid=TXN1734523456ABC123",
                    "furl": "https://billing.example.com/api/payments/payu/failure?txnid=TXN1734523456ABC123",
                    "hash": "<sha512 hex>",
                    "service_provider": "payu_paisa",
                    "lastname": "Rao",
                }
            }
        }
    }


class PaymentCallback(BaseModel):
    """
    Parameters PayU posts back to the success/failure URL.

    Must be verified with the reverse hash before any field is trusted.
    Unknown gateway parameters are ignored.
    """
    status: str = ""
    txnid: str = ""
    amount: str = ""
    productinfo: str = ""
    firstname: str = ""
    email: str = ""
    hash: str = ""
    mihpayid: Optional[str] = None
    mode: Optional[str] = None
    unmappedstatus: Optional[str] = None
    error_message: Optional[str] = Field(default=None, alias="error_Message")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @property
    def is_failure(self) -> bool:
        """Gateway reported failure or user cancelled."""
        return self.status.strip().lower() in ("failure", "cancel")

    @property
    def is_success(self) -> bool:
        """Gateway confirmed the payment was captured."""
        return self.status.strip().lower() == "success"
