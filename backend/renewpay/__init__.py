"""RenewPay: subscription renewal billing through the PayU hosted checkout."""

__version__ = "0.1.0"
