#!/usr/bin/env python3
"""
Smoke test for the renewal checkout against a running server.

Signs in, starts a renewal, prints the PayU form, then posts a simulated
PayU success callback signed with the configured merchant salt.

Usage:
    PAYU_MERCHANT_KEY=... PAYU_MERCHANT_SALT=... python smoke_checkout.py user_demo_001
"""
import os
import sys

import requests

from renewpay.services.signature_service import generate_response_hash

BASE_URL = os.environ.get("RENEWPAY_URL", "http://localhost:8000")


def smoke_checkout(user_id: str):
    """Run sign-in -> renew -> simulated success callback."""
    key = os.environ.get("PAYU_MERCHANT_KEY", "")
    salt = os.environ.get("PAYU_MERCHANT_SALT", "")

    http = requests.Session()

    print(f"🔗 Connecting to: {BASE_URL}")
    print("=" * 70)

    try:
        response = http.post(
            f"{BASE_URL}/api/sessions",
            json={
                "user_id": user_id,
                "full_name": "Demo Owner",
                "email": "owner@example.com",
                "phone": "+91 98765 43210",
            },
            timeout=10,
        )
        response.raise_for_status()
        print(f"✅ Signed in: {response.json()['session_id'][:16]}...")

        response = http.post(f"{BASE_URL}/api/subscriptions/renew", timeout=10)
        if response.status_code != 200:
            print(f"❌ Error: HTTP {response.status_code}")
            print(response.text)
            return

        form = response.json()["payment_form"]
        fields = form["fields"]
        print(f"\n📨 PayU form -> {form['method']} {form['action']}")
        for name, value in fields.items():
            shown = value[:20] + "..." if name == "hash" else value
            print(f"      {name}: {shown}")

        callback = {
            "status": "success",
            "txnid": fields["txnid"],
            "amount": fields["amount"],
            "productinfo": fields["productinfo"],
            "firstname": fields["firstname"],
            "email": fields["email"],
            "mihpayid": "smoke-test",
        }
        callback["hash"] = generate_response_hash(
            key, callback["txnid"], callback["amount"], callback["productinfo"],
            callback["firstname"], callback["email"], callback["status"], salt
        )

        response = http.post(f"{BASE_URL}/api/payments/payu/success", data=callback, timeout=10)
        print(f"\n📡 Callback: HTTP {response.status_code}")
        print(f"      {response.json()}")

        response = http.get(
            f"{BASE_URL}/api/subscriptions/status", params={"user_id": user_id}, timeout=10
        )
        print(f"\n✅ Status: {response.json()}")

    except requests.exceptions.Timeout:
        print("❌ Timeout - server took too long to respond")
    except requests.exceptions.ConnectionError:
        print("❌ Connection error - is the server running?")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python smoke_checkout.py <user_id>")
        sys.exit(1)

    smoke_checkout(sys.argv[1])
