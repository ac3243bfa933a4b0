#!/usr/bin/env python3
"""
Request a voucher from a running server and verify it.

Start the server first:

    MINTAUTH_SIGNER_KEY=0x... mintauth serve
"""
import sys
import argparse

import requests

from mintauth.models import Voucher
from mintauth.signer import VoucherDomain, VoucherSigner, encode_voucher


def main():
    """Run the example."""
    parser = argparse.ArgumentParser(description="Request a mint authorization voucher.")
    parser.add_argument("address", help="Recipient address")
    parser.add_argument("name", help="Display name")
    parser.add_argument("--url", default="http://127.0.0.1:8000", help="Server URL")
    args = parser.parse_args()

    health = requests.get(f"{args.url}/healthz", timeout=10).json()
    response = requests.post(
        f"{args.url}/mint-authorization",
        json={"requesterAddress": args.address, "displayName": args.name},
        timeout=30
    )
    body = response.json()
    if response.status_code != 200:
        print(f"Rejected ({response.status_code}, {body.get('code')}): {body['error']}")
        return 1

    voucher = Voucher.model_validate(body["voucher"])
    print(f"Voucher {voucher.sequence_number} for {voucher.to}, uid {voucher.uid}")

    domain = VoucherDomain(chain_id=health["chainId"], verifying_contract=health["collection"])
    valid = VoucherSigner.verify_encoded(encode_voucher(voucher, domain), body["signature"], health["signer"])
    print(f"Signature valid: {valid}")
    return 0 if valid else 1


if __name__ == "__main__":
    sys.exit(main())
