#!/usr/bin/env python3
"""
Simple example of issuing a voucher in-process.
"""
import os
import json

from mintauth import (
    AuthorizationService, EligibilityPolicy, InMemoryLedger, SigningAuthority, VoucherDomain
)


def main():
    """
    Demonstrate basic usage of the AuthorizationService.

    This example shows how to:
    1. Load the signing authority
    2. Configure the eligibility policy
    3. Authorize a claim and verify the returned signature
    """
    # Read configuration from environment
    SIGNER_KEY = os.environ.get("MINTAUTH_SIGNER_KEY")
    COLLECTION = os.environ.get("MINTAUTH_COLLECTION_ADDRESS", "0xA5EE8c548506d4Eb2dd2A24d85d45263180D7F7B")
    CHAIN_ID = int(os.environ.get("MINTAUTH_CHAIN_ID", "80001"))

    if not SIGNER_KEY:
        print("ERROR: MINTAUTH_SIGNER_KEY environment variable is required")
        return

    authority = SigningAuthority.from_key(SIGNER_KEY, VoucherDomain(chain_id=CHAIN_ID, verifying_contract=COLLECTION))
    service = AuthorizationService(
        authority=authority,
        policy=EligibilityPolicy(max_supply=100, allowed_names={"fox", "owl"}),
        # Seven units already minted by someone else
        ledger=InMemoryLedger(holdings={"0x" + "22" * 20: 7}),
    )

    response = service.authorize({
        "requesterAddress": "0x" + "11" * 20,
        "displayName": "Owl",
    })

    print(f"Status: {response.status_code}")
    print(json.dumps(response.body, indent=2))

    rejected = service.authorize({"requesterAddress": "0x" + "33" * 20, "displayName": "Dog"})
    print(f"Dog: {rejected.status_code} {rejected.body['error']}")


if __name__ == "__main__":
    main()
