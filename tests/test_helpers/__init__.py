from .service_creator import (
    create_test_service,
    create_test_authority,
    TEST_PRIV_KEY,
    TEST_CHAIN_ID,
    TEST_COLLECTION,
    TEST_NOW,
    HOLDER_A,
    HOLDER_B,
    HOLDER_C,
)

__all__ = [
    "create_test_service",
    "create_test_authority",
    "TEST_PRIV_KEY",
    "TEST_CHAIN_ID",
    "TEST_COLLECTION",
    "TEST_NOW",
    "HOLDER_A",
    "HOLDER_B",
    "HOLDER_C",
]
