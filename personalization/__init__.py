"""Customer lookup used to personalize the conversation."""

from personalization.customer_directory import (
    CustomerRecord,
    InMemoryCustomerDirectory,
    HttpCustomerDirectory,
    normalize_phone,
)

__all__ = [
    "CustomerRecord",
    "InMemoryCustomerDirectory",
    "HttpCustomerDirectory",
    "normalize_phone",
]
