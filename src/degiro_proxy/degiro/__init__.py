"""DeGiro brokerage integration."""

from degiro_proxy.degiro.batching import PRODUCT_BATCH_SIZE, batch_fetch, chunks
from degiro_proxy.degiro.client import DegiroClient, rejection_error
from degiro_proxy.degiro.dates import default_transaction_range, resolve_transaction_range

__all__ = [
    "PRODUCT_BATCH_SIZE",
    "DegiroClient",
    "batch_fetch",
    "chunks",
    "default_transaction_range",
    "rejection_error",
    "resolve_transaction_range",
]
