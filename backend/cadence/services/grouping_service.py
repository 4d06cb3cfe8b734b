"""Merchant key normalization and per-merchant transaction grouping."""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from cadence.schemas.transaction import TransactionRecord

UNKNOWN_MERCHANT = "Unknown"


@dataclass
class MerchantGroup:
    """All of one user's transactions sharing a merchant key, oldest first."""
    key: str
    transactions: List[TransactionRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.transactions)


def normalize_merchant_key(merchant: Optional[str]) -> str:
    """
    Map a raw merchant string to its grouping key.

    Matching is exact after trimming surrounding whitespace, so "Netflix" and
    "NETFLIX.COM" stay separate groups. Missing merchants share one bucket.
    """
    if merchant is None:
        return UNKNOWN_MERCHANT
    key = merchant.strip()
    return key or UNKNOWN_MERCHANT


def group_transactions(
    transactions: Iterable[TransactionRecord],
    min_transactions: int = 3
) -> Dict[str, MerchantGroup]:
    """
    Partition transactions by merchant key and sort each group by date.

    Groups smaller than min_transactions are dropped.
    """
    buckets: Dict[str, List[TransactionRecord]] = defaultdict(list)
    for txn in transactions:
        buckets[normalize_merchant_key(txn.merchant)].append(txn)

    groups = {}
    for key, txns in buckets.items():
        if len(txns) < min_transactions:
            continue
        # id as tie-breaker keeps same-day ordering stable between runs
        txns.sort(key=lambda t: (t.transaction_date, t.id))
        groups[key] = MerchantGroup(key=key, transactions=txns)

    return groups
