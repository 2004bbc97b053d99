"""Business-key matching between the JobBoss and Customer order lists.

Records are bucketed once per side by business key, then paired
positionally inside each bucket (first JobBoss record with first Customer
record, and so on). Leftovers on either side become one-sided pairs.
"""

from typing import Dict, Hashable, List, Sequence

from models.orders import OrderRecord
from models.scrub import MatchedPair


def bucket_by_key(
    records: Sequence[OrderRecord],
    include_revision: bool = False,
) -> Dict[Hashable, List[OrderRecord]]:
    """Group records by business key, preserving input order within and across keys."""
    buckets: Dict[Hashable, List[OrderRecord]] = {}
    for record in records:
        buckets.setdefault(record.business_key(include_revision), []).append(record)
    return buckets


def match_orders(
    jobboss_orders: Sequence[OrderRecord],
    customer_orders: Sequence[OrderRecord],
    match_on_revision: bool = False,
) -> List[MatchedPair]:
    """Pair JobBoss and Customer records by business key.

    Every input record appears in exactly one returned pair. Output order
    follows the first occurrence of each key in the JobBoss list, then keys
    that appear only in the Customer list. Within a key: positional pairs,
    then leftover JobBoss records, then leftover Customer records.

    Args:
        jobboss_orders: Normalized JobBoss records
        customer_orders: Normalized Customer records
        match_on_revision: Refine the key with the revision

    Returns:
        MatchedPairs without discrepancies; see detect_discrepancies
    """
    jobboss_buckets = bucket_by_key(jobboss_orders, match_on_revision)
    customer_buckets = bucket_by_key(customer_orders, match_on_revision)

    pairs: List[MatchedPair] = []

    for key, jobboss_bucket in jobboss_buckets.items():
        customer_bucket = customer_buckets.get(key, [])
        paired = min(len(jobboss_bucket), len(customer_bucket))

        for jobboss, customer in zip(jobboss_bucket[:paired], customer_bucket[:paired]):
            pairs.append(MatchedPair(jobboss=jobboss, customer=customer))
        for jobboss in jobboss_bucket[paired:]:
            pairs.append(MatchedPair(jobboss=jobboss))
        for customer in customer_bucket[paired:]:
            pairs.append(MatchedPair(customer=customer))

    for key, customer_bucket in customer_buckets.items():
        if key in jobboss_buckets:
            continue
        for customer in customer_bucket:
            pairs.append(MatchedPair(customer=customer))

    return pairs
