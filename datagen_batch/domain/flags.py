"""
Flag Calculator -- deterministic per-customer generation decisions.

Pure functions.  ZERO I/O, no PRNG, no process-dependent hashing (Python's
``hash()`` is salted per process and must not be used here).

The customer id is hashed with the 32-bit polynomial string hash
(``h = h * 31 + code_point``, wrapped to signed 32-bit), reduced to a bucket
``r = abs(h) % 100``, and every flag is a threshold on the same bucket:

    summary    r < 90
    detail     r < 50
    collateral r < 40
    channel A  r < 33
    channel B  r < 25

The thresholds are nested: a customer below a lower threshold is below every
higher one, so the flags form a monotone chain rather than independent draws.
"""

from __future__ import annotations

from datagen_batch.domain.types import GenerationFlags

SUMMARY_THRESHOLD = 90
DETAIL_THRESHOLD = 50
CHANNEL_A_THRESHOLD = 33
CHANNEL_B_THRESHOLD = 25
COLLATERAL_THRESHOLD = 40

_MASK_32 = 0xFFFFFFFF


def hash_customer_id(customer_id: str) -> int:
    """Signed 32-bit polynomial hash of ``customer_id`` (stable across processes)."""
    h = 0
    for ch in customer_id:
        h = (h * 31 + ord(ch)) & _MASK_32
    if h & 0x80000000:
        h -= 1 << 32
    return h


def flag_bucket(customer_id: str) -> int:
    """Bucket ``r`` in [0, 100) shared by every threshold."""
    return abs(hash_customer_id(customer_id)) % 100


def compute_flags(customer_id: str) -> GenerationFlags:
    """Derive the five generation flags for ``customer_id``."""
    r = flag_bucket(customer_id)
    return GenerationFlags(
        generate_summary=r < SUMMARY_THRESHOLD,
        generate_detail=r < DETAIL_THRESHOLD,
        generate_channel_a=r < CHANNEL_A_THRESHOLD,
        generate_channel_b=r < CHANNEL_B_THRESHOLD,
        generate_collateral=r < COLLATERAL_THRESHOLD,
    )
