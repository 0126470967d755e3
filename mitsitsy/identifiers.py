"""
Record identifiers.

Every ledger row is keyed by a random UUID-v4 string. There is no shared
counter, so ids can be generated before a row is written (a transfer needs its
pair id before either leg exists).
"""

from uuid import uuid4


def generate_id() -> str:
    """Return a new random UUID-v4 string."""
    return str(uuid4())
