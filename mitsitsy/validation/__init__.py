"""Input validation package."""

from mitsitsy.validation.validator import MAX_STORED_AMOUNT, LedgerValidator, ensure_valid

__all__ = ["MAX_STORED_AMOUNT", "LedgerValidator", "ensure_valid"]
