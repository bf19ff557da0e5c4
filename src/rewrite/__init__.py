"""Patch application and the verified, all-or-nothing file rewrite."""

from rewrite.patch import Patch, apply_patches, patches_for
from rewrite.transaction import TransactionalRewriter, TransactionOutcome

__all__ = [
    "Patch",
    "TransactionOutcome",
    "TransactionalRewriter",
    "apply_patches",
    "patches_for",
]
