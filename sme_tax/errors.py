"""Error taxonomy for the books-to-tax pipeline and shared error messages."""

from __future__ import annotations

from typing import Optional


class SMETaxError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ConfigurationError(SMETaxError):
    """Missing or corrupt rulebook. Always fatal for a computation."""


class ValidationError(SMETaxError):
    """Malformed or out-of-range input, rejected before any computation.

    ``errors`` maps each offending field to a message.
    """

    def __init__(self, message: str, errors: Optional[dict[str, str]] = None) -> None:
        super().__init__(message)
        self.errors: dict[str, str] = dict(errors or {})


class FormulaEvaluationError(SMETaxError):
    """Unsafe or malformed formula. Degrades a single reconciliation row."""


class TransactionImportError(SMETaxError):
    """A bank transaction could not be imported."""


class DuplicateTransactionError(TransactionImportError):
    """The transaction has already been posted to the ledger."""


class UnknownAccountError(SMETaxError):
    """Reference to an account code that is not in the chart."""


class UnbalancedEntryError(SMETaxError):
    """Journal lines whose debits and credits do not agree."""


class ComplianceViolationError(SMETaxError):
    """Raised by the strict compliance policy when an error-severity rule fails."""

    def __init__(self, message: str, rule_ids: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.rule_ids: list[str] = list(rule_ids or [])


def rulebook_missing(jurisdiction: str, tax_year: int, path: str) -> str:
    """Return message for a rulebook document that does not exist."""
    return (
        f"Tax rulebook missing for {jurisdiction} in {tax_year}. "
        f"Expected at {path}"
    )


def account_not_found(code: str) -> str:
    """Return message for a missing account code."""
    return f"Account {code} not found in chart of accounts"


def duplicate_transaction(transaction_id: str, entry_id: str) -> str:
    """Return message for a transaction that was already posted."""
    return f"Transaction '{transaction_id}' already posted as {entry_id}"


def unbalanced_entry(debits: object, credits: object) -> str:
    """Return message for a journal entry that does not balance."""
    return f"Entry does not balance: debits {debits} != credits {credits}"
