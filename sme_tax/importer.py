"""
Bank statement import into the journal.

Each bank transaction is validated, classified and posted on its own;
a malformed row or a duplicate is reported in the batch summary and
never fails the rest of the batch.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

import structlog

from sme_tax.classifier import Classification, ClassificationChain, FlowType, TransactionClassifier
from sme_tax.errors import (
    DuplicateTransactionError,
    SMETaxError,
    TransactionImportError,
)
from sme_tax.journal import JournalEngine, RawTransaction

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")
SUPPORTED_CURRENCY = "NGN"


@dataclass(frozen=True)
class BankTransaction:
    """A row from a bank feed; ``amount`` is always positive, ``type`` gives direction."""

    id: str
    date: date
    description: str
    amount: Decimal
    type: str  # credit, debit
    narration: Optional[str] = None
    reference: Optional[str] = None
    currency: str = SUPPORTED_CURRENCY

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BankTransaction":
        """Parse a loosely typed row, raising TransactionImportError when malformed."""
        try:
            raw_date = data["date"]
            txn_date = (
                raw_date if isinstance(raw_date, date) else date.fromisoformat(str(raw_date)[:10])
            )
            amount = Decimal(str(data["amount"]).replace(",", ""))
        except (KeyError, ValueError, InvalidOperation) as e:
            raise TransactionImportError(f"Malformed bank transaction: {e}") from e

        txn_type = str(data.get("type", "")).strip().lower()
        if not txn_type:
            txn_type = "credit" if amount >= 0 else "debit"
        return cls(
            id=str(data.get("id", "")).strip(),
            date=txn_date,
            description=str(data.get("description", "")).strip(),
            amount=abs(amount),
            type=txn_type,
            narration=data.get("narration") or None,
            reference=data.get("reference") or None,
            currency=str(data.get("currency") or SUPPORTED_CURRENCY).upper(),
        )

    def validate(self) -> None:
        problems: list[str] = []
        if not self.id:
            problems.append("missing id")
        if not self.description:
            problems.append("missing description")
        if self.type not in ("credit", "debit"):
            problems.append(f"type must be credit or debit, got {self.type!r}")
        if self.amount <= 0:
            problems.append("amount must be positive")
        if self.currency != SUPPORTED_CURRENCY:
            problems.append(f"unsupported currency {self.currency}")
        if problems:
            raise TransactionImportError("; ".join(problems))

    def to_raw(self) -> RawTransaction:
        signed = self.amount if self.type == "credit" else -self.amount
        return RawTransaction(
            id=self.id,
            date=self.date,
            description=self.description,
            amount=signed,
            currency=self.currency,
            reference=self.reference,
            narration=self.narration,
        )


@dataclass
class ImportResult:
    success: bool
    transaction_id: str
    category: str = ""
    description: str = ""
    amount: Decimal = ZERO
    type: str = ""  # credit, debit
    flow_type: Optional[FlowType] = None
    journal_id: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False  # already posted


@dataclass
class BatchImportSummary:
    total: int = 0
    imported: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[ImportResult] = field(default_factory=list)
    income: Decimal = ZERO
    expenses: Decimal = ZERO

    @property
    def net_amount(self) -> Decimal:
        return self.income - self.expenses

    @property
    def summary(self) -> dict[str, Decimal]:
        return {"income": self.income, "expenses": self.expenses, "net_amount": self.net_amount}

    def add(self, result: ImportResult) -> None:
        self.results.append(result)
        self.total += 1
        if result.skipped:
            self.skipped += 1
        elif not result.success:
            self.failed += 1
        else:
            self.imported += 1
            # financing, capital and transfer flows are neither
            if result.flow_type == FlowType.INCOME:
                self.income += result.amount
            elif result.flow_type == FlowType.EXPENSE:
                self.expenses += result.amount


class BankImporter:
    """Validates, classifies and posts bank transactions."""

    def __init__(
        self,
        engine: JournalEngine,
        classifier: Optional[TransactionClassifier] = None,
        chain: Optional[ClassificationChain] = None,
    ) -> None:
        self.engine = engine
        self.classifier = classifier or TransactionClassifier()
        self.chain = chain

    def _coerce(self, item: BankTransaction | dict[str, Any]) -> BankTransaction:
        txn = item if isinstance(item, BankTransaction) else BankTransaction.from_dict(item)
        txn.validate()
        return txn

    def _post(self, txn: BankTransaction, classification: Classification) -> ImportResult:
        try:
            entry = self.engine.post(txn.to_raw(), classification)
        except DuplicateTransactionError as e:
            return ImportResult(
                success=False, transaction_id=txn.id, category=classification.category,
                description=txn.description, amount=txn.amount, type=txn.type,
                flow_type=classification.flow_type,
                error=str(e), skipped=True,
            )
        except SMETaxError as e:
            logger.warning("import_row_failed", transaction_id=txn.id, error=str(e))
            return ImportResult(
                success=False, transaction_id=txn.id, category=classification.category,
                description=txn.description, amount=txn.amount, type=txn.type,
                flow_type=classification.flow_type, error=str(e),
            )
        return ImportResult(
            success=True,
            transaction_id=txn.id,
            category=classification.category,
            description=txn.description,
            amount=txn.amount,
            type=txn.type,
            flow_type=classification.flow_type,
            journal_id=entry.id,
        )

    @staticmethod
    def _rejected(item: Any, error: Exception) -> ImportResult:
        if isinstance(item, BankTransaction):
            txn_id = item.id
        elif isinstance(item, dict):
            txn_id = str(item.get("id", ""))
        else:
            txn_id = ""
        logger.warning("import_row_rejected", transaction_id=txn_id, error=str(error))
        return ImportResult(success=False, transaction_id=txn_id, error=str(error))

    def import_transaction(self, item: BankTransaction | dict[str, Any]) -> ImportResult:
        """Import one transaction with the rule classifier."""
        try:
            txn = self._coerce(item)
        except TransactionImportError as e:
            return self._rejected(item, e)
        classification = self.classifier.classify(txn.description, txn.to_raw().amount, txn.narration)
        return self._post(txn, classification)

    def import_batch(self, items: Iterable[BankTransaction | dict[str, Any]]) -> BatchImportSummary:
        summary = BatchImportSummary()
        for item in items:
            summary.add(self.import_transaction(item))
        self._log_summary(summary)
        return summary

    async def import_transaction_async(self, item: BankTransaction | dict[str, Any]) -> ImportResult:
        """Import one transaction, consulting the AI chain when configured."""
        try:
            txn = self._coerce(item)
        except TransactionImportError as e:
            return self._rejected(item, e)
        signed = txn.to_raw().amount
        if self.chain is not None:
            classification = await self.chain.classify(txn.description, signed, txn.narration)
        else:
            classification = self.classifier.classify(txn.description, signed, txn.narration)
        return self._post(txn, classification)

    async def import_batch_async(
        self, items: Iterable[BankTransaction | dict[str, Any]]
    ) -> BatchImportSummary:
        """Classify concurrently; each post is atomic and order-independent."""
        results = await asyncio.gather(*(self.import_transaction_async(i) for i in items))
        summary = BatchImportSummary()
        for result in results:
            summary.add(result)
        self._log_summary(summary)
        return summary

    @staticmethod
    def _log_summary(summary: BatchImportSummary) -> None:
        logger.info(
            "bank_import_complete",
            total=summary.total,
            imported=summary.imported,
            failed=summary.failed,
            skipped=summary.skipped,
            net_amount=str(summary.net_amount),
        )
