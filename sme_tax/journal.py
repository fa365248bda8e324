"""
Double-entry journal engine.

Handles:
- Posting classified bank transactions as balanced journal entries
- Idempotent posting keyed by the external transaction id
- Manual entries and reversing entries (the ledger is append-only)
- Account balances, ledgers and the trial balance
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Optional

import structlog

from sme_tax.accounts import Account, ChartOfAccounts
from sme_tax.classifier import Classification, FlowType, fits_direction
from sme_tax.errors import (
    DuplicateTransactionError,
    UnbalancedEntryError,
    ValidationError,
    duplicate_transaction,
    unbalanced_entry,
)

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")
KOBO = Decimal("0.01")

RECEIVABLE_ACCOUNT = "1100"
PAYABLE_ACCOUNT = "2000"
VAT_INPUT_ACCOUNT = "1400"
VAT_OUTPUT_ACCOUNT = "2200"


class EntrySource(Enum):
    MANUAL = "manual"
    RULE = "rule"
    AI = "ai"
    HYBRID = "hybrid"


_SOURCE_MAP = {
    "rule": EntrySource.RULE,
    "default": EntrySource.RULE,
    "ai": EntrySource.AI,
    "hybrid": EntrySource.HYBRID,
    "manual": EntrySource.MANUAL,
}


def _kobo(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(KOBO, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RawTransaction:
    """A bank or manual transaction as received; amount > 0 is money in."""

    id: str
    date: date
    description: str
    amount: Decimal
    currency: str = "NGN"
    vendor: Optional[str] = None
    reference: Optional[str] = None
    narration: Optional[str] = None
    on_credit: bool = False  # settled through receivables/payables
    vat_inclusive: bool = False

    @property
    def is_inflow(self) -> bool:
        return self.amount > 0

    @classmethod
    def from_dict(cls, data: dict) -> "RawTransaction":
        return cls(
            id=str(data["id"]),
            date=(
                date.fromisoformat(data["date"])
                if isinstance(data.get("date"), str)
                else data.get("date", date.today())
            ),
            description=str(data.get("description", "")),
            amount=Decimal(str(data["amount"])),
            currency=data.get("currency", "NGN"),
            vendor=data.get("vendor"),
            reference=data.get("reference"),
            narration=data.get("narration"),
            on_credit=bool(data.get("on_credit", False)),
            vat_inclusive=bool(data.get("vat_inclusive", False)),
        )


@dataclass(frozen=True)
class JournalLine:
    account_code: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    memo: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", _kobo(self.debit))
        object.__setattr__(self, "credit", _kobo(self.credit))
        if self.debit < 0 or self.credit < 0:
            raise ValidationError(
                "Journal line amounts cannot be negative",
                {"account_code": self.account_code},
            )
        if (self.debit > 0) == (self.credit > 0):
            raise ValidationError(
                "A journal line carries either a debit or a credit",
                {"account_code": self.account_code},
            )

    @property
    def amount(self) -> Decimal:
        return self.debit or self.credit


@dataclass(frozen=True)
class JournalEntry:
    """
    A balanced set of journal lines.

    Construction fails with UnbalancedEntryError unless total debits equal
    total credits exactly, so an unbalanced entry never exists.
    """

    id: str
    date: date
    description: str
    reference: str
    lines: tuple[JournalLine, ...]
    source: EntrySource = EntrySource.MANUAL
    confidence: float = 1.0
    verified: bool = False
    posted: bool = True
    posted_at: Optional[datetime] = None
    transaction_id: Optional[str] = None
    category: Optional[str] = None
    reverses: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))
        if len(self.lines) < 2:
            raise UnbalancedEntryError("An entry needs at least two lines")
        if self.total_debit != self.total_credit:
            raise UnbalancedEntryError(unbalanced_entry(self.total_debit, self.total_credit))

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit

    def accounts(self) -> set[str]:
        return {line.account_code for line in self.lines}


@dataclass
class TrialBalanceRow:
    account_code: str
    account_name: str
    debit: Decimal
    credit: Decimal


@dataclass
class TrialBalance:
    rows: list[TrialBalanceRow] = field(default_factory=list)
    total_debit: Decimal = ZERO
    total_credit: Decimal = ZERO

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


class JournalEngine:
    """
    Posts transactions to an in-memory, append-only ledger.

    The ledger is owned by the caller; every append is atomic and the
    reference ``bank-<transaction id>`` guarantees a transaction is
    posted at most once.
    """

    def __init__(
        self,
        chart: Optional[ChartOfAccounts] = None,
        cash_account: str = "1020",
        vat_rate: Optional[Decimal] = None,
    ) -> None:
        self.chart = chart or ChartOfAccounts()
        self.cash_account = self.chart.require(cash_account).code
        self.vat_rate = vat_rate
        self._entries: list[JournalEntry] = []
        self._by_id: dict[str, JournalEntry] = {}
        self._by_reference: dict[str, JournalEntry] = {}
        self._reversed: set[str] = set()
        self._sequence = 0
        self._lock = threading.Lock()

    @staticmethod
    def reference_for(transaction_id: str) -> str:
        return f"bank-{transaction_id}"

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def build_lines(
        self, txn: RawTransaction, classification: Classification
    ) -> list[JournalLine]:
        """
        Lines for a classified transaction.

        Money in debits the settlement account (cash, or receivables when
        on credit) and credits the classified account; money out debits
        the classified account and credits cash (or payables).
        """
        if txn.amount == 0:
            raise ValidationError("Transaction amount cannot be zero", {"amount": "0"})
        if not fits_direction(classification.flow_type, txn.amount):
            raise ValidationError(
                f"A {classification.flow_type.value} classification cannot carry "
                f"{'money in' if txn.amount > 0 else 'money out'}",
                {"amount": str(txn.amount), "category": classification.category},
            )

        counter = self.chart.require(classification.account_code)
        money_in = txn.amount > 0
        if txn.on_credit:
            settlement = self.chart.require(RECEIVABLE_ACCOUNT if money_in else PAYABLE_ACCOUNT)
        else:
            settlement = self.chart.require(self.cash_account)
        if counter.code == settlement.code:
            raise ValidationError(
                "Classified account must differ from the settlement account",
                {"account_code": counter.code},
            )

        gross = _kobo(abs(txn.amount))
        net, vat = gross, ZERO
        if (
            txn.vat_inclusive
            and self.vat_rate
            and classification.flow_type in (FlowType.INCOME, FlowType.EXPENSE)
        ):
            net = _kobo(gross / (1 + self.vat_rate))
            vat = gross - net

        memo = classification.category
        if money_in:
            lines = [
                JournalLine(settlement.code, debit=gross, memo=txn.description),
                JournalLine(counter.code, credit=net, memo=memo),
            ]
            if vat:
                lines.append(JournalLine(VAT_OUTPUT_ACCOUNT, credit=vat, memo="Output VAT"))
        else:
            lines = [JournalLine(counter.code, debit=net, memo=memo)]
            if vat:
                lines.append(JournalLine(VAT_INPUT_ACCOUNT, debit=vat, memo="Input VAT"))
            lines.append(JournalLine(settlement.code, credit=gross, memo=txn.description))
        return lines

    def post(self, txn: RawTransaction, classification: Classification) -> JournalEntry:
        """
        Post a classified transaction.

        Raises DuplicateTransactionError if the transaction id was posted
        before, UnknownAccountError for accounts outside the chart, and
        UnbalancedEntryError if the lines do not balance. Nothing is
        appended when any of these is raised.
        """
        lines = self.build_lines(txn, classification)
        reference = self.reference_for(txn.id)

        with self._lock:
            existing = self._by_reference.get(reference)
            if existing is not None:
                logger.info("duplicate_transaction_skipped", transaction_id=txn.id, entry_id=existing.id)
                raise DuplicateTransactionError(duplicate_transaction(txn.id, existing.id))

            entry = JournalEntry(
                id=self._next_id(),
                date=txn.date,
                description=txn.description,
                reference=reference,
                lines=tuple(lines),
                source=_SOURCE_MAP.get(classification.source, EntrySource.RULE),
                confidence=classification.confidence,
                posted_at=datetime.now(timezone.utc),
                transaction_id=txn.id,
                category=classification.category,
            )
            self._append(entry)

        logger.debug(
            "entry_posted",
            entry_id=entry.id,
            transaction_id=txn.id,
            category=classification.category,
            amount=str(entry.total_debit),
        )
        return entry

    def post_manual(
        self,
        entry_date: date,
        description: str,
        lines: Iterable[JournalLine],
        reference: Optional[str] = None,
        verified: bool = True,
    ) -> JournalEntry:
        """Post an adjusting entry prepared by hand."""
        lines = tuple(lines)
        for line in lines:
            self.chart.require(line.account_code)

        with self._lock:
            entry_id = self._next_id()
            entry = JournalEntry(
                id=entry_id,
                date=entry_date,
                description=description,
                reference=reference or f"MAN-{entry_id}",
                lines=lines,
                source=EntrySource.MANUAL,
                verified=verified,
                posted_at=datetime.now(timezone.utc),
            )
            self._append(entry)
        return entry

    def reverse(self, entry_id: str, reason: str = "") -> JournalEntry:
        """Post a new entry that cancels ``entry_id``; each entry reverses once."""
        with self._lock:
            original = self._by_id.get(entry_id)
            if original is None:
                raise ValidationError(f"Unknown journal entry {entry_id}", {"entry_id": entry_id})
            if entry_id in self._reversed:
                raise ValidationError(f"Entry {entry_id} already reversed", {"entry_id": entry_id})

            entry = JournalEntry(
                id=self._next_id(),
                date=original.date,
                description=f"Reversal of {entry_id}" + (f": {reason}" if reason else ""),
                reference=f"REV-{entry_id}",
                lines=tuple(
                    JournalLine(line.account_code, debit=line.credit, credit=line.debit, memo=line.memo)
                    for line in original.lines
                ),
                source=EntrySource.MANUAL,
                verified=True,
                posted_at=datetime.now(timezone.utc),
                reverses=entry_id,
            )
            self._append(entry)
            self._reversed.add(entry_id)

        logger.info("entry_reversed", entry_id=entry_id, reversal_id=entry.id, reason=reason)
        return entry

    def _next_id(self) -> str:
        self._sequence += 1
        return f"JE-{self._sequence:06d}"

    def _append(self, entry: JournalEntry) -> None:
        self._entries.append(entry)
        self._by_id[entry.id] = entry
        self._by_reference[entry.reference] = entry

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def entries(self) -> tuple[JournalEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def get(self, entry_id: str) -> Optional[JournalEntry]:
        return self._by_id.get(entry_id)

    def is_posted(self, transaction_id: str) -> bool:
        return self.reference_for(transaction_id) in self._by_reference

    def is_reversed(self, entry_id: str) -> bool:
        return entry_id in self._reversed

    def ledger(self, account_code: str) -> list[tuple[JournalEntry, JournalLine]]:
        """All lines posted to an account, in posting order."""
        self.chart.require(account_code)
        return [
            (entry, line)
            for entry in self.entries
            for line in entry.lines
            if line.account_code == account_code
        ]

    def account_balance(self, account_code: str) -> Decimal:
        """Balance on the account's normal side (debit for assets and expenses)."""
        account: Account = self.chart.require(account_code)
        debits = credits = ZERO
        for _, line in self.ledger(account_code):
            debits += line.debit
            credits += line.credit
        return debits - credits if account.is_debit_normal else credits - debits

    def trial_balance(self) -> TrialBalance:
        totals: dict[str, list[Decimal]] = {}
        for entry in self.entries:
            for line in entry.lines:
                pair = totals.setdefault(line.account_code, [ZERO, ZERO])
                pair[0] += line.debit
                pair[1] += line.credit

        tb = TrialBalance()
        for code in sorted(totals):
            debit, credit = totals[code]
            net = debit - credit
            row = TrialBalanceRow(
                account_code=code,
                account_name=self.chart.require(code).name,
                debit=net if net > 0 else ZERO,
                credit=-net if net < 0 else ZERO,
            )
            tb.rows.append(row)
            tb.total_debit += row.debit
            tb.total_credit += row.credit
        return tb
