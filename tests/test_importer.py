"""Tests for bank statement import."""

from decimal import Decimal

import pytest

from sme_tax.classifier import Classification, ClassificationChain, FlowType
from sme_tax.importer import BankImporter, BankTransaction
from sme_tax.errors import TransactionImportError
from sme_tax.journal import JournalEngine


def _row(txn_id: str, description: str, amount: str, txn_type: str, **kw) -> dict:
    return {"id": txn_id, "date": "2024-03-01", "description": description, "amount": amount, "type": txn_type, **kw}


@pytest.fixture
def engine() -> JournalEngine:
    return JournalEngine()


@pytest.fixture
def importer(engine: JournalEngine) -> BankImporter:
    return BankImporter(engine)


def test_bank_transaction_from_dict_parses_amount():
    txn = BankTransaction.from_dict(_row("1", "Invoice payment received", "1,250,000.50", "CREDIT"))
    assert txn.amount == Decimal("1250000.50")
    assert txn.type == "credit"
    assert txn.to_raw().amount == Decimal("1250000.50")


def test_debit_is_signed_negative():
    txn = BankTransaction.from_dict(_row("1", "Salary payment", "150000", "debit"))
    assert txn.to_raw().amount == Decimal("-150000")


def test_missing_type_inferred_from_sign():
    txn = BankTransaction.from_dict({"id": "1", "date": "2024-03-01", "description": "x", "amount": "-5"})
    assert txn.type == "debit"
    assert txn.amount == Decimal("5")


def test_malformed_date_rejected():
    with pytest.raises(TransactionImportError):
        BankTransaction.from_dict(_row("1", "x", "5", "credit", date="01/03/2024"))


def test_foreign_currency_rejected():
    txn = BankTransaction.from_dict(_row("1", "x", "5", "credit", currency="usd"))
    with pytest.raises(TransactionImportError, match="USD"):
        txn.validate()


def test_import_transaction_posts_entry(importer: BankImporter, engine: JournalEngine):
    result = importer.import_transaction(_row("1", "Salary payment", "150000", "debit"))
    assert result.success is True
    assert result.category == "salary-expense"
    assert result.journal_id == engine.entries[0].id


def test_batch_isolates_bad_rows(importer: BankImporter, engine: JournalEngine):
    summary = importer.import_batch(
        [
            _row("1", "Invoice payment received", "500000", "credit"),
            _row("2", "Salary payment", "150000", "debit"),
            _row("3", "Broken", "not-a-number", "debit"),
            _row("4", "Something", "100", "sideways"),
            _row("1", "Invoice payment received", "500000", "credit"),
        ]
    )
    assert summary.total == 5
    assert summary.imported == 2
    assert summary.failed == 2
    assert summary.skipped == 1
    assert summary.income == Decimal("500000")
    assert summary.expenses == Decimal("150000")
    assert summary.net_amount == Decimal("350000")
    assert len(engine.entries) == 2


def test_batch_totals_follow_flow_type(importer: BankImporter):
    summary = importer.import_batch(
        [
            _row("1", "Loan disbursement received from bank", "5000000", "credit"),
            _row("2", "Capital injection from director", "1000000", "credit"),
            _row("3", "Purchase of laptop", "480000", "debit"),
            _row("4", "Loan repayment installment", "150000", "debit"),
            _row("5", "Consulting fee received", "400000", "credit"),
            _row("6", "Ikeja Electric prepaid", "45000", "debit"),
        ]
    )
    assert summary.imported == 6
    assert summary.income == Decimal("400000")
    assert summary.expenses == Decimal("45000")
    assert [r.flow_type for r in summary.results] == [
        FlowType.LIABILITY,
        FlowType.EQUITY,
        FlowType.ASSET,
        FlowType.LIABILITY,
        FlowType.INCOME,
        FlowType.EXPENSE,
    ]


def test_rejected_row_keeps_its_id(importer: BankImporter):
    result = importer.import_transaction(_row("X9", "", "10", "credit"))
    assert result.success is False
    assert result.transaction_id == "X9"
    assert "missing description" in result.error


@pytest.mark.asyncio
async def test_async_batch_posts_each_transaction_once(engine: JournalEngine):
    importer = BankImporter(engine)
    rows = [_row(str(i), "Invoice payment received", "1000", "credit") for i in range(20)]
    rows += [_row("5", "Invoice payment received", "1000", "credit")]
    summary = await importer.import_batch_async(rows)
    assert summary.imported == 20
    assert summary.skipped == 1
    assert len(engine.entries) == 20
    assert engine.trial_balance().is_balanced


class _RentAI:
    async def classify(self, description, amount, narration=None):
        return Classification("rent-expense", FlowType.EXPENSE, "5600", 0.95, source="ai")


@pytest.mark.asyncio
async def test_async_import_uses_classification_chain(engine: JournalEngine):
    importer = BankImporter(engine, chain=ClassificationChain(ai_classifier=_RentAI()))
    result = await importer.import_transaction_async(_row("1", "Transfer to Mr Okafor", "300000", "debit"))
    assert result.success is True
    assert result.category == "rent-expense"
    assert engine.account_balance("5600") == Decimal("300000.00")
