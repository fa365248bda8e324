"""Tests for the double-entry journal engine."""

from datetime import date
from decimal import Decimal
from threading import Thread

import pytest

from sme_tax.classifier import Classification, FlowType, TransactionClassifier
from sme_tax.errors import (
    DuplicateTransactionError,
    UnbalancedEntryError,
    UnknownAccountError,
    ValidationError,
)
from sme_tax.journal import JournalEngine, JournalLine, RawTransaction


@pytest.fixture
def engine() -> JournalEngine:
    return JournalEngine()


def _raw(txn_id: str = "T1", amount: str = "-150000", description: str = "Salary payment", **kw) -> RawTransaction:
    return RawTransaction(
        id=txn_id,
        date=date(2024, 3, 1),
        description=description,
        amount=Decimal(amount),
        **kw,
    )


def _post(engine: JournalEngine, txn: RawTransaction):
    classification = TransactionClassifier().classify(txn.description, txn.amount, txn.narration)
    return engine.post(txn, classification)


# ── Posting ───────────────────────────────────────────────────────────


def test_money_out_debits_expense_credits_cash(engine: JournalEngine):
    entry = _post(engine, _raw())
    assert entry.is_balanced
    assert [(l.account_code, l.debit, l.credit) for l in entry.lines] == [
        ("5500", Decimal("150000.00"), Decimal("0.00")),
        ("1020", Decimal("0.00"), Decimal("150000.00")),
    ]
    assert entry.reference == "bank-T1"
    assert entry.category == "salary-expense"


def test_money_in_debits_cash_credits_income(engine: JournalEngine):
    entry = _post(engine, _raw("T2", "500000", "Invoice payment received"))
    debit, credit = entry.lines
    assert (debit.account_code, debit.debit) == ("1020", Decimal("500000.00"))
    assert (credit.account_code, credit.credit) == ("4000", Decimal("500000.00"))


def test_on_credit_uses_receivables(engine: JournalEngine):
    entry = _post(engine, _raw("T3", "250000", "Invoice payment received", on_credit=True))
    assert entry.lines[0].account_code == "1100"


def test_vat_inclusive_splits_output_vat():
    engine = JournalEngine(vat_rate=Decimal("0.075"))
    entry = _post(engine, _raw("T4", "107500", "Invoice payment received", vat_inclusive=True))
    codes = {l.account_code: l for l in entry.lines}
    assert codes["4000"].credit == Decimal("100000.00")
    assert codes["2200"].credit == Decimal("7500.00")
    assert entry.is_balanced


def test_duplicate_transaction_rejected(engine: JournalEngine):
    _post(engine, _raw())
    with pytest.raises(DuplicateTransactionError, match="T1"):
        _post(engine, _raw())
    assert len(engine.entries) == 1
    assert engine.is_posted("T1")


def test_zero_amount_rejected(engine: JournalEngine):
    with pytest.raises(ValidationError):
        _post(engine, _raw(amount="0"))
    assert engine.entries == ()


@pytest.mark.parametrize(
    "amount, classification",
    [
        ("-200000", Classification("sales-income", FlowType.INCOME, "4000", 0.9)),
        ("45000", Classification("utilities", FlowType.EXPENSE, "5610", 0.9)),
    ],
)
def test_classification_against_money_direction_rejected(engine: JournalEngine, amount, classification):
    with pytest.raises(ValidationError) as exc:
        engine.post(_raw(amount=amount, description="Payment of supplier invoice 332"), classification)
    assert exc.value.errors["category"] == classification.category
    assert engine.entries == ()
    assert not engine.is_posted("T1")


def test_outgoing_invoice_payment_posts_as_expense(engine: JournalEngine):
    entry = _post(engine, _raw(amount="-200000", description="Payment of supplier invoice 332"))
    assert entry.category == "other-expense"
    assert engine.account_balance("4000") == 0
    assert engine.account_balance("5820") == Decimal("200000.00")


def test_concurrent_posts_of_same_id_post_once(engine: JournalEngine):
    errors: list[Exception] = []

    def worker():
        try:
            _post(engine, _raw("SAME"))
        except DuplicateTransactionError as e:
            errors.append(e)

    threads = [Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(engine.entries) == 1
    assert len(errors) == 7


def test_unknown_cash_account_rejected():
    with pytest.raises(UnknownAccountError):
        JournalEngine(cash_account="1999")


# ── Lines and manual entries ──────────────────────────────────────────


def test_line_must_carry_one_side():
    with pytest.raises(ValidationError):
        JournalLine("1020", debit=Decimal("1"), credit=Decimal("1"))
    with pytest.raises(ValidationError):
        JournalLine("1020")


def test_line_rejects_negative_amounts():
    with pytest.raises(ValidationError):
        JournalLine("1020", debit=Decimal("-5"))


def test_manual_entry_must_balance(engine: JournalEngine):
    with pytest.raises(UnbalancedEntryError):
        engine.post_manual(
            date(2024, 1, 31),
            "Depreciation",
            [JournalLine("5700", debit=Decimal("1000")), JournalLine("1541", credit=Decimal("900"))],
        )
    assert engine.entries == ()


def test_manual_entry_unknown_account(engine: JournalEngine):
    with pytest.raises(UnknownAccountError):
        engine.post_manual(
            date(2024, 1, 31),
            "Bad",
            [JournalLine("5700", debit=Decimal("10")), JournalLine("0000", credit=Decimal("10"))],
        )


def test_reversal_cancels_balances(engine: JournalEngine):
    entry = _post(engine, _raw())
    reversal = engine.reverse(entry.id, "posted in error")
    assert reversal.reverses == entry.id
    assert engine.account_balance("5500") == 0
    assert engine.account_balance("1020") == 0
    assert len(engine.entries) == 2


def test_entry_reverses_only_once(engine: JournalEngine):
    entry = _post(engine, _raw())
    engine.reverse(entry.id)
    with pytest.raises(ValidationError):
        engine.reverse(entry.id)


def test_reversal_keeps_transaction_posted(engine: JournalEngine):
    entry = _post(engine, _raw())
    engine.reverse(entry.id)
    with pytest.raises(DuplicateTransactionError):
        _post(engine, _raw())


# ── Queries ───────────────────────────────────────────────────────────


def test_balances_on_normal_side(engine: JournalEngine):
    _post(engine, _raw("A", "500000", "Invoice payment received"))
    _post(engine, _raw("B", "-150000", "Salary payment"))
    assert engine.account_balance("1020") == Decimal("350000.00")
    assert engine.account_balance("4000") == Decimal("500000.00")
    assert engine.account_balance("5500") == Decimal("150000.00")
    assert len(engine.ledger("1020")) == 2


def test_trial_balance_balances(engine: JournalEngine):
    _post(engine, _raw("A", "500000", "Invoice payment received"))
    _post(engine, _raw("B", "-150000", "Salary payment"))
    tb = engine.trial_balance()
    assert tb.is_balanced
    assert tb.total_debit == Decimal("500000.00")
    assert {r.account_code for r in tb.rows} == {"1020", "4000", "5500"}


def test_raw_transaction_from_dict():
    txn = RawTransaction.from_dict({"id": 7, "date": "2024-02-01", "description": "x", "amount": "-10"})
    assert txn.id == "7"
    assert txn.date == date(2024, 2, 1)
    assert txn.is_inflow is False
