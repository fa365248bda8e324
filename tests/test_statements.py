"""Tests for draft statement derivation."""

from datetime import date
from decimal import Decimal

import pytest

from sme_tax.importer import BankImporter
from sme_tax.journal import JournalEngine, JournalLine
from sme_tax.statements import StatementDeriver


def _row(txn_id: str, day: str, description: str, amount: str, txn_type: str) -> dict:
    return {"id": txn_id, "date": day, "description": description, "amount": amount, "type": txn_type}


@pytest.fixture
def engine() -> JournalEngine:
    engine = JournalEngine()
    BankImporter(engine).import_batch(
        [
            _row("1", "2024-01-02", "Capital injection", "1000000", "credit"),
            _row("2", "2024-01-10", "Invoice payment received", "500000", "credit"),
            _row("3", "2024-01-15", "Stock purchase", "120000", "debit"),
            _row("4", "2024-01-20", "Salary payment", "150000", "debit"),
            _row("5", "2024-01-25", "Interest earned on deposit", "5000", "credit"),
            _row("6", "2024-02-03", "Purchase of laptop", "400000", "debit"),
            _row("7", "2024-02-10", "Loan repayment", "50000", "debit"),
            _row("8", "2024-02-15", "Invoice payment received", "300000", "credit"),
        ]
    )
    return engine


@pytest.fixture
def deriver(engine: JournalEngine) -> StatementDeriver:
    return StatementDeriver(engine.chart)


def test_income_statement_lines(engine: JournalEngine, deriver: StatementDeriver):
    s = deriver.derive(engine.entries)
    assert s.revenue == Decimal("800000.00")
    assert s.cost_of_sales == Decimal("120000.00")
    assert s.gross_profit == Decimal("680000.00")
    assert s.operating_expenses == Decimal("150000.00")
    assert s.other_income == Decimal("5000.00")
    assert s.profit_before_tax == Decimal("535000.00")
    assert s.net_income == s.profit_before_tax


def test_balance_sheet_balances(engine: JournalEngine, deriver: StatementDeriver):
    s = deriver.derive(engine.entries)
    assert s.is_balanced
    # Cash 1,085,000 + laptop 400,000
    assert s.assets == Decimal("1485000.00")
    assert s.liabilities == Decimal("-50000.00")


def test_cash_flow_sections(engine: JournalEngine, deriver: StatementDeriver):
    s = deriver.derive(engine.entries)
    assert s.cash_from_operations == Decimal("535000.00")
    assert s.cash_from_investing == Decimal("-400000.00")
    assert s.cash_from_financing == Decimal("950000.00")
    assert s.net_cash_flow == engine.account_balance("1020")


def test_period_filter_limits_income_statement(engine: JournalEngine, deriver: StatementDeriver):
    january = deriver.derive(engine.entries, date(2024, 1, 1), date(2024, 1, 31))
    assert january.revenue == Decimal("500000.00")
    assert january.entry_count == 5

    february = deriver.derive(engine.entries, date(2024, 2, 1), date(2024, 2, 29))
    assert february.revenue == Decimal("300000.00")
    assert february.cash_from_investing == Decimal("-400000.00")


def test_balance_sheet_is_cumulative_to_period_end(engine: JournalEngine, deriver: StatementDeriver):
    february = deriver.derive(engine.entries, date(2024, 2, 1), date(2024, 2, 29))
    assert february.is_balanced
    assert february.assets == deriver.derive(engine.entries).assets


def test_derivation_does_not_modify_ledger(engine: JournalEngine, deriver: StatementDeriver):
    before = engine.entries
    deriver.derive(engine.entries)
    deriver.derive(engine.entries)
    assert engine.entries == before


def test_empty_ledger():
    s = StatementDeriver().derive([])
    assert s.revenue == 0
    assert s.is_balanced
    assert s.entry_count == 0


def test_manual_tax_provision_reduces_net_income(engine: JournalEngine, deriver: StatementDeriver):
    engine.post_manual(
        date(2024, 2, 28),
        "CIT provision",
        [JournalLine("7000", debit=Decimal("35000")), JournalLine("2100", credit=Decimal("35000"))],
    )
    s = deriver.derive(engine.entries)
    assert s.tax_expense == Decimal("35000.00")
    assert s.net_income == Decimal("500000.00")
    assert s.is_balanced
