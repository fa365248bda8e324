"""Bank transactions through the journal and statements to a tax result."""

from decimal import Decimal

import pytest

from sme_tax.calculator import TaxComputationOrchestrator, TaxProfile, TaxpayerType
from sme_tax.compliance import ComplianceChecker, facts_from
from sme_tax.importer import BankImporter
from sme_tax.journal import JournalEngine
from sme_tax.rulebook import RuleBookStore
from sme_tax.statements import StatementDeriver

D = Decimal


@pytest.fixture
def engine() -> JournalEngine:
    engine = JournalEngine()
    summary = BankImporter(engine).import_batch(
        [
            {"id": "1", "date": "2024-03-01", "description": "Salary payment", "amount": "-150000"},
            {"id": "2", "date": "2024-03-02", "description": "Invoice payment received", "amount": "500000"},
        ]
    )
    assert summary.imported == 2
    return engine


def test_entries_posted(engine: JournalEngine):
    salary, invoice = engine.entries
    assert [(l.account_code, l.debit > 0) for l in salary.lines] == [("5500", True), ("1020", False)]
    assert [(l.account_code, l.debit > 0) for l in invoice.lines] == [("1020", True), ("4000", False)]
    assert engine.trial_balance().is_balanced


def test_company_tax_from_books(engine: JournalEngine):
    statement = StatementDeriver(engine.chart).derive(engine.entries)
    assert statement.revenue == D("500000.00")
    assert statement.profit_before_tax == D("350000.00")

    result = TaxComputationOrchestrator(RuleBookStore()).compute_from_statement(
        TaxProfile(TaxpayerType.COMPANY, tax_year=2024), statement
    )
    assert result.taxable_income == D("350000.00")
    assert len(result.bands) == 1
    band = result.bands[0]
    assert band.step_id == "BAND_Small_company"
    assert band.value == 0
    assert band.citation == "CITA_S40"
    assert band.rule_key == "CIT_SMALL_RATE"
    assert result.total_tax_due == 0
    assert result.tet is not None
    assert result.unavailable == {}
    assert "Small company rate of 0% applied" in result.notes


def test_freelancer_tax_from_books(engine: JournalEngine):
    statement = StatementDeriver(engine.chart).derive(engine.entries)
    result = TaxComputationOrchestrator(RuleBookStore()).compute_from_statement(
        TaxProfile(TaxpayerType.FREELANCER, tax_year=2024), statement
    )
    # CRA of 200,000 + 20% of 350,000 leaves 80,000 in the 7% band
    assert result.find_row("NET_INCOME").value == D("350000.00")
    assert result.taxable_income == D("80000.00")
    assert result.total_tax_due == D("5600.00")


def test_compliance_from_books(engine: JournalEngine):
    statement = StatementDeriver(engine.chart).derive(engine.entries)
    facts = facts_from(statement, employee_count=1)
    failed = {r.rule_id for r in ComplianceChecker().check(facts) if not r.passed}
    assert failed == {"pencom-contribution", "nsitf-contribution"}
